"""
Project-wide immutable parameters for the Slot Storm holder lottery.

These values define the public rules of the draw.
Changing them changes eligibility or payout sizing and MUST be publicly announced.
"""

from decimal import Decimal

# Token mint (MAINNET)
TOKEN_MINT = "9zFdsBhgqWd6WRoqVfcMd5bZJdgwmkiMd1ch7UfGpump"

# Pump.fun tokens use 6 decimals
TOKEN_DECIMALS = 6

# Prizes are paid in SOL; amounts are quantized down to lamports
SOL_DECIMALS = 9
LAMPORT = Decimal(1).scaleb(-SOL_DECIMALS)

# Minimum balance to qualify (raw units)
MIN_RAW_BALANCE = 1 * (10**TOKEN_DECIMALS)  # 1 token in raw units (6 decimals)

# Linear ticket policy: 1 ticket per 1000 tokens, never fewer than 1
TICKET_UNIT = Decimal(1000)

# Slot symbols by tier, with the probability of rolling each tier
COMMON_SYMBOLS = ("🍎", "🍊", "🍇", "🍒")
RARE_SYMBOLS = ("💎", "⭐", "🔥", "⚡")
LEGENDARY_SYMBOLS = ("👑", "🏆", "💰", "🎰")
TIER_WEIGHTS = (0.70, 0.25, 0.05)  # common, rare, legendary

# Two bonus symbols that pay a medium win when rolled together
BONUS_PAIR = ("⚡", "🔥")

# Outcome multipliers
JACKPOT_MULTIPLIER = Decimal(50)
LARGE_MULTIPLIER = Decimal(10)
MEDIUM_MULTIPLIER = Decimal(5)
BONUS_MULTIPLIER = Decimal(8)
SMALL_MULTIPLIER = Decimal(2)

# Prize sizing: share of the pool, capped per draw (SOL)
SLOT_POOL_SHARE = Decimal("0.1")
SLOT_PRIZE_CAP = Decimal(1)
LIGHTNING_POOL_SHARE = Decimal("0.05")
LIGHTNING_PRIZE_CAP = Decimal("0.5")
LIGHTNING_MIN_PRIZE = Decimal("0.01")

# Weather: kind -> (multiplier, advisory duration in seconds), and pick weights
WEATHER_TABLE = {
    "sunny": (Decimal(1), 600),
    "rainy": (Decimal("1.5"), 480),
    "storm": (Decimal(3), 180),
}
WEATHER_WEIGHTS = (("sunny", 0.60), ("rainy", 0.25), ("storm", 0.15))

# Timer periods (seconds)
SLOT_INTERVAL_S = 300
LIGHTNING_DELAY_S = (30, 240)
WEATHER_DELAY_S = (600, 1800)
HOLDER_REFRESH_S = 60
FEE_CHECK_S = 300

# Creator fees: 1% of traded volume, converted at a fixed SOL price
CREATOR_FEE_RATE = Decimal("0.01")
SOL_PRICE_USD = Decimal(150)
MIN_VOLUME_USD = Decimal(15)  # below this, fees are accumulated rather than claimed
MIN_ACCUMULATED_FEE = Decimal("0.00001")
LOTTERY_FEE_SHARE = Decimal("0.5")  # the rest is the dev share

# Keep the last N rewards in memory
REWARD_HISTORY_LIMIT = 50
