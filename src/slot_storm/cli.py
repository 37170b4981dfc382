from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import Any

from .config import Settings
from .fees import CreatorFeeTracker
from .lottery import LotteryFacade, LotteryTimings
from .market import DexScreenerClient, DexScreenerFeeSource
from .models import DrawOutcome, PendingReward
from .payouts import HttpPayoutSubmitter
from .rpc import RpcClient
from .service import SlotStormService
from .tickets import allocate, total_tickets
from .token_accounts import RpcHolderSource, load_excluded_wallets


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _holder_source(settings: Settings, rpc: RpcClient) -> RpcHolderSource:
    excluded = load_excluded_wallets(settings.excluded_wallets_file)
    return RpcHolderSource(rpc, excluded | settings.excluded_addresses())


def _announce(event: str, payload: Any) -> None:
    if event in ("slot-result", "lightning-strike") and isinstance(payload, DrawOutcome):
        if payload.symbols:
            print(f"🎰 {' - '.join(payload.symbols)}  ({payload.tier.value})")
        if payload.won:
            print(f"🏆 {payload.winner} won {payload.prize} SOL ({payload.kind.value})")
    elif event == "reward-failed" and isinstance(payload, PendingReward):
        print(f"❌ Payout {payload.id} failed: {payload.failure_reason}")
    elif event == "weather-changed":
        print(f"🌤️  Weather: {payload.kind.value} ({payload.multiplier}x)")


def _claim_dev_fees(service: SlotStormService) -> None:
    claimed, remaining, wallet = service.mark_dev_fees_claimed()
    print(f"💸 Dev fees claimed: {claimed} SOL to {wallet or '(no dev wallet)'}, {remaining} SOL left")


async def _run(settings: Settings, timeout_s: float) -> None:
    rpc = RpcClient(settings.rpc_url, timeout_s=timeout_s)
    dex = DexScreenerClient(timeout_s=timeout_s)
    payouts = (
        HttpPayoutSubmitter(settings.payout_url, timeout_s=settings.payout_timeout_s)
        if settings.payout_url
        else None
    )
    lottery = LotteryFacade(
        settings.token_mint,
        payouts=payouts,
        timings=LotteryTimings(payout_timeout_s=settings.payout_timeout_s),
    )
    lottery.subscribe(_announce)
    tracker = CreatorFeeTracker(dev_wallet=settings.dev_wallet)
    service = SlotStormService(
        lottery,
        _holder_source(settings, rpc),
        DexScreenerFeeSource(dex, tracker),
        fee_tracker=tracker,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # Windows
            pass
    if hasattr(signal, "SIGUSR1"):
        loop.add_signal_handler(signal.SIGUSR1, _claim_dev_fees, service)

    try:
        await service.start()
        await stop.wait()
    finally:
        await service.stop()
        await rpc.close()
        await dex.close()
        if payouts is not None:
            await payouts.close()


def cmd_run(args: argparse.Namespace) -> int:
    settings = Settings.from_env(
        rpc_url_override=args.rpc_url, token_mint_override=args.mint
    )
    print("========================================")
    print("🎰⚡ SOL SLOT STORM ⚡🎰")
    print("========================================")
    print(f"Mint          : {settings.token_mint}")
    print(f"Payouts       : {settings.payout_url or 'manual confirmation'}")
    print("----------------------------------------")
    try:
        asyncio.run(_run(settings, args.timeout))
    except KeyboardInterrupt:
        pass
    return 0


async def _fetch_holders(settings: Settings, timeout_s: float):
    rpc = RpcClient(settings.rpc_url, timeout_s=timeout_s)
    try:
        return await _holder_source(settings, rpc).fetch_holders(settings.token_mint)
    finally:
        await rpc.close()


def cmd_holders(args: argparse.Namespace) -> int:
    settings = Settings.from_env(
        rpc_url_override=args.rpc_url, token_mint_override=args.mint
    )
    ticketed = allocate(asyncio.run(_fetch_holders(settings, args.timeout)))
    total = total_tickets(ticketed)
    ticketed.sort(key=lambda h: h.tickets, reverse=True)

    print(f"Mint          : {settings.token_mint}")
    print(f"Participants  : {len(ticketed)}")
    print(f"Total tickets : {total}")
    print("----------------------------------------")
    for h in ticketed[: args.limit]:
        chance = h.tickets / total * 100 if total else 0.0
        print(f"{h.wallet_address}  {h.token_balance:>18}  {h.tickets:>8}  {chance:6.2f}%")
    return 0


async def _check_fees(settings: Settings, tracker: CreatorFeeTracker, timeout_s: float):
    dex = DexScreenerClient(timeout_s=timeout_s)
    try:
        return await DexScreenerFeeSource(dex, tracker).fetch_claimable_fees(settings.token_mint)
    finally:
        await dex.close()


def cmd_fees(args: argparse.Namespace) -> int:
    settings = Settings.from_env(
        rpc_url_override=args.rpc_url, token_mint_override=args.mint
    )
    tracker = CreatorFeeTracker(dev_wallet=settings.dev_wallet)
    claimable = asyncio.run(_check_fees(settings, tracker, args.timeout))

    print(f"Mint          : {settings.token_mint}")
    print(f"5min volume   : ${tracker.total_volume_usd}")
    print(f"Creator fees  : {tracker.total_fees} SOL")
    print(f"Dev share     : {tracker.total_dev_share} SOL")
    print(f"Lottery share : {claimable if claimable is not None else 'nothing claimable'}")
    print(f"Accumulated   : {tracker.accumulated_fees} SOL")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="slot-storm",
        description="Weighted holder lottery funded by claimed creator fees.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--mint", default=None, help="Override token mint (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="HTTP timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("run", help="Run the lottery until interrupted.")
    r.set_defaults(func=cmd_run)

    h = sub.add_parser("holders", help="Fetch holders once and print their tickets.")
    h.add_argument("--limit", type=int, default=20, help="Rows to print.")
    h.set_defaults(func=cmd_holders)

    f = sub.add_parser("fees", help="Run one creator-fee check and print the split.")
    f.set_defaults(func=cmd_fees)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
