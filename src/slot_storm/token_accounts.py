from __future__ import annotations

import base64
import binascii
import logging
import struct
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Set, Tuple

import base58

from .models import Holder
from .project_constants import MIN_RAW_BALANCE, TOKEN_DECIMALS
from .rpc import RpcClient

log = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"


def parse_owner_and_amount(account_data: bytes) -> Tuple[str, int] | None:
    """
    Standard token account layout (works for classic; Token-2022 typically keeps these offsets too).
    Mint(0-32) | Owner(32-64) | Amount(64-72)
    """
    if len(account_data) < 72:
        return None

    owner = base58.b58encode(account_data[32:64]).decode("ascii")
    (amount,) = struct.unpack("<Q", account_data[64:72])
    return owner, amount


def aggregate_holders_from_b64(b64_items: Iterable[str]) -> Dict[str, int]:
    """Sums raw balances per owner; one wallet may hold several token accounts."""
    balances: Dict[str, int] = defaultdict(int)

    for b64_str in b64_items:
        try:
            raw = base64.b64decode(b64_str, validate=True)
        except (binascii.Error, ValueError):
            log.debug("Skipping undecodable account data")
            continue

        parsed = parse_owner_and_amount(raw)
        if parsed and parsed[1] > 0:
            owner, amount = parsed
            balances[owner] += amount

    return dict(balances)


def apply_exclusions_and_min(
    owner_to_balance: Dict[str, int],
    excluded: Set[str],
    min_raw_balance: int = MIN_RAW_BALANCE,
) -> List[Tuple[str, int]]:
    eligible = [
        (addr, int(bal))
        for addr, bal in owner_to_balance.items()
        if addr not in excluded and bal >= min_raw_balance
    ]
    # Deterministic ordering keeps ticket ranges reproducible
    eligible.sort(key=lambda x: x[0])
    return eligible


def to_ui_amount(raw_amount: int, decimals: int = TOKEN_DECIMALS) -> Decimal:
    return Decimal(raw_amount).scaleb(-decimals)


def load_excluded_wallets(path: str | None) -> Set[str]:
    if not path:
        return set()
    out: Set[str] = set()
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            w = line.strip()
            if not w or w.startswith("#"):
                continue
            out.add(w)
    return out


class RpcHolderSource:
    """Scans both token programs for accounts of a mint and reports one Holder per owner."""

    def __init__(self, rpc: RpcClient, excluded: Set[str] | None = None) -> None:
        self.rpc = rpc
        self.excluded = set(excluded or ())

    async def fetch_holders(self, token_mint: str) -> List[Holder]:
        log.info("Fetching holders for %s...", token_mint)
        classic_b64 = await self.rpc.get_program_accounts_base64(
            program_id=TOKEN_PROGRAM_ID,
            mint=token_mint,
            classic_token_program=True,
        )
        t22_b64 = await self.rpc.get_program_accounts_base64(
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=token_mint,
            classic_token_program=False,
        )
        owner_to_balance = aggregate_holders_from_b64(classic_b64 + t22_b64)
        eligible = apply_exclusions_and_min(owner_to_balance, self.excluded)
        log.info(
            "Accounts fetched: %d, unique owners: %d, eligible: %d",
            len(classic_b64) + len(t22_b64),
            len(owner_to_balance),
            len(eligible),
        )
        return [Holder(addr, to_ui_amount(bal)) for addr, bal in eligible]
