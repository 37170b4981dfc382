from __future__ import annotations

import random
from bisect import bisect_right
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .models import Holder, TicketedHolder
from .project_constants import TICKET_UNIT


@dataclass(frozen=True)
class TicketRange:
    address: str
    tickets: int
    start_ticket: int
    end_ticket: int  # exclusive


def compute_tickets(balance: Decimal) -> int:
    """1 ticket per TICKET_UNIT tokens; any holder gets at least one."""
    return max(1, int(balance // TICKET_UNIT))


def allocate(holders: Iterable[Holder]) -> List[TicketedHolder]:
    return [
        TicketedHolder(h.wallet_address, h.token_balance, compute_tickets(h.token_balance))
        for h in holders
    ]


def total_tickets(ticketed: Iterable[TicketedHolder]) -> int:
    return sum(h.tickets for h in ticketed)


def build_ranges(ticketed: List[TicketedHolder]) -> Tuple[List[TicketRange], int]:
    ranges: List[TicketRange] = []
    cursor = 0
    for h in ticketed:
        start = cursor
        end = cursor + h.tickets
        ranges.append(TicketRange(h.wallet_address, h.tickets, start, end))
        cursor = end
    return ranges, cursor


def find_winner(ranges: List[TicketRange], ticket: int) -> TicketRange:
    ends = [r.end_ticket for r in ranges]
    idx = bisect_right(ends, ticket)
    if idx < 0 or idx >= len(ranges):
        raise RuntimeError("Ticket out of range (unexpected).")
    return ranges[idx]


def select_winner(ticketed: List[TicketedHolder], rng: random.Random) -> Optional[str]:
    """Ticket-weighted pick: one uniform point in [0, total) over contiguous ranges."""
    ranges, total = build_ranges(ticketed)
    if total <= 0:
        return None
    # min() guards against rng implementations returning exactly 1.0
    ticket = min(int(rng.random() * total), total - 1)
    return find_winner(ranges, ticket).address
