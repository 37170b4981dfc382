from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

import httpx

log = logging.getLogger(__name__)

MISSING_TX_REF = "signer reported success without a txRef; verify on-chain before retrying"


@dataclass(frozen=True)
class PayoutResult:
    success: bool
    tx_ref: Optional[str] = None
    reason: Optional[str] = None

    @staticmethod
    def ok(tx_ref: str) -> "PayoutResult":
        return PayoutResult(True, tx_ref=tx_ref)

    @staticmethod
    def failed(reason: str) -> "PayoutResult":
        return PayoutResult(False, reason=reason)


class PayoutSubmitter(Protocol):
    async def submit_payout(self, destination: str, amount: Decimal) -> PayoutResult:
        ...


class HttpPayoutSubmitter:
    """
    Hands transfers to an external signer service.

    The signer is expected to answer a POST of {"destination", "amount"} with
    {"success": true, "txRef": "..."} or {"success": false, "reason": "..."}.
    Transport errors are raised to the caller.
    """

    def __init__(
        self,
        payout_url: str,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.payout_url = payout_url
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def close(self) -> None:
        await self.client.aclose()

    async def submit_payout(self, destination: str, amount: Decimal) -> PayoutResult:
        payload = {"destination": destination, "amount": str(amount)}
        resp = await self.client.post(self.payout_url, json=payload)
        resp.raise_for_status()
        data: Dict[str, Any] = resp.json()

        if data.get("success"):
            tx_ref = data.get("txRef") or data.get("signature")
            if not tx_ref:
                log.warning("Payout signer reported success without a txRef: %s", data)
                return PayoutResult.failed(MISSING_TX_REF)
            return PayoutResult.ok(str(tx_ref))
        return PayoutResult.failed(str(data.get("reason") or data.get("error") or "unknown"))
