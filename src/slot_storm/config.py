from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

from .project_constants import TOKEN_MINT


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    token_mint: str = TOKEN_MINT
    payout_url: str | None = None
    payout_timeout_s: float = 30.0
    excluded_wallets_file: str | None = None
    pool_address: str | None = None
    dev_wallet: str | None = None

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        token_mint_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        # If user provides --rpc-url, trust it.
        rpc_url = rpc_url_override or _rpc_url_from_env()

        return Settings(
            rpc_url=rpc_url,
            token_mint=token_mint_override
            or os.getenv("TOKEN_MINT", "").strip()
            or TOKEN_MINT,
            payout_url=_optional("PAYOUT_URL"),
            payout_timeout_s=float(os.getenv("PAYOUT_TIMEOUT", "30")),
            excluded_wallets_file=_optional("EXCLUDED_WALLETS_FILE"),
            pool_address=_optional("POOL_ADDRESS"),
            dev_wallet=_optional("DEV_WALLET"),
        )

    def excluded_addresses(self) -> set[str]:
        return {a for a in (self.pool_address, self.dev_wallet) if a}


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _rpc_url_from_env() -> str:
    # Use RPC_URL from env if present, else build helius url from key.
    env_rpc = os.getenv("RPC_URL", "").strip()
    if env_rpc:
        return env_rpc

    helius_key = os.getenv("HELIUS_API_KEY", "").strip()
    if not helius_key:
        raise RuntimeError(
            "Missing HELIUS_API_KEY (or RPC_URL). Put it in .env or export it."
        )

    return f"https://mainnet.helius-rpc.com/?api-key={helius_key}"
