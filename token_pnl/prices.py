"""
Price oracle: SOL spot price from Jupiter, token info (price, decimals,
symbol) from the Helius DAS getAsset method.

Lookups never raise. A failure yields a Degraded result carrying a zero
placeholder, which silently drops that leg's contribution to totals.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from token_pnl.config import WSOL_MINT, Settings, get_settings
from token_pnl.http import JUPITER
from token_pnl.models import TokenInfo
from token_pnl.results import Degraded, Lookup, Ok

logger = logging.getLogger(__name__)


def _token_info_from_asset(result: Any) -> Lookup[TokenInfo]:
    if not isinstance(result, dict):
        return Degraded(TokenInfo.placeholder(), "getAsset returned no result")
    token_info = result.get("token_info") or {}
    metadata = (result.get("content") or {}).get("metadata") or {}
    symbol = token_info.get("symbol") or metadata.get("symbol") or ""
    decimals = int(token_info.get("decimals") or 0)

    price = (token_info.get("price_info") or {}).get("price_per_token")
    if price is None:
        return Degraded(TokenInfo(0.0, decimals, symbol), "no price feed")
    return Ok(TokenInfo(float(price), decimals, symbol))


class PriceOracle:
    def __init__(self, client, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()

    async def get_sol_price(self) -> Lookup[float]:
        try:
            res = await self.client.get_json(
                self.settings.jupiter_price_url,
                params={"ids": WSOL_MINT},
                headers={"Content-Type": "application/json"},
                rate_key=JUPITER,
            )
            entry = ((res or {}).get("data") or {}).get(WSOL_MINT)
            if not entry or entry.get("price") is None:
                return Degraded(0.0, "no SOL price in response")
            return Ok(float(entry["price"]))
        except Exception as e:
            logger.error(f"Error fetching Solana price: {e}")
            return Degraded(0.0, f"SOL price lookup failed: {e}")

    async def get_token_info(self, mint: str) -> Lookup[TokenInfo]:
        try:
            result = await self.client.rpc("getAsset", {"id": mint})
            lookup = _token_info_from_asset(result)
        except Exception as e:
            logger.error(f"Error fetching token info for {mint}: {e}")
            return Degraded(TokenInfo.placeholder(), f"getAsset failed: {e}")
        if not lookup.ok:
            logger.warning(f"Token info for {mint} degraded: {lookup.reason}")
        return lookup


class TokenInfoCache:
    """Per-run get-or-fetch cache: one lookup result per distinct mint."""

    def __init__(self, oracle: PriceOracle):
        self.oracle = oracle
        self._lookups: Dict[str, Lookup[TokenInfo]] = {}
        self.fetches = 0

    def seed(self, mint: str, lookup: Lookup[TokenInfo]) -> None:
        self._lookups[mint] = lookup

    def __contains__(self, mint: str) -> bool:
        return mint in self._lookups

    async def lookup(self, mint: str) -> Lookup[TokenInfo]:
        cached = self._lookups.get(mint)
        if cached is None:
            self.fetches += 1
            cached = await self.oracle.get_token_info(mint)
            self._lookups[mint] = cached
        return cached

    async def get_or_fetch(self, mint: str) -> TokenInfo:
        return (await self.lookup(mint)).value

    def degraded(self) -> List[Tuple[str, str]]:
        return [(mint, lk.reason) for mint, lk in self._lookups.items() if not lk.ok]
