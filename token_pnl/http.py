import asyncio
import logging
import random
import urllib.parse
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import aiohttp
from aiolimiter import AsyncLimiter

from token_pnl.config import Settings, get_settings
from token_pnl.errors import HttpStatusError, RpcError

logger = logging.getLogger(__name__)

HELIUS = "helius"
JUPITER = "jupiter"

# === Rate limit config ===
# One bucket per upstream and rate configuration, shared by every client in the
# process. Each bucket starts full with `rps` tokens and refills `rps` tokens
# per period.
_limiters: Dict[Tuple[int, int, float], Tuple[AsyncLimiter, AsyncLimiter]] = {}


def shared_limiters(settings: Settings) -> Tuple[AsyncLimiter, AsyncLimiter]:
    """(helius, jupiter) buckets for the rates in `settings`."""
    key = (settings.helius_rps, settings.jupiter_rps, settings.rate_limit_period)
    if key not in _limiters:
        _limiters[key] = (
            AsyncLimiter(settings.helius_rps, settings.rate_limit_period),
            AsyncLimiter(settings.jupiter_rps, settings.rate_limit_period),
        )
        logger.debug(f"Helius rate limit set to {settings.helius_rps} requests per {settings.rate_limit_period}s.")
        logger.debug(f"Jupiter rate limit set to {settings.jupiter_rps} requests per {settings.rate_limit_period}s.")
    return _limiters[key]


# === Async HttpClient with per-endpoint rate_key support ===
class HttpClient:
    def __init__(
        self,
        helius_limiter: Optional[AsyncLimiter] = None,
        jupiter_limiter: Optional[AsyncLimiter] = None,
        settings: Optional[Settings] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        default_helius, default_jupiter = shared_limiters(self.settings)
        self._helius_limiter = helius_limiter if helius_limiter is not None else default_helius
        self._jupiter_limiter = jupiter_limiter if jupiter_limiter is not None else default_jupiter
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self._rpc_id = 0

    async def __aenter__(self):
        _ = self.session
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def session(self):
        """Open session, created on first use (aiohttp wants a running loop)."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.http_timeout),
                headers={"User-Agent": "token-pnl/0.1"},
            )
            self._owns_session = True
        return self._session

    async def close(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def limiter_for(self, rate_key: Optional[str]) -> Optional[AsyncLimiter]:
        if rate_key == HELIUS:
            return self._helius_limiter
        if rate_key == JUPITER:
            return self._jupiter_limiter
        return None

    async def _apply_rate_limit(self, rate_key: Optional[str]):
        limiter = self.limiter_for(rate_key)
        if limiter is not None:
            await limiter.acquire()

    async def _fetch(self, method: str, url: str, *, params=None, headers=None, json=None, rate_key: Optional[str] = None):
        max_retries = max(1, self.settings.http_max_retries)
        base = self.settings.http_backoff_base
        shown_url = _redact(url if not params else f"{url}?{urllib.parse.urlencode(params)}")
        last_status: Optional[int] = None
        last_body = ""
        last_error: Optional[BaseException] = None

        for attempt in range(max_retries):
            await self._apply_rate_limit(rate_key)
            try:
                async with self.session.request(method, url, params=params, headers=headers, json=json) as resp:
                    status = resp.status
                    text = await resp.text()

                    if 200 <= status < 300:
                        try:
                            return await resp.json(content_type=None)
                        except ValueError:
                            return text

                    last_status, last_body, last_error = status, text, None

                    if status == 429:
                        retry_after = resp.headers.get("Retry-After")
                        try:
                            wait_secs = float(retry_after) + random.uniform(0.5, 1.5)
                        except (TypeError, ValueError):
                            wait_secs = min(base * (2 ** attempt), 120)
                        logger.warning(f"Rate limit 429 for {shown_url} - retrying in {wait_secs:.1f}s")
                        await self._sleep(wait_secs)
                        continue

                    if status in (500, 502, 503, 504):
                        wait = min(base * (2 ** attempt) + random.uniform(0, 1), 90)
                        logger.warning(f"Server error {status} on {shown_url}. Retrying in {wait:.1f}s")
                        await self._sleep(wait)
                        continue

                    raise HttpStatusError(status, shown_url, text)

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                wait = min(base * (2 ** attempt) + random.uniform(0, 1), 90)
                logger.warning(f"Network error {e!r} for {shown_url}; retrying in {wait:.1f}s")
                await self._sleep(wait)

        if last_error is not None:
            raise last_error
        raise HttpStatusError(last_status or 0, shown_url, last_body)

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None, rate_key: Optional[str] = None):
        return await self._fetch("GET", url, params=params, headers=headers, rate_key=rate_key)

    async def post_json(self, url: str, json_payload: Any, headers: Optional[Dict[str, str]] = None, rate_key: Optional[str] = None):
        return await self._fetch("POST", url, json=json_payload, headers=headers, rate_key=rate_key)

    async def rpc(self, method: str, params: Any) -> Any:
        """Helius JSON-RPC call; returns `result` or raises RpcError."""
        self._rpc_id += 1
        payload = {"jsonrpc": "2.0", "id": self._rpc_id, "method": method, "params": params}
        data = await self.post_json(
            self.settings.helius_rpc_url,
            payload,
            headers={"Content-Type": "application/json"},
            rate_key=HELIUS,
        )
        if not isinstance(data, dict):
            raise RpcError(method, "non-JSON response")
        if data.get("error"):
            raise RpcError(method, data["error"])
        return data.get("result")

    async def get_enhanced_transactions(self, signatures: List[str]) -> Any:
        """Parsed transactions for up to 100 signatures from the enhanced API."""
        params = {"api-key": self.settings.helius_api_key} if self.settings.helius_api_key else None
        return await self._fetch(
            "POST",
            f"{self.settings.helius_api_url}/transactions",
            params=params,
            headers={"Content-Type": "application/json"},
            json={"transactions": signatures},
            rate_key=HELIUS,
        )


def _redact(url: str) -> str:
    if "api-key=" not in url:
        return url
    head, _, tail = url.partition("api-key=")
    _, amp, rest = tail.partition("&")
    return f"{head}api-key=***{amp}{rest}"
