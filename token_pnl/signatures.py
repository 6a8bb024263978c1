"""
Signature paginator over getSignaturesForAddress.

Pages are requested newest-first. The upstream indexer sometimes answers with
fewer signatures than requested even though older history exists, so a short
page is retried with linear backoff, keeping the longest page seen. Only an
empty page means the history is exhausted.
"""
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional, Tuple

from token_pnl.config import Settings, get_settings
from token_pnl.errors import SignatureFetchError
from token_pnl.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignaturePage:
    signatures: Tuple[str, ...]
    requested: int
    attempts: int = 1

    @property
    def before(self) -> Optional[str]:
        """Cursor for the next (older) page: the oldest signature in this one."""
        return self.signatures[-1] if self.signatures else None

    @property
    def is_empty(self) -> bool:
        return not self.signatures

    @property
    def is_short(self) -> bool:
        return 0 < len(self.signatures) < self.requested

    def __len__(self) -> int:
        return len(self.signatures)


def _signatures_from_result(result: Any) -> List[str]:
    if not isinstance(result, list):
        raise ValueError(f"unexpected getSignaturesForAddress result: {type(result).__name__}")
    sigs = []
    for entry in result:
        sig = entry.get("signature") if isinstance(entry, dict) else None
        if isinstance(sig, str) and sig:
            sigs.append(sig)
    return sigs


class SignaturePaginator:
    def __init__(self, client, settings: Optional[Settings] = None, retry: Optional[RetryPolicy] = None):
        self.client = client
        self.settings = settings or get_settings()
        self.retry = retry or RetryPolicy(
            max_attempts=self.settings.signature_max_retries,
            delay=self.settings.signature_retry_delay,
        )

    async def _request(self, wallet: str, before: Optional[str], page_size: int) -> List[str]:
        options = {"limit": page_size}
        if before:
            options["before"] = before
        result = await self.client.rpc("getSignaturesForAddress", [wallet, options])
        return _signatures_from_result(result)

    async def next_page(self, wallet: str, before: Optional[str] = None, page_size: Optional[int] = None) -> SignaturePage:
        """
        Fetch up to `page_size` signatures older than `before` (newest when None).

        A full page returns at once. An empty first answer is end-of-history.
        Otherwise the request is retried up to the policy ceiling and the
        longest page seen is returned. Raises SignatureFetchError only when
        every attempt failed.
        """
        size = page_size or self.settings.signature_page_size

        def done(sigs: List[str], best: Optional[List[str]]) -> bool:
            if len(sigs) >= size:
                return True
            return not sigs and not best

        def keep(best: Optional[List[str]], sigs: List[str]) -> List[str]:
            if best is not None and len(best) >= len(sigs):
                return best
            return sigs

        try:
            outcome = await self.retry.run(
                lambda: self._request(wallet, before, size),
                done=done,
                keep=keep,
                label=f"getSignaturesForAddress(before={before})",
            )
        except Exception as e:
            raise SignatureFetchError(wallet, before, self.retry.max_attempts) from e

        page = SignaturePage(tuple(outcome.value), requested=size, attempts=outcome.attempts)
        if page.is_short:
            logger.warning(
                f"Keeping short page of {len(page)}/{size} signatures after {page.attempts} attempts (before={before})"
            )
        return page

    async def pages(self, wallet: str, page_size: Optional[int] = None) -> AsyncIterator[SignaturePage]:
        """Yield non-empty pages newest-first until an empty page comes back."""
        before: Optional[str] = None
        while True:
            page = await self.next_page(wallet, before, page_size)
            if page.is_empty:
                return
            yield page
            before = page.before
