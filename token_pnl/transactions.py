"""
Transaction batch fetcher for the Helius enhanced transactions endpoint.
"""
import asyncio
import logging
from typing import AsyncIterator, Iterable, List, Optional, Sequence

import aiohttp

from token_pnl.config import MAX_TRANSACTION_BATCH, Settings, get_settings
from token_pnl.errors import PnLError
from token_pnl.models import ParsedTransaction

logger = logging.getLogger(__name__)


def chunked(items: Sequence[str], size: int = MAX_TRANSACTION_BATCH) -> List[List[str]]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class TransactionBatchFetcher:
    """
    Resolves signatures into ParsedTransaction objects, one rate-limited call
    per chunk of at most 100. A chunk whose call fails is skipped and counted;
    a record that doesn't parse is skipped and counted. Order is preserved.
    """

    def __init__(self, client, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()
        self.skipped_chunks = 0
        self.malformed = 0

    async def fetch_chunk(self, chunk: List[str]) -> List[ParsedTransaction]:
        try:
            payload = await self.client.get_enhanced_transactions(chunk)
        except (PnLError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.skipped_chunks += 1
            logger.warning(f"Skipping chunk of {len(chunk)} signatures starting {chunk[0][:16]}...: {e}")
            return []

        if not isinstance(payload, list):
            self.skipped_chunks += 1
            logger.warning(f"Skipping chunk starting {chunk[0][:16]}...: unexpected response {type(payload).__name__}")
            return []

        return list(self._parse(payload))

    def _parse(self, payload: Iterable) -> Iterable[ParsedTransaction]:
        for raw in payload:
            try:
                yield ParsedTransaction.from_helius(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                self.malformed += 1
                sig = raw.get("signature") if isinstance(raw, dict) else None
                logger.warning(f"Skipping malformed transaction {sig}: {e!r}")

    async def batches(self, signatures: Sequence[str]) -> AsyncIterator[List[ParsedTransaction]]:
        """Yield the parsed transactions of each chunk, in the order supplied."""
        for chunk in chunked(signatures, self.settings.transaction_batch_size):
            yield await self.fetch_chunk(chunk)
