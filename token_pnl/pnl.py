"""
PnL synthesizer: drives the whole pipeline for one wallet/token pair.

    prices + balance  ->  paginate signatures  ->  fetch batches  ->  classify
                                                   (per page, chunked)

and turns the running totals into an immutable PnLReport. A run either
returns a complete report or raises; partial totals are never returned.
"""
import asyncio
import logging
import math
from typing import List, Optional, Tuple

from token_pnl.aggregator import TransferAggregator
from token_pnl.balances import fetch_token_balance
from token_pnl.config import USDC_MINT, Settings, get_settings, is_valid_solana_address
from token_pnl.errors import InvalidAddressError, PnLTimeoutError
from token_pnl.http import HttpClient
from token_pnl.models import PnLReport, RunningTotals, TokenInfo
from token_pnl.prices import PriceOracle, TokenInfoCache
from token_pnl.retry import RetryPolicy
from token_pnl.signatures import SignaturePaginator
from token_pnl.transactions import TransactionBatchFetcher

logger = logging.getLogger(__name__)


def _ratio(numerator: float, denominator: float) -> Optional[float]:
    """numerator / denominator, or None when the quotient isn't a finite number."""
    if not denominator:
        return None
    value = numerator / denominator
    return value if math.isfinite(value) else None


def synthesize_report(
    wallet: str,
    mint: str,
    token_info: TokenInfo,
    balance: float,
    sol_price: float,
    totals: RunningTotals,
    **diagnostics,
) -> PnLReport:
    holding_usd = balance * token_info.price_per_token
    profit_usd = totals.sold_usd + holding_usd - totals.spent_usd - totals.fees_usd
    roi = _ratio(profit_usd, totals.spent_usd)

    return PnLReport(
        wallet=wallet,
        mint=mint,
        token_symbol=token_info.symbol,
        spent_usd=totals.spent_usd,
        sold_usd=totals.sold_usd,
        fees_usd=totals.fees_usd,
        holding_usd=holding_usd,
        profit_usd=profit_usd,
        spent_sol=_ratio(totals.spent_usd, sol_price),
        sold_sol=_ratio(totals.sold_usd, sol_price),
        fees_sol=_ratio(totals.fees_usd, sol_price),
        holding_sol=_ratio(holding_usd, sol_price),
        profit_sol=_ratio(profit_usd, sol_price),
        roi=roi * 100 if roi is not None else None,
        balance=balance,
        token_price=token_info.price_per_token,
        sol_price=sol_price,
        transactions_processed=totals.transactions_processed,
        transactions_skipped=dict(totals.skipped),
        legs=tuple(totals.legs),
        **diagnostics,
    )


async def _run(client, wallet: str, mint: str, settings: Settings, retry: Optional[RetryPolicy]) -> PnLReport:
    oracle = PriceOracle(client, settings)
    cache = TokenInfoCache(oracle)
    degraded: List[Tuple[str, str]] = []

    # Tracked token and the stable-fiat proxy are resolved once up front.
    if mint != USDC_MINT:
        cache.seed(USDC_MINT, await oracle.get_token_info(USDC_MINT))
    token_lookup = await oracle.get_token_info(mint)
    cache.seed(mint, token_lookup)

    balance_lookup = await fetch_token_balance(client, wallet, mint)
    if not balance_lookup.ok:
        degraded.append(("balance", balance_lookup.reason))
    sol_lookup = await oracle.get_sol_price()
    if not sol_lookup.ok:
        degraded.append(("sol_price", sol_lookup.reason))

    aggregator = TransferAggregator(wallet, mint, cache, sol_lookup.value)
    paginator = SignaturePaginator(client, settings, retry=retry)
    fetcher = TransactionBatchFetcher(client, settings)

    pages = 0
    signatures_seen = 0
    truncated = False
    async for page in paginator.pages(wallet):
        pages += 1
        signatures_seen += len(page)
        logger.info(f"Page {pages}: {len(page)} signatures (cursor {page.before[:16]}...)")
        async for batch in fetcher.batches(page.signatures):
            await aggregator.add_batch(batch)
        if settings.max_pages and pages >= settings.max_pages:
            logger.warning(f"Stopping after max_pages={settings.max_pages}; history may be incomplete")
            truncated = True
            break

    totals = aggregator.totals
    logger.info(
        f"✅ {wallet[:8]}.../{mint[:8]}...: {totals.transactions_processed} transactions, "
        f"spent ${totals.spent_usd:.2f}, sold ${totals.sold_usd:.2f}, fees ${totals.fees_usd:.2f}"
    )

    degraded.extend(cache.degraded())
    return synthesize_report(
        wallet,
        mint,
        token_lookup.value,
        balance_lookup.value,
        sol_lookup.value,
        totals,
        pages=pages,
        signatures_seen=signatures_seen,
        skipped_chunks=fetcher.skipped_chunks,
        malformed_transactions=fetcher.malformed,
        truncated=truncated,
        degraded=tuple(degraded),
    )


async def compute_pnl(
    wallet: str,
    mint: str,
    *,
    client=None,
    settings: Optional[Settings] = None,
    retry: Optional[RetryPolicy] = None,
) -> PnLReport:
    """
    Compute spend, sales, fees, holding value, profit and ROI of `wallet`
    for token `mint`.

    Raises InvalidAddressError for malformed input and SignatureFetchError
    when the signature history can't be read; every other upstream failure
    degrades to zero-valued fields listed in `report.degraded`.
    """
    if not is_valid_solana_address(wallet):
        raise InvalidAddressError("wallet", wallet)
    if not is_valid_solana_address(mint):
        raise InvalidAddressError("mint", mint)

    settings = settings or get_settings()
    logger.info(f"Computing PnL for wallet {wallet} / token {mint}")
    if client is not None:
        return await _run(client, wallet, mint, settings, retry)
    async with HttpClient(settings=settings) as own_client:
        return await _run(own_client, wallet, mint, settings, retry)


async def compute_pnl_with_timeout(wallet: str, mint: str, timeout: Optional[float] = None, **kwargs) -> PnLReport:
    """compute_pnl bounded by `timeout` seconds (settings.pnl_timeout when None, 0 disables)."""
    if timeout is None:
        timeout = (kwargs.get("settings") or get_settings()).pnl_timeout
    if not timeout or timeout <= 0:
        return await compute_pnl(wallet, mint, **kwargs)
    try:
        return await asyncio.wait_for(compute_pnl(wallet, mint, **kwargs), timeout)
    except asyncio.TimeoutError:
        raise PnLTimeoutError(timeout) from None
