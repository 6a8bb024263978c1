"""
Transfer classifier & aggregator.

For every parsed transaction of the tracked wallet that also moves the tracked
token, the counter-asset legs (transfers of any *other* mint to or from the
wallet) price what was paid or received:

    wallet is the source       -> spend  (cost of acquiring the token)
    wallet is the destination  -> sale   (proceeds of disposing of it)

Legs of the tracked mint itself are ignored, they are the asset being
tracked rather than a cost or proceeds. The network fee of every processed
transaction is added to fees regardless of legs.

Each leg's price lookup is awaited before the next leg is classified so
totals are complete when the last batch returns.
"""
import logging
from typing import Iterable

from token_pnl.config import LAMPORTS_PER_SOL
from token_pnl.models import (
    IRRELEVANT,
    SALE,
    SPEND,
    ParsedTransaction,
    RunningTotals,
    TokenTransfer,
    TransferLeg,
)
from token_pnl.prices import TokenInfoCache

logger = logging.getLogger(__name__)

SKIP_TRANSACTION_ERROR = "transaction_error"
SKIP_NO_TRACKED_MINT = "no_tracked_mint"
SKIP_WALLET_NOT_INVOLVED = "wallet_not_involved"


def classify_transfer(transfer: TokenTransfer, wallet: str, tracked_mint: str) -> str:
    if transfer.mint == tracked_mint:
        return IRRELEVANT
    if transfer.from_user_account == wallet:
        return SPEND
    if transfer.to_user_account == wallet:
        return SALE
    return IRRELEVANT


class TransferAggregator:
    def __init__(self, wallet: str, mint: str, cache: TokenInfoCache, sol_price: float):
        self.wallet = wallet
        self.mint = mint
        self.cache = cache
        self.sol_price = sol_price
        self.totals = RunningTotals()

    def skip_reason(self, txn: ParsedTransaction):
        if txn.transaction_error:
            return SKIP_TRANSACTION_ERROR
        if not txn.touches_mint(self.mint):
            return SKIP_NO_TRACKED_MINT
        if not txn.touches_account(self.wallet):
            return SKIP_WALLET_NOT_INVOLVED
        return None

    async def add_transaction(self, txn: ParsedTransaction) -> bool:
        """Fold one transaction into the running totals; False if it was skipped."""
        reason = self.skip_reason(txn)
        if reason:
            self.totals.skip(reason)
            return False

        for transfer in txn.token_transfers:
            side = classify_transfer(transfer, self.wallet, self.mint)
            if side == IRRELEVANT:
                continue
            info = await self.cache.get_or_fetch(transfer.mint)
            leg = TransferLeg(
                signature=txn.signature,
                mint=transfer.mint,
                side=side,
                amount=transfer.token_amount,
                price=info.price_per_token,
                usd=transfer.token_amount * info.price_per_token,
            )
            self.totals.add_leg(leg)
            logger.debug(f"{txn.signature[:16]}... {side} {leg.amount} {leg.mint[:8]} = ${leg.usd:.4f}")

        self.totals.fees_usd += (txn.fee / LAMPORTS_PER_SOL) * self.sol_price
        self.totals.transactions_processed += 1
        return True

    async def add_batch(self, txns: Iterable[ParsedTransaction]) -> int:
        processed = 0
        for txn in txns:
            if await self.add_transaction(txn):
                processed += 1
        return processed
