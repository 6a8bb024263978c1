"""
token_pnl: wallet/token profit & loss from Solana transaction history.

Given a wallet and a token mint, walks the wallet's full signature history
through Helius, prices the counter-asset legs of every transaction touching
the token and reports what was spent, sold, paid in fees and still held, in
USD and SOL, with the resulting profit and ROI.
"""

from token_pnl.models import PnLReport
from token_pnl.pnl import compute_pnl, compute_pnl_with_timeout

__version__ = "0.1.0"

__all__ = ["PnLReport", "compute_pnl", "compute_pnl_with_timeout"]
