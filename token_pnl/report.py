"""
Presentation of a PnLReport: two-decimal text summary and per-leg tables.
Rounding happens here only; the report itself keeps full precision.
"""
from typing import Iterable, List, Optional

import pandas as pd

from token_pnl.models import PnLReport, TransferLeg

NOT_AVAILABLE = "n/a"

LEG_COLUMNS = ["signature", "mint", "side", "amount", "price", "usd"]


def fmt_amount(value: Optional[float], unit: str) -> str:
    if value is None:
        return NOT_AVAILABLE
    if unit == "$":
        return f"{value:,.2f} $"
    return f"{value:,.2f} {unit}"


def fmt_roi(roi: Optional[float]) -> str:
    if roi is None:
        return NOT_AVAILABLE
    sign = "+" if roi >= 0 else "-"
    return f"{sign}{abs(roi):.2f} %"


def format_report(report: PnLReport) -> str:
    symbol = f"${report.token_symbol}" if report.token_symbol else report.mint
    lines = [
        symbol,
        f"BOUGHT   {fmt_amount(report.spent_sol, 'SOL'):>16}  {fmt_amount(report.spent_usd, '$'):>16}",
        f"SOLD     {fmt_amount(report.sold_sol, 'SOL'):>16}  {fmt_amount(report.sold_usd, '$'):>16}",
        f"HOLDING  {fmt_amount(report.holding_sol, 'SOL'):>16}  {fmt_amount(report.holding_usd, '$'):>16}",
        f"FEES     {fmt_amount(report.fees_sol, 'SOL'):>16}  {fmt_amount(report.fees_usd, '$'):>16}",
        f"PROFIT   {fmt_amount(report.profit_sol, 'SOL'):>16}  {fmt_amount(report.profit_usd, '$'):>16}",
        f"ROI      {fmt_roi(report.roi):>16}",
    ]
    notes = []
    if report.truncated:
        notes.append("history truncated by max_pages")
    if report.skipped_chunks:
        notes.append(f"{report.skipped_chunks} transaction batch(es) unavailable")
    for subject, reason in report.degraded:
        notes.append(f"{subject}: {reason}")
    if notes:
        lines.append("")
        lines.extend(f"* {n}" for n in notes)
    return "\n".join(lines)


def legs_frame(legs: Iterable[TransferLeg]) -> pd.DataFrame:
    rows = [
        {
            "signature": leg.signature,
            "mint": leg.mint,
            "side": leg.side,
            "amount": leg.amount,
            "price": leg.price,
            "usd": leg.usd,
        }
        for leg in legs
    ]
    df = pd.DataFrame(rows, columns=LEG_COLUMNS)
    return df.astype(
        {"signature": "string", "mint": "string", "side": "string", "amount": "float64", "price": "float64", "usd": "float64"}
    )


def summarize_legs(legs: Iterable[TransferLeg]) -> pd.DataFrame:
    """Per counter-asset mint and side: leg count, total amount, total USD."""
    df = legs_frame(legs)
    if df.empty:
        return pd.DataFrame(columns=["mint", "side", "legs", "amount", "usd"])
    grouped = (
        df.groupby(["mint", "side"], sort=True)
        .agg(legs=("signature", "count"), amount=("amount", "sum"), usd=("usd", "sum"))
        .reset_index()
    )
    return grouped


def report_lines_for_legs(report: PnLReport) -> List[str]:
    summary = summarize_legs(report.legs)
    if summary.empty:
        return ["No priced legs."]
    return summary.round({"amount": 6, "usd": 2}).to_string(index=False).splitlines()
