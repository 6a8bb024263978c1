import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from token_pnl.config import configure_logging, get_settings
from token_pnl.errors import InvalidAddressError, PnLTimeoutError
from token_pnl.pnl import compute_pnl_with_timeout
from token_pnl.report import format_report, report_lines_for_legs

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="token-pnl",
        description="Spend, sales, holding value and profit of a wallet for one token.",
    )
    parser.add_argument("wallet", help="Wallet address")
    parser.add_argument("contract", help="Token mint address")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--legs", action="store_true", help="Include the per-leg breakdown")
    parser.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds (0 = never)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    settings = get_settings()

    try:
        report = asyncio.run(
            compute_pnl_with_timeout(args.wallet, args.contract, timeout=args.timeout, settings=settings)
        )
    except InvalidAddressError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except PnLTimeoutError as e:
        logger.error(str(e))
        print("Could not compute PnL: timed out", file=sys.stderr)
        return 1
    except Exception:
        logger.exception("PnL computation failed")
        print("Could not compute PnL for this wallet/token", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(report.to_dict(include_legs=args.legs), indent=2))
        return 0

    print(format_report(report))
    if args.legs:
        print()
        print("\n".join(report_lines_for_legs(report)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
