import logging

from token_pnl.results import Degraded, Lookup, Ok

logger = logging.getLogger(__name__)


async def fetch_token_balance(client, wallet: str, mint: str) -> Lookup[float]:
    """
    Held quantity of `mint` for `wallet`: the UI amount of the first token
    account returned by getTokenAccountsByOwner, 0 when there is none.
    """
    try:
        result = await client.rpc(
            "getTokenAccountsByOwner",
            [wallet, {"mint": mint}, {"encoding": "jsonParsed"}],
        )
    except Exception as e:
        logger.error(f"Error fetching token balance for {wallet}: {e}")
        return Degraded(0.0, f"getTokenAccountsByOwner failed: {e}")

    if not isinstance(result, dict):
        return Degraded(0.0, "getTokenAccountsByOwner returned no result")
    accounts = result.get("value") or []
    if not isinstance(accounts, list):
        logger.warning(f"Unexpected getTokenAccountsByOwner value for {wallet}: {type(accounts).__name__}")
        return Degraded(0.0, "unexpected getTokenAccountsByOwner shape")
    if not accounts:
        return Ok(0.0)
    try:
        info = accounts[0].get("account", {}).get("data", {}).get("parsed", {}).get("info", {})
        amount = (info.get("tokenAmount") or {}).get("uiAmount")
        return Ok(float(amount or 0.0))
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Unexpected token account shape for {wallet}: {e!r}")
        return Degraded(0.0, "unparseable token account")
