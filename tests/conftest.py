"""
Pytest fixtures for token_pnl tests. A scripted fake stands in for the
Helius / Jupiter client so no test touches the network.
"""

from __future__ import annotations

from typing import Any

import pytest

from token_pnl.config import USDC_MINT, WSOL_MINT, Settings

WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
MINT = "6fzQtvZ224efM1Mai7avfLWke59ipLfdWaJ21UdYpump"
POOL = "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1"
OTHER_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


def sigs(n: int, prefix: str = "sig") -> list[str]:
    return [f"{prefix}{i:04d}" for i in range(n)]


def transfer(src, dst, mint, amount) -> dict:
    return {
        "fromUserAccount": src,
        "toUserAccount": dst,
        "fromTokenAccount": None,
        "toTokenAccount": None,
        "tokenAmount": amount,
        "mint": mint,
    }


def helius_tx(signature: str, transfers: list[dict], *, fee: int = 0, error: Any = None,
              accounts: tuple = (WALLET, POOL), balance_mints: tuple = (MINT,)) -> dict:
    """Build one /v0/transactions element; the first account carries the token balance changes."""
    account_data = []
    for i, account in enumerate(accounts):
        changes = []
        if i == 0:
            changes = [
                {"userAccount": account, "tokenAccount": "ta" + account[:8], "mint": m,
                 "rawTokenAmount": {"tokenAmount": "1", "decimals": 6}}
                for m in balance_mints
            ]
        account_data.append({"account": account, "nativeBalanceChange": 0, "tokenBalanceChanges": changes})
    return {
        "signature": signature,
        "fee": fee,
        "transactionError": error,
        "accountData": account_data,
        "tokenTransfers": transfers,
    }


def asset(price: float | None, symbol: str = "TKN", decimals: int = 6) -> dict:
    token_info = {"symbol": symbol, "decimals": decimals}
    if price is not None:
        token_info["price_info"] = {"price_per_token": price, "currency": "USDC"}
    return {"id": "x", "token_info": token_info, "content": {"metadata": {"symbol": symbol}}}


class FakeClient:
    """
    Scripted stand-in for token_pnl.http.HttpClient.

    signature_pages: answers for successive getSignaturesForAddress calls; an
      Exception instance is raised instead of returned.
    transactions: signature -> raw enhanced transaction.
    assets: mint -> getAsset result (or Exception).
    failing_batches: indexes of get_enhanced_transactions calls that raise.
    """

    def __init__(self, signature_pages=None, transactions=None, assets=None, balance=0.0,
                 sol_price: Any = 150.0, failing_batches=()):
        self.signature_pages = list(signature_pages or [])
        self.transactions = dict(transactions or {})
        self.assets = dict(assets or {})
        self.balance = balance
        self.sol_price = sol_price
        self.failing_batches = set(failing_batches)
        self.signature_calls: list[dict] = []
        self.batch_calls: list[list[str]] = []
        self.asset_calls: list[str] = []
        self.rpc_methods: list[str] = []

    async def rpc(self, method: str, params: Any) -> Any:
        self.rpc_methods.append(method)
        if method == "getSignaturesForAddress":
            self.signature_calls.append(dict(params[1]))
            answer = self.signature_pages.pop(0) if self.signature_pages else []
            if isinstance(answer, Exception):
                raise answer
            return [{"signature": s, "err": None} for s in answer]
        if method == "getAsset":
            mint = params["id"]
            self.asset_calls.append(mint)
            answer = self.assets.get(mint)
            if isinstance(answer, Exception):
                raise answer
            return answer
        if method == "getTokenAccountsByOwner":
            if isinstance(self.balance, Exception):
                raise self.balance
            return {"value": [{"account": {"data": {"parsed": {"info": {
                "mint": params[1]["mint"], "tokenAmount": {"uiAmount": self.balance}}}}}}]}
        raise AssertionError(f"unexpected rpc {method}")

    async def get_json(self, url, params=None, headers=None, rate_key=None):
        if isinstance(self.sol_price, Exception):
            raise self.sol_price
        return {"data": {WSOL_MINT: {"id": WSOL_MINT, "price": str(self.sol_price)}}}

    async def get_enhanced_transactions(self, signatures):
        index = len(self.batch_calls)
        self.batch_calls.append(list(signatures))
        if index in self.failing_batches:
            from token_pnl.errors import HttpStatusError
            raise HttpStatusError(500, "https://api.helius.xyz/v0/transactions", "boom")
        return [self.transactions[s] for s in signatures if s in self.transactions]


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings():
    return Settings(helius_api_key="test-key", signature_page_size=10, pnl_timeout=0)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def default_assets():
    return {
        MINT: asset(2.0, symbol="MTK"),
        USDC_MINT: asset(1.0, symbol="USDC"),
    }
