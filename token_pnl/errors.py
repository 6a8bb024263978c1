"""Exception taxonomy for PnL runs.

Only failures the retry and degrade policies cannot absorb are raised; every
other upstream problem is folded into zero-valued data points.
"""
from typing import Any, Optional


class PnLError(Exception):
    """Base class for failures that abort a PnL run."""


class InvalidAddressError(PnLError, ValueError):
    def __init__(self, kind: str, address: str):
        super().__init__(f"Invalid {kind} address: {address!r}")
        self.kind = kind
        self.address = address


class HttpStatusError(PnLError):
    def __init__(self, status: int, url: str, body: str = ""):
        super().__init__(f"HTTP {status} for {url}: {body[:200]}")
        self.status = status
        self.url = url
        self.body = body


class RpcError(PnLError):
    def __init__(self, method: str, error: Any):
        super().__init__(f"RPC {method} returned error: {error}")
        self.method = method
        self.error = error


class SignatureFetchError(PnLError):
    def __init__(self, wallet: str, before: Optional[str], attempts: int):
        super().__init__(
            f"Could not fetch signatures for {wallet} (before={before}) after {attempts} attempts"
        )
        self.wallet = wallet
        self.before = before
        self.attempts = attempts


class PnLTimeoutError(PnLError):
    def __init__(self, timeout: float):
        super().__init__(f"PnL computation exceeded {timeout:.0f}s")
        self.timeout = timeout
