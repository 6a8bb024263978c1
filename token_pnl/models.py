"""
Domain types for a PnL run and parsing of Helius enhanced-transaction payloads.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

SPEND = "spend"
SALE = "sale"
IRRELEVANT = "irrelevant"


@dataclass(frozen=True)
class TokenInfo:
    price_per_token: float
    decimals: int
    symbol: str

    @classmethod
    def placeholder(cls, symbol: str = "") -> "TokenInfo":
        return cls(price_per_token=0.0, decimals=0, symbol=symbol)


# === Helius enhanced transaction shape ===
def _require_object(raw: Any, what: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise TypeError(f"expected {what} object, got {type(raw).__name__}")
    return raw


def _require_list(raw: Any, what: str) -> List[Any]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise TypeError(f"expected {what} list, got {type(raw).__name__}")
    return raw


@dataclass(frozen=True)
class TokenBalanceChange:
    user_account: Optional[str]
    token_account: Optional[str]
    mint: str

    @classmethod
    def from_helius(cls, raw: Dict[str, Any]) -> "TokenBalanceChange":
        raw = _require_object(raw, "tokenBalanceChange")
        return cls(
            user_account=raw.get("userAccount"),
            token_account=raw.get("tokenAccount"),
            mint=str(raw["mint"]),
        )


@dataclass(frozen=True)
class AccountData:
    account: str
    native_balance_change: int
    token_balance_changes: Tuple[TokenBalanceChange, ...]

    @classmethod
    def from_helius(cls, raw: Dict[str, Any]) -> "AccountData":
        raw = _require_object(raw, "accountData")
        changes = _require_list(raw.get("tokenBalanceChanges"), "tokenBalanceChanges")
        return cls(
            account=str(raw["account"]),
            native_balance_change=int(raw.get("nativeBalanceChange") or 0),
            token_balance_changes=tuple(TokenBalanceChange.from_helius(c) for c in changes),
        )


@dataclass(frozen=True)
class TokenTransfer:
    from_user_account: Optional[str]
    to_user_account: Optional[str]
    mint: str
    token_amount: float

    @classmethod
    def from_helius(cls, raw: Dict[str, Any]) -> "TokenTransfer":
        raw = _require_object(raw, "tokenTransfer")
        return cls(
            from_user_account=raw.get("fromUserAccount") or None,
            to_user_account=raw.get("toUserAccount") or None,
            mint=str(raw["mint"]),
            token_amount=float(raw["tokenAmount"]),
        )


@dataclass(frozen=True)
class ParsedTransaction:
    signature: str
    fee: int
    transaction_error: Any
    account_data: Tuple[AccountData, ...]
    token_transfers: Tuple[TokenTransfer, ...]

    @classmethod
    def from_helius(cls, raw: Dict[str, Any]) -> "ParsedTransaction":
        """
        Build from one element of the /v0/transactions response.
        Raises KeyError, TypeError or ValueError on an unexpected shape.
        """
        raw = _require_object(raw, "transaction")
        signature = raw["signature"]
        if not isinstance(signature, str) or not signature:
            raise ValueError("transaction without signature")
        accounts = _require_list(raw.get("accountData"), "accountData")
        transfers = _require_list(raw.get("tokenTransfers"), "tokenTransfers")
        return cls(
            signature=signature,
            fee=int(raw.get("fee") or 0),
            transaction_error=raw.get("transactionError"),
            account_data=tuple(AccountData.from_helius(a) for a in accounts),
            token_transfers=tuple(TokenTransfer.from_helius(t) for t in transfers),
        )

    def touches_mint(self, mint: str) -> bool:
        return any(
            change.mint == mint
            for account in self.account_data
            for change in account.token_balance_changes
        )

    def touches_account(self, account: str) -> bool:
        return any(a.account == account for a in self.account_data)


# === Aggregation state ===
@dataclass(frozen=True)
class TransferLeg:
    signature: str
    mint: str
    side: str
    amount: float
    price: float
    usd: float


@dataclass
class RunningTotals:
    spent_usd: float = 0.0
    sold_usd: float = 0.0
    fees_usd: float = 0.0
    transactions_processed: int = 0
    skipped: Dict[str, int] = field(default_factory=dict)
    legs: List[TransferLeg] = field(default_factory=list)

    def skip(self, reason: str) -> None:
        self.skipped[reason] = self.skipped.get(reason, 0) + 1

    def add_leg(self, leg: TransferLeg) -> None:
        if leg.side == SPEND:
            self.spent_usd += leg.usd
        elif leg.side == SALE:
            self.sold_usd += leg.usd
        else:
            raise ValueError(f"cannot total a {leg.side!r} leg")
        self.legs.append(leg)


@dataclass(frozen=True)
class PnLReport:
    wallet: str
    mint: str
    token_symbol: str

    spent_usd: float
    sold_usd: float
    fees_usd: float
    holding_usd: float
    profit_usd: float

    spent_sol: Optional[float]
    sold_sol: Optional[float]
    fees_sol: Optional[float]
    holding_sol: Optional[float]
    profit_sol: Optional[float]

    roi: Optional[float]

    balance: float
    token_price: float
    sol_price: float

    pages: int = 0
    signatures_seen: int = 0
    transactions_processed: int = 0
    transactions_skipped: Dict[str, int] = field(default_factory=dict)
    skipped_chunks: int = 0
    malformed_transactions: int = 0
    truncated: bool = False
    degraded: Tuple[Tuple[str, str], ...] = ()
    legs: Tuple[TransferLeg, ...] = ()

    def to_dict(self, include_legs: bool = False) -> Dict[str, Any]:
        data = asdict(self)
        data["degraded"] = [{"subject": s, "reason": r} for s, r in self.degraded]
        if include_legs:
            data["legs"] = [asdict(leg) for leg in self.legs]
        else:
            data.pop("legs")
        return data
