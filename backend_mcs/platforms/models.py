"""
Data models for platform responses.

TransactionRecord is the normalized ledger entry shared by the behavior and
risk analyzers; AssetHolding is one platform's portfolio snapshot. Both are
built from the platform JSON with from_api_item / from_api_payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any


class Platform(str, Enum):
    GOLD = "gold"
    SILVER = "silver"
    PLATINUM = "platinum"
    STABLE = "stable"


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    WITHDRAWAL = "withdrawal"


TOKEN_SYMBOLS = {
    Platform.GOLD: "BGT",
    Platform.SILVER: "BST",
    Platform.PLATINUM: "BPT",
    Platform.STABLE: "BINR",
}

PLATFORM_NAMES = {
    Platform.GOLD: "Gold",
    Platform.SILVER: "Silver",
    Platform.PLATINUM: "Platinum",
    Platform.STABLE: "BINR Stablecoin",
}

PRECIOUS_METALS = (Platform.GOLD, Platform.SILVER, Platform.PLATINUM)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 string or a Unix timestamp (seconds or milliseconds).

    Naive values are taken as UTC. Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        seconds = value / 1000.0 if value > 1e11 else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _optional_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


def _num(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class TransactionRecord:
    """
    One ledger entry from a platform, tagged with the platform it came from.

    amount is in currency units and never negative.
    """

    id: str
    platform: Platform
    type: TransactionType
    amount: float
    timestamp: datetime
    sip_contribution: bool = False
    from_wallet: str | None = None
    to_wallet: str | None = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"transaction {self.id}: negative amount {self.amount}")
        if self.timestamp.tzinfo is None:
            raise ValueError(f"transaction {self.id}: timestamp must be timezone-aware")

    @property
    def is_sell_side(self) -> bool:
        return self.type in (TransactionType.SALE, TransactionType.WITHDRAWAL)

    @classmethod
    def from_api_item(cls, item: dict[str, Any], platform: Platform) -> "TransactionRecord":
        """Build from one /transactions item. Raises ValueError on missing or bad fields."""
        if not isinstance(item, dict):
            raise ValueError(f"transaction item must be an object, got {type(item).__name__}")
        for key in ("type", "amount", "timestamp"):
            if item.get(key) is None:
                raise ValueError(f"transaction item missing {key!r}")
        try:
            tx_type = TransactionType(str(item["type"]).strip().lower())
        except ValueError:
            raise ValueError(f"unknown transaction type {item['type']!r}") from None
        amount = item["amount"]
        if isinstance(amount, bool):
            raise ValueError("transaction amount must be numeric")
        timestamp = parse_timestamp(item["timestamp"])
        tx_id = item.get("id") or item.get("_id") or f"{platform.value}-{timestamp.isoformat()}-{amount}"
        return cls(
            id=str(tx_id),
            platform=platform,
            type=tx_type,
            amount=float(amount),
            timestamp=timestamp,
            sip_contribution=bool(item.get("sipContribution", False)),
            from_wallet=item.get("from"),
            to_wallet=item.get("to"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "platform": self.platform.value,
            "token_symbol": TOKEN_SYMBOLS[self.platform],
            "type": self.type.value,
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
            "sip_contribution": self.sip_contribution,
            "from": self.from_wallet,
            "to": self.to_wallet,
        }


@dataclass
class AssetHolding:
    """
    Per-platform holding snapshot.

    Metal holdings are valued by `value`; the stable asset is valued by its
    balance. Stable-only fields stay at their defaults for metals.
    """

    platform: Platform
    address: str
    balance: float = 0.0
    tokens: float = 0.0
    value: float = 0.0
    """Currency value of the holding (metals)."""
    avg_purchase_price: float = 0.0
    current_price: float = 0.0
    profit_loss: float = 0.0
    profit_loss_percentage: float = 0.0
    sip_active: bool = False
    sip_amount: float = 0.0
    sip_frequency: str | None = None
    last_activity: datetime | None = None
    total_purchases: float = 0.0
    vault_stored: float = 0.0
    staking_rewards: float = 0.0
    total_deposits: float = 0.0
    total_withdrawals: float = 0.0
    avg_balance: float = 0.0
    transaction_count: int = 0
    interest_earned: float = 0.0
    yield_percentage: float = 0.0
    wallet_type: str | None = None

    @property
    def token_symbol(self) -> str:
        return TOKEN_SYMBOLS[self.platform]

    @property
    def name(self) -> str:
        return PLATFORM_NAMES[self.platform]

    @property
    def asset_value(self) -> float:
        """Currency value counted toward the portfolio total."""
        if self.platform is Platform.STABLE:
            return self.balance
        return self.value

    @property
    def last_activity_date(self) -> date | None:
        return self.last_activity.date() if self.last_activity else None

    @classmethod
    def from_api_payload(cls, platform: Platform, address: str, data: dict[str, Any]) -> "AssetHolding":
        """Build from a /portfolio/{address} response body."""
        if not isinstance(data, dict):
            raise ValueError(f"portfolio payload must be an object, got {type(data).__name__}")
        if platform is Platform.STABLE:
            return cls(
                platform=platform,
                address=address,
                balance=_num(data.get("balance")),
                tokens=_num(data.get("balance")),
                total_deposits=_num(data.get("totalDeposits")),
                total_withdrawals=_num(data.get("totalWithdrawals")),
                avg_balance=_num(data.get("avgBalance")),
                last_activity=_optional_timestamp(data.get("lastTransactionDate")),
                transaction_count=int(_num(data.get("transactionCount"))),
                interest_earned=_num(data.get("interestEarned")),
                yield_percentage=_num(data.get("yieldPercentage")),
                wallet_type=data.get("walletType") or "standard",
            )
        return cls(
            platform=platform,
            address=address,
            balance=_num(data.get("balance")),
            tokens=_num(data.get("tokens")),
            value=_num(data.get("inrValue")),
            avg_purchase_price=_num(data.get("avgPurchasePrice")),
            current_price=_num(data.get("currentPrice")),
            profit_loss=_num(data.get("profitLoss")),
            profit_loss_percentage=_num(data.get("profitLossPercentage")),
            sip_active=bool(data.get("sipActive", False)),
            sip_amount=_num(data.get("sipAmount")),
            sip_frequency=data.get("sipFrequency"),
            last_activity=_optional_timestamp(data.get("lastPurchaseDate")),
            total_purchases=_num(data.get("totalPurchases")),
            vault_stored=_num(data.get("vaultStored")),
            staking_rewards=_num(data.get("stakingRewards")),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "platform": self.platform.value,
            "token_symbol": self.token_symbol,
            "name": self.name,
            "address": self.address,
            "balance": self.balance,
            "value": self.asset_value,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
        }
        if self.platform is Platform.STABLE:
            out.update(
                total_deposits=self.total_deposits,
                total_withdrawals=self.total_withdrawals,
                avg_balance=self.avg_balance,
                transaction_count=self.transaction_count,
                interest_earned=self.interest_earned,
                yield_percentage=self.yield_percentage,
                wallet_type=self.wallet_type,
            )
        else:
            out.update(
                tokens=self.tokens,
                avg_purchase_price=self.avg_purchase_price,
                current_price=self.current_price,
                profit_loss=self.profit_loss,
                profit_loss_percentage=self.profit_loss_percentage,
                sip_active=self.sip_active,
                sip_amount=self.sip_amount,
                sip_frequency=self.sip_frequency,
                total_purchases=self.total_purchases,
                vault_stored=self.vault_stored,
                staking_rewards=self.staking_rewards,
            )
        return out
