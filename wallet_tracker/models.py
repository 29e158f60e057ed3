# models.py
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import NamedTuple

from wallet_tracker.constants import TP_PRECISION


def new_id() -> str:
    return uuid.uuid4().hex


class AssetType(StrEnum):
    STOCK = "Stock"
    ETF = "ETF"
    CRYPTO = "Crypto"


class AssetStatus(StrEnum):
    ACTIVE = "active"
    HIDDEN = "hidden"
    ARCHIVED = "archived"


class TxnAction(StrEnum):
    BUY = "Buy"
    SELL = "Sell"
    DIVIDEND = "Dividend"
    SLP = "SLP"  # Stock lending payment, cash only
    SPLIT = "Split"


class WalletType(StrEnum):
    SWING = "Swing"
    HOLD = "Hold"


class TargetProximity(StrEnum):
    HIT = "hit"  # green
    NEAR = "near"  # yellow
    FAR = "far"  # no highlight


@dataclass
class Asset:
    symbol: str
    asset_type: AssetType = AssetType.STOCK
    name: str | None = None
    region: str | None = None
    test_price: float | None = None  # Overrides the fetched price when set
    commission: float = 0.0  # Percent of each sale
    status: AssetStatus = AssetStatus.ACTIVE
    budget: float | None = None  # Annual budget
    htp: float | None = None  # Hold take-profit percent
    total_out_of_pocket: float = 0.0
    cash_balance: float = 0.0
    id: str = field(default_factory=new_id)


@dataclass
class EntryTarget:
    asset_id: str
    target_percent: float  # Drop percent that flags a buy, e.g. 4 for -4%
    sort_order: int = 1
    name: str | None = None
    id: str = field(default_factory=new_id)


@dataclass
class ProfitTarget:
    asset_id: str
    target_percent: float  # Gain percent at which the wallet sells
    allocation_percent: float  # Share of each buy routed to this target's wallets
    sort_order: int = 1
    name: str | None = None
    wallet_type: WalletType = WalletType.SWING
    id: str = field(default_factory=new_id)


class WalletKey(NamedTuple):
    """Composite identity of a wallet: one per asset, profit target and buy price."""

    asset_id: str
    profit_target_id: str
    buy_price: float

    @classmethod
    def of(cls, asset_id: str, profit_target_id: str, buy_price: float) -> "WalletKey":
        return cls(asset_id, profit_target_id, round(buy_price, TP_PRECISION))


@dataclass
class Wallet:
    asset_id: str
    profit_target_id: str
    buy_price: float
    created_date: date  # Date of the buy that opened the wallet
    wallet_type: WalletType = WalletType.SWING
    total_shares_qty: float = 0.0
    total_investment: float = 0.0
    shares_sold: float = 0.0
    remaining_shares: float = 0.0
    realized_pl: float = 0.0
    realized_pl_percent: float | None = None
    sell_txn_count: int = 0
    tp_value: float | None = None
    tp_percent: float | None = None
    archived: bool = False  # Hidden once every share has been sold
    id: str = field(default_factory=new_id)

    @property
    def key(self) -> WalletKey:
        return WalletKey.of(self.asset_id, self.profit_target_id, self.buy_price)


@dataclass
class Allocation:
    profit_target_id: str
    percent: float
    shares: float = 0.0
    investment: float = 0.0
    transaction_id: str | None = None


@dataclass
class Transaction:
    asset_id: str
    action: TxnAction
    txn_date: date
    seq: int = 0  # Orders transactions recorded on the same date
    signal: str | None = None
    price: float | None = None
    quantity: float | None = None
    investment: float | None = None
    amount: float | None = None  # Cash for Dividend/SLP
    split_ratio: float | None = None
    txn_type: WalletType | None = None
    completed_wallet_id: str | None = None  # Wallet closed by a Sell
    txn_profit: float | None = None
    txn_profit_percent: float | None = None
    allocations: list[Allocation] = field(default_factory=list)
    id: str = field(default_factory=new_id)


@dataclass
class HistoricalClose:
    close_date: date
    close: float


@dataclass
class PriceSnapshot:
    symbol: str
    current_price: float | None
    historical_closes: list[HistoricalClose] = field(default_factory=list)
    fetched_datetime: datetime | None = None
    is_test_price: bool = False


@dataclass
class CashFlowState:
    total_out_of_pocket: float = 0.0
    cash_balance: float = 0.0


@dataclass
class WalletRow:
    """A wallet as shown in the active wallet list of an asset."""

    wallet: Wallet
    profit_target_percent: float | None
    percent_to_target: float | None
    proximity: TargetProximity | None
    percent_to_break_even: float | None
    unrealized_pl: float | None
    htp_trigger_price: float | None
    htp_triggered: bool


@dataclass
class DashboardRow:
    asset_id: str
    symbol: str
    current_price: float | None
    is_test_price: bool
    five_day_dip: float | None
    last_buy_dip: float | None
    days_since_buy: int | None
    days_since_sell: int | None
    buy_count: int
    percent_to_target: float | None
    proximity: TargetProximity | None
    percent_to_break_even: float | None
    percent_to_htp: float | None
    htp_triggered: bool
    total_shares: float
    available: float | None
    grayed_out: bool

    @property
    def buy_opportunity(self) -> bool:
        return self.five_day_dip is not None or self.last_buy_dip is not None


@dataclass
class ProfitLoss:
    """
    Realized/unrealized profit and loss split by swing vs hold wallets.
    """

    realized_swing: float = 0.0
    realized_hold: float = 0.0
    unrealized_swing: float = 0.0
    unrealized_hold: float = 0.0
    cost_basis: float = 0.0

    @property
    def realized(self) -> float:
        return self.realized_swing + self.realized_hold

    @property
    def unrealized(self) -> float:
        return self.unrealized_swing + self.unrealized_hold

    @property
    def combined(self) -> float:
        return self.realized + self.unrealized


@dataclass
class AssetProfitLoss:
    asset_id: str
    symbol: str
    pl: ProfitLoss
    roi: float | None
    total_out_of_pocket: float
    cash_balance: float
    market_value: float
    roic: float | None


@dataclass
class ProfitLossSummary:
    """
    Represents the aggregated profit and loss of the whole portfolio.
    """

    assets: list[AssetProfitLoss]
    total: ProfitLoss
    roi: float | None


@dataclass
class GroupSummary:
    group_name: str
    max_risk: float
    out_of_pocket: float
    tied_up: float
    market_value: float
    roic: float
