"""
Read-only report calculations over the ledger and price snapshots.

Nothing here mutates the ledger; every figure is re-derived on each call.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date

from wallet_tracker.cash_flow import roic
from wallet_tracker.constants import (
    FIVE_DAY_WINDOW,
    SHARE_EPSILON,
    TARGET_HIT_THRESHOLD,
    TARGET_NEAR_THRESHOLD,
)
from wallet_tracker.ledger import Ledger
from wallet_tracker.models import (
    Asset,
    AssetProfitLoss,
    AssetStatus,
    AssetType,
    DashboardRow,
    GroupSummary,
    HistoricalClose,
    PriceSnapshot,
    ProfitLoss,
    ProfitLossSummary,
    ProfitTarget,
    TargetProximity,
    Transaction,
    TxnAction,
    Wallet,
    WalletRow,
    WalletType,
)
from wallet_tracker.splits import cumulative_split_factor
from wallet_tracker.targets import entry_threshold
from wallet_tracker.utils.number_utils import safe_percent

logger: logging.Logger = logging.getLogger(__name__)


def percent_to_target(current_price: float | None, target_price: float | None) -> float | None:
    """How far the price is from a target: 0 at the target, negative below it."""
    if current_price is None or target_price is None or target_price <= 0:
        return None
    return (current_price / target_price - 1) * 100


def classify_percent_to_target(value: float | None) -> TargetProximity | None:
    if value is None:
        return None
    if value >= TARGET_HIT_THRESHOLD:
        return TargetProximity.HIT
    if value >= TARGET_NEAR_THRESHOLD:
        return TargetProximity.NEAR
    return TargetProximity.FAR


def five_day_dip(
    current_price: float | None,
    closes: Iterable[HistoricalClose],
    threshold: float | None,
) -> float | None:
    """
    Deepest drop of the current price against any of the latest five closes.

    Only drops of at least `threshold` percent count (a threshold of 4 means
    -4% or lower); None when no close qualifies.
    """
    if current_price is None or threshold is None:
        return None
    latest: list[HistoricalClose] = sorted(closes, key=lambda c: c.close_date, reverse=True)[
        :FIVE_DAY_WINDOW
    ]
    deepest: float | None = None
    for past in latest:
        if past.close <= 0:
            continue
        diff: float = (current_price / past.close - 1) * 100
        if diff <= -threshold and (deepest is None or diff < deepest):
            deepest = diff
    return deepest


def last_buy_dip(
    current_price: float | None, last_buy_price: float | None, threshold: float | None
) -> float | None:
    """Drop since the last buy, when it is at least `threshold` percent."""
    if current_price is None or last_buy_price is None or threshold is None:
        return None
    if last_buy_price <= 0:
        return None
    diff: float = (current_price / last_buy_price - 1) * 100
    return diff if diff <= -threshold else None


def percent_to_break_even(current_price: float | None, buy_price: float | None) -> float | None:
    if current_price is None or buy_price is None or buy_price <= 0:
        return None
    return (current_price / buy_price - 1) * 100


def htp_trigger_price(
    buy_price: float | None, htp: float | None, commission: float | None = None
) -> float | None:
    """Price at which a hold wallet has made its hold take-profit, commission included."""
    if buy_price is None or htp is None or buy_price <= 0 or htp <= 0:
        return None
    before_commission: float = buy_price * (1 + htp / 100)
    if commission and commission > 0:
        return before_commission + before_commission * commission / 100
    return before_commission


def percent_to_htp(
    current_price: float | None,
    buy_price: float | None,
    htp: float | None,
    commission: float | None = None,
) -> float | None:
    return percent_to_target(current_price, htp_trigger_price(buy_price, htp, commission))


def current_price_for(
    asset: Asset, prices: Mapping[str, PriceSnapshot]
) -> tuple[float | None, bool]:
    """Current price of an asset and whether it is the asset's test price."""
    if asset.test_price is not None and asset.test_price > 0:
        return asset.test_price, True
    snapshot: PriceSnapshot | None = prices.get(asset.symbol)
    if snapshot is None:
        return None, False
    return snapshot.current_price, snapshot.is_test_price


def tied_up_investment(wallets: Iterable[Wallet]) -> float:
    """Investment still held in the market, prorated by the shares not yet sold."""
    total: float = 0.0
    for wallet in wallets:
        if wallet.total_shares_qty > SHARE_EPSILON and wallet.remaining_shares > SHARE_EPSILON:
            total += wallet.total_investment * wallet.remaining_shares / wallet.total_shares_qty
    return total


def budget_available(ledger: Ledger, asset: Asset) -> float | None:
    """Annual budget left: budget less tied-up investment, plus dividends and lending payments."""
    if asset.budget is None:
        return None
    cash_in: float = sum(
        t.amount or 0.0
        for t in ledger.transactions_for(asset.id)
        if t.action in (TxnAction.DIVIDEND, TxnAction.SLP)
    )
    return asset.budget - tied_up_investment(ledger.wallets_for(asset.id)) + cash_in


def _active_wallets(ledger: Ledger, asset_id: str) -> list[Wallet]:
    return [
        w
        for w in ledger.wallets_for(asset_id, include_archived=False)
        if w.remaining_shares > SHARE_EPSILON
    ]


def wallet_rows(ledger: Ledger, asset_id: str, current_price: float | None) -> list[WalletRow]:
    """Active wallets of an asset with their distance to target and to break-even."""
    asset: Asset = ledger.get_asset(asset_id)
    rows: list[WalletRow] = []
    for wallet in _active_wallets(ledger, asset_id):
        target: ProfitTarget | None = ledger.profit_targets.get(wallet.profit_target_id)
        to_target: float | None = percent_to_target(current_price, wallet.tp_value)
        trigger: float | None = None
        if wallet.wallet_type == WalletType.HOLD:
            trigger = htp_trigger_price(wallet.buy_price, asset.htp, asset.commission)
        unrealized: float | None = None
        if current_price is not None:
            unrealized = (current_price - wallet.buy_price) * wallet.remaining_shares
        rows.append(
            WalletRow(
                wallet=wallet,
                profit_target_percent=target.target_percent if target else wallet.tp_percent,
                percent_to_target=to_target,
                proximity=classify_percent_to_target(to_target),
                percent_to_break_even=percent_to_break_even(current_price, wallet.buy_price),
                unrealized_pl=unrealized,
                htp_trigger_price=trigger,
                htp_triggered=trigger is not None
                and current_price is not None
                and current_price >= trigger,
            )
        )
    return rows


def profit_loss(ledger: Ledger, asset_id: str, current_price: float | None) -> ProfitLoss:
    pl: ProfitLoss = ProfitLoss()
    for txn in ledger.transactions_for(asset_id, TxnAction.SELL):
        if txn.txn_type == WalletType.HOLD:
            pl.realized_hold += txn.txn_profit or 0.0
        else:
            pl.realized_swing += txn.txn_profit or 0.0

    for wallet in ledger.wallets_for(asset_id):
        pl.cost_basis += wallet.total_investment
        if current_price is None or wallet.remaining_shares <= SHARE_EPSILON:
            continue
        unrealized: float = (current_price - wallet.buy_price) * wallet.remaining_shares
        if wallet.wallet_type == WalletType.HOLD:
            pl.unrealized_hold += unrealized
        else:
            pl.unrealized_swing += unrealized
    return pl


def _market_value(ledger: Ledger, asset_id: str, current_price: float | None) -> float:
    if current_price is None:
        return 0.0
    return sum(w.remaining_shares * current_price for w in _active_wallets(ledger, asset_id))


def profit_loss_summary(
    ledger: Ledger,
    prices: Mapping[str, PriceSnapshot],
    asset_ids: Sequence[str] | None = None,
) -> ProfitLossSummary:
    """Realized, unrealized and combined P/L per asset and for the whole portfolio."""
    if asset_ids is None:
        asset_ids = [
            a.id for a in ledger.assets.values() if a.status != AssetStatus.ARCHIVED
        ]

    rows: list[AssetProfitLoss] = []
    total: ProfitLoss = ProfitLoss()
    for asset_id in asset_ids:
        asset: Asset = ledger.get_asset(asset_id)
        price, _ = current_price_for(asset, prices)
        pl: ProfitLoss = profit_loss(ledger, asset_id, price)
        market_value: float = _market_value(ledger, asset_id, price)
        rows.append(
            AssetProfitLoss(
                asset_id=asset.id,
                symbol=asset.symbol,
                pl=pl,
                roi=safe_percent(pl.combined, pl.cost_basis),
                total_out_of_pocket=asset.total_out_of_pocket,
                cash_balance=asset.cash_balance,
                market_value=market_value,
                roic=roic(asset.cash_balance, market_value, asset.total_out_of_pocket),
            )
        )
        total.realized_swing += pl.realized_swing
        total.realized_hold += pl.realized_hold
        total.unrealized_swing += pl.unrealized_swing
        total.unrealized_hold += pl.unrealized_hold
        total.cost_basis += pl.cost_basis

    logger.debug(f"P/L summary over {len(rows)} assets: combined {total.combined:.2f}")
    return ProfitLossSummary(
        assets=rows, total=total, roi=safe_percent(total.combined, total.cost_basis)
    )


def _last(txns: list[Transaction], action: TxnAction) -> Transaction | None:
    matching: list[Transaction] = [t for t in txns if t.action == action]
    return matching[-1] if matching else None


def dashboard_rows(
    ledger: Ledger, prices: Mapping[str, PriceSnapshot], today: date
) -> list[DashboardRow]:
    """One signal row per active asset, ordered by symbol."""
    rows: list[DashboardRow] = []
    assets: list[Asset] = sorted(
        (a for a in ledger.assets.values() if a.status == AssetStatus.ACTIVE),
        key=lambda a: a.symbol,
    )
    for asset in assets:
        price, is_test = current_price_for(asset, prices)
        threshold: float | None = entry_threshold(ledger, asset.id)
        txns: list[Transaction] = ledger.transactions_for(asset.id)
        last_buy: Transaction | None = _last(txns, TxnAction.BUY)
        last_sell: Transaction | None = _last(txns, TxnAction.SELL)
        snapshot: PriceSnapshot | None = prices.get(asset.symbol)
        closes: list[HistoricalClose] = snapshot.historical_closes if snapshot else []

        active: list[Wallet] = _active_wallets(ledger, asset.id)
        swing: list[Wallet] = [w for w in active if w.wallet_type == WalletType.SWING]
        hold: list[Wallet] = [w for w in active if w.wallet_type == WalletType.HOLD]
        swing_target_ids: set[str] = {
            t.id for t in ledger.profit_targets_for(asset.id) if t.wallet_type == WalletType.SWING
        }
        buy_count: int = sum(
            1
            for t in txns
            if t.action == TxnAction.BUY
            and any(a.profit_target_id in swing_target_ids for a in t.allocations)
        )

        # Nearest target is the lowest target price among swing wallets
        priced: list[Wallet] = [w for w in swing if w.tp_value]
        to_target: float | None = None
        if priced:
            nearest: Wallet = min(priced, key=lambda w: w.tp_value or 0.0)
            to_target = percent_to_target(price, nearest.tp_value)

        to_break_even: float | None = None
        if swing:
            to_break_even = percent_to_break_even(price, min(w.buy_price for w in swing))

        to_htp: float | None = None
        htp_triggered: bool = False
        if hold and asset.htp:
            lowest_hold: Wallet = min(hold, key=lambda w: w.buy_price)
            to_htp = percent_to_htp(price, lowest_hold.buy_price, asset.htp, asset.commission)
            htp_triggered = price is not None and any(
                price >= (htp_trigger_price(w.buy_price, asset.htp, asset.commission) or 0.0)
                for w in hold
            )

        # Buy prices recorded before a split are restated in post-split terms
        last_buy_price: float | None = None
        if last_buy is not None and last_buy.price:
            last_buy_price = last_buy.price / cumulative_split_factor(
                ledger.splits_for(asset.id), last_buy.txn_date
            )

        available: float | None = budget_available(ledger, asset)
        rows.append(
            DashboardRow(
                asset_id=asset.id,
                symbol=asset.symbol,
                current_price=price,
                is_test_price=is_test,
                five_day_dip=five_day_dip(price, closes, threshold),
                last_buy_dip=last_buy_dip(price, last_buy_price, threshold),
                days_since_buy=(today - last_buy.txn_date).days if last_buy else None,
                days_since_sell=(today - last_sell.txn_date).days if last_sell else None,
                buy_count=buy_count,
                percent_to_target=to_target,
                proximity=classify_percent_to_target(to_target),
                percent_to_break_even=to_break_even,
                percent_to_htp=to_htp,
                htp_triggered=htp_triggered,
                total_shares=sum(w.remaining_shares for w in active),
                available=available,
                grayed_out=available is not None and available < 0,
            )
        )
    return rows


def grouped_summary(
    ledger: Ledger, prices: Mapping[str, PriceSnapshot], group_by: str = "asset_type"
) -> list[GroupSummary]:
    """
    Portfolio exposure per asset type (or per region).

    Max risk counts the budgets of assets that are not hidden; ROIC here is
    market value against out-of-pocket, 0 when nothing has been put in.
    """
    if group_by == "asset_type":
        groups: dict[str, list[Asset]] = {t.value: [] for t in AssetType}
    elif group_by == "region":
        groups = {}
    else:
        raise ValueError(f"Cannot group by {group_by!r}")

    for asset in ledger.assets.values():
        if asset.status == AssetStatus.ARCHIVED:
            continue
        key: str = asset.asset_type.value if group_by == "asset_type" else asset.region or "Unknown"
        groups.setdefault(key, []).append(asset)

    results: list[GroupSummary] = []
    for name, members in groups.items():
        max_risk: float = 0.0
        oop: float = 0.0
        tied_up: float = 0.0
        market_value: float = 0.0
        for asset in members:
            if asset.status != AssetStatus.HIDDEN:
                max_risk += asset.budget or 0.0
            oop += asset.total_out_of_pocket
            tied_up += tied_up_investment(ledger.wallets_for(asset.id))
            price, _ = current_price_for(asset, prices)
            market_value += _market_value(ledger, asset.id, price)
        results.append(
            GroupSummary(
                group_name=name,
                max_risk=max_risk,
                out_of_pocket=oop,
                tied_up=tied_up,
                market_value=market_value,
                roic=(market_value - oop) / oop * 100 if oop > 0 else 0.0,
            )
        )
    if group_by == "region":
        results.sort(key=lambda g: g.group_name)
    return results
