"""
Wallet accounting for Buy, Sell, Dividend and SLP transactions.

A buy is split across the asset's profit targets and lands in one wallet per
(profit target, buy price). A sell draws down one wallet and books realized
profit against it. All functions mutate the given Ledger in place.
"""

import logging
from collections.abc import Mapping
from datetime import date

from wallet_tracker.cash_flow import rebuild_cash_flow
from wallet_tracker.constants import (
    ALLOCATION_TOLERANCE,
    SHARE_EPSILON,
    TP_PRECISION,
)
from wallet_tracker.exceptions import (
    AllocationError,
    InsufficientSharesError,
    IntegrityError,
    ValidationError,
)
from wallet_tracker.ledger import Ledger
from wallet_tracker.models import (
    Allocation,
    Asset,
    ProfitTarget,
    Transaction,
    TxnAction,
    Wallet,
    WalletKey,
)
from wallet_tracker.splits import cumulative_split_factor, delete_split
from wallet_tracker.utils.number_utils import is_zero_shares, safe_percent, snap_shares

logger: logging.Logger = logging.getLogger(__name__)


def calculate_tp(buy_price: float, target_percent: float, commission: float = 0.0) -> float:
    """
    Target sell price for a wallet.

    The plain target is grossed up so the gain survives the sell commission.
    A commission of 100% or more cannot be grossed up and leaves the plain target.
    """
    base_tp: float = buy_price * (1 + target_percent / 100)
    commission_rate: float = (commission or 0.0) / 100
    if commission_rate >= 1:
        logger.warning(f"Commission {commission}% too high to adjust target price, using base")
        return round(base_tp, TP_PRECISION)
    return round(base_tp / (1 - commission_rate), TP_PRECISION)


def resolve_allocations(
    ledger: Ledger, asset_id: str, allocations: Mapping[str, float] | None
) -> dict[str, float]:
    """Check a profit-target -> percent mapping for a buy, defaulting to the targets' own split."""
    targets: list[ProfitTarget] = ledger.profit_targets_for(asset_id)
    if not targets:
        raise ValidationError("Asset has no profit targets to allocate to", field="allocations")

    if allocations is None:
        resolved: dict[str, float] = {t.id: t.allocation_percent for t in targets}
    else:
        known: set[str] = {t.id for t in targets}
        resolved = {}
        for target_id, percent in allocations.items():
            if target_id not in known:
                raise ValidationError(
                    f"Profit target {target_id} does not belong to this asset", field="allocations"
                )
            if percent is None or percent < 0 or percent > 100:
                raise ValidationError(
                    f"Allocation for {target_id} must be between 0 and 100", field="allocations"
                )
            resolved[target_id] = float(percent)

    total: float = sum(resolved.values())
    if abs(total - 100) > ALLOCATION_TOLERANCE:
        raise AllocationError(total)
    return resolved


def record_buy(
    ledger: Ledger,
    asset_id: str,
    txn_date: date,
    price: float | None,
    investment: float | None,
    allocations: Mapping[str, float] | None = None,
    signal: str | None = None,
) -> Transaction:
    """
    Record a buy and route its investment into the asset's wallets.

    Raises:
        ValidationError: price or investment missing or not positive
        AllocationError: allocation percents do not add up to 100
    """
    if price is None or price <= 0:
        raise ValidationError("Price is required and must be greater than 0", field="price")
    if investment is None or investment <= 0:
        raise ValidationError(
            "Investment is required and must be greater than 0", field="investment"
        )

    asset: Asset = ledger.get_asset(asset_id)
    resolved: dict[str, float] = resolve_allocations(ledger, asset_id, allocations)
    factor: float = cumulative_split_factor(ledger.splits_for(asset_id), txn_date)

    txn: Transaction = Transaction(
        asset_id=asset_id,
        action=TxnAction.BUY,
        txn_date=txn_date,
        signal=signal,
        price=price,
        quantity=investment / price,
        investment=investment,
    )

    for target_id, percent in resolved.items():
        if percent <= 0:
            continue
        target: ProfitTarget = ledger.get_profit_target(target_id)
        split_investment: float = investment * percent / 100
        shares: float = split_investment / price
        txn.allocations.append(
            Allocation(
                profit_target_id=target_id,
                percent=percent,
                shares=shares,
                investment=split_investment,
                transaction_id=txn.id,
            )
        )
        _add_to_wallet(
            ledger,
            asset,
            target,
            txn_date,
            price / factor,
            shares * factor,
            split_investment,
        )

    _ = ledger.add_transaction(txn)
    _ = rebuild_cash_flow(ledger, asset_id)
    logger.info(
        f"Recorded buy of {txn.quantity:.5f} {asset.symbol} @ {price:.2f} "
        f"({investment:.2f}) across {len(txn.allocations)} wallets"
    )
    return txn


def _add_to_wallet(
    ledger: Ledger,
    asset: Asset,
    target: ProfitTarget,
    txn_date: date,
    buy_price: float,
    shares: float,
    investment: float,
) -> Wallet:
    key: WalletKey = WalletKey.of(asset.id, target.id, buy_price)
    wallet: Wallet | None = ledger.get_wallet(key)
    if wallet is None:
        wallet = Wallet(
            asset_id=asset.id,
            profit_target_id=target.id,
            buy_price=key.buy_price,
            created_date=txn_date,
            wallet_type=target.wallet_type,
        )
        logger.debug(f"Opening wallet {wallet.id} at {key}")
    else:
        wallet.created_date = min(wallet.created_date, txn_date)

    wallet.total_shares_qty += shares
    wallet.total_investment += investment
    wallet.remaining_shares = snap_shares(wallet.remaining_shares + shares)
    wallet.archived = False
    wallet.tp_value = calculate_tp(wallet.buy_price, target.target_percent, asset.commission)
    wallet.tp_percent = target.target_percent
    return ledger.put_wallet(wallet)


def record_sell(
    ledger: Ledger,
    wallet_id: str,
    txn_date: date,
    price: float | None,
    quantity: float | None,
    signal: str | None = None,
) -> Transaction:
    """
    Sell shares out of one wallet.

    Raises:
        ValidationError: price or quantity missing or not positive
        InsufficientSharesError: quantity is more than the wallet holds
    """
    if price is None or price <= 0:
        raise ValidationError("Price is required and must be greater than 0", field="price")
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity is required and must be greater than 0", field="quantity")

    wallet: Wallet = ledger.get_wallet_by_id(wallet_id)
    asset: Asset = ledger.get_asset(wallet.asset_id)

    # A back-dated sell is restated in the wallet's post-split units
    factor: float = cumulative_split_factor(ledger.splits_for(asset.id), txn_date)
    wallet_qty: float = quantity * factor
    wallet_price: float = price / factor

    if wallet_qty > wallet.remaining_shares + SHARE_EPSILON:
        logger.warning(
            f"Rejected sell of {wallet_qty:.5f} from wallet {wallet.id} "
            f"holding {wallet.remaining_shares:.5f}"
        )
        raise InsufficientSharesError(wallet_qty, wallet.remaining_shares)

    profit: float = (wallet_price - wallet.buy_price) * wallet_qty - (
        wallet_price * wallet_qty * asset.commission / 100
    )

    wallet.remaining_shares = snap_shares(wallet.remaining_shares - wallet_qty)
    wallet.shares_sold += wallet_qty
    wallet.realized_pl += profit
    wallet.sell_txn_count += 1
    wallet.realized_pl_percent = safe_percent(
        wallet.realized_pl, wallet.buy_price * wallet.shares_sold
    )
    if is_zero_shares(wallet.remaining_shares):
        wallet.archived = True
    ledger.touch(wallet)

    txn: Transaction = ledger.add_transaction(
        Transaction(
            asset_id=asset.id,
            action=TxnAction.SELL,
            txn_date=txn_date,
            signal=signal,
            price=price,
            quantity=quantity,
            txn_type=wallet.wallet_type,
            completed_wallet_id=wallet.id,
            txn_profit=profit,
            txn_profit_percent=safe_percent(profit, wallet.buy_price * wallet_qty),
        )
    )
    _ = rebuild_cash_flow(ledger, asset.id)
    logger.info(
        f"Recorded sell of {quantity:.5f} {asset.symbol} @ {price:.2f} from wallet {wallet.id}, "
        f"profit {profit:.2f}"
    )
    return txn


def record_cash(
    ledger: Ledger,
    asset_id: str,
    action: TxnAction,
    txn_date: date,
    amount: float | None,
    signal: str | None = None,
) -> Transaction:
    """Record a dividend or stock-lending payment. Cash only, wallets are untouched."""
    if action not in (TxnAction.DIVIDEND, TxnAction.SLP):
        raise ValidationError(f"{action} is not a cash transaction", field="action")
    if amount is None or amount <= 0:
        raise ValidationError("Amount is required and must be greater than 0", field="amount")

    asset: Asset = ledger.get_asset(asset_id)
    txn: Transaction = ledger.add_transaction(
        Transaction(
            asset_id=asset_id, action=action, txn_date=txn_date, amount=amount, signal=signal
        )
    )
    _ = rebuild_cash_flow(ledger, asset_id)
    logger.info(f"Recorded {action} of {amount:.2f} for {asset.symbol}")
    return txn


def delete_transaction(ledger: Ledger, txn_id: str) -> None:
    """Remove a transaction and reverse its effect on wallets and cash flow."""
    txn: Transaction = ledger.get_transaction(txn_id)

    if txn.action == TxnAction.SPLIT:
        delete_split(ledger, txn)
    elif txn.action == TxnAction.BUY:
        _reverse_buy(ledger, txn)
        ledger.remove_transaction(txn)
    elif txn.action == TxnAction.SELL:
        _reverse_sell(ledger, txn)
        ledger.remove_transaction(txn)
    else:
        ledger.remove_transaction(txn)

    _ = rebuild_cash_flow(ledger, txn.asset_id)
    logger.info(f"Deleted {txn.action} transaction {txn.id} dated {txn.txn_date}")


def _reverse_buy(ledger: Ledger, txn: Transaction) -> None:
    factor: float = cumulative_split_factor(ledger.splits_for(txn.asset_id), txn.txn_date)
    price: float = (txn.price or 0.0) / factor

    # Check every wallet before touching any of them
    touched: list[tuple[Wallet, Allocation]] = []
    for allocation in txn.allocations:
        key: WalletKey = WalletKey.of(txn.asset_id, allocation.profit_target_id, price)
        wallet: Wallet | None = ledger.get_wallet(key)
        if wallet is None:
            raise IntegrityError(f"Wallet for buy {txn.id} no longer exists at {key}")
        if wallet.remaining_shares - allocation.shares * factor < -SHARE_EPSILON:
            raise IntegrityError(
                f"Cannot delete buy {txn.id}: shares from wallet {wallet.id} have already been sold. "
                "Delete the sell transactions first."
            )
        touched.append((wallet, allocation))

    for wallet, allocation in touched:
        wallet.total_shares_qty = snap_shares(wallet.total_shares_qty - allocation.shares * factor)
        wallet.remaining_shares = snap_shares(wallet.remaining_shares - allocation.shares * factor)
        wallet.total_investment = max(0.0, wallet.total_investment - allocation.investment)
        if is_zero_shares(wallet.total_shares_qty) and wallet.sell_txn_count == 0:
            ledger.remove_wallet(wallet)
            logger.debug(f"Removed empty wallet {wallet.id}")
        else:
            wallet.archived = is_zero_shares(wallet.remaining_shares)
            ledger.touch(wallet)


def _reverse_sell(ledger: Ledger, txn: Transaction) -> None:
    if not txn.completed_wallet_id:
        raise IntegrityError(f"Sell {txn.id} is not linked to a wallet")
    wallet: Wallet = ledger.get_wallet_by_id(txn.completed_wallet_id)
    factor: float = cumulative_split_factor(ledger.splits_for(txn.asset_id), txn.txn_date)
    wallet_qty: float = (txn.quantity or 0.0) * factor

    wallet.remaining_shares = snap_shares(wallet.remaining_shares + wallet_qty)
    wallet.shares_sold = snap_shares(wallet.shares_sold - wallet_qty)
    wallet.realized_pl -= txn.txn_profit or 0.0
    wallet.sell_txn_count = max(0, wallet.sell_txn_count - 1)
    wallet.realized_pl_percent = safe_percent(
        wallet.realized_pl, wallet.buy_price * wallet.shares_sold
    )
    wallet.archived = is_zero_shares(wallet.remaining_shares)
    ledger.touch(wallet)
