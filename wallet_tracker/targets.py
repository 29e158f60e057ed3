"""Entry and profit target configuration for an asset."""

import logging

from wallet_tracker.accounting import calculate_tp
from wallet_tracker.constants import ALLOCATION_TOLERANCE, SHARE_EPSILON
from wallet_tracker.exceptions import ProfitTargetInUseError, ValidationError
from wallet_tracker.ledger import Ledger
from wallet_tracker.models import Asset, EntryTarget, ProfitTarget, WalletType

logger: logging.Logger = logging.getLogger(__name__)


def _check_percent(value: float | None, field: str, allow_zero: bool = False) -> float:
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{field} must be greater than 0", field=field)
    return float(value)


def _check_sort_order(
    existing: list[EntryTarget] | list[ProfitTarget], sort_order: int, skip_id: str | None = None
) -> None:
    for target in existing:
        if target.id != skip_id and target.sort_order == sort_order:
            raise ValidationError(
                f"Sort order {sort_order} is already used by another target", field="sort_order"
            )


def add_entry_target(
    ledger: Ledger,
    asset_id: str,
    target_percent: float,
    sort_order: int | None = None,
    name: str | None = None,
) -> EntryTarget:
    _ = ledger.get_asset(asset_id)
    existing: list[EntryTarget] = ledger.entry_targets_for(asset_id)
    if sort_order is None:
        sort_order = max((t.sort_order for t in existing), default=0) + 1
    _check_sort_order(existing, sort_order)

    target: EntryTarget = ledger.add_entry_target(
        EntryTarget(
            asset_id=asset_id,
            target_percent=_check_percent(target_percent, "target_percent"),
            sort_order=sort_order,
            name=name,
        )
    )
    logger.info(f"Added entry target -{target.target_percent}% to asset {asset_id}")
    return target


def update_entry_target(
    ledger: Ledger,
    target_id: str,
    target_percent: float | None = None,
    sort_order: int | None = None,
    name: str | None = None,
) -> EntryTarget:
    target: EntryTarget = ledger.get_entry_target(target_id)
    if target_percent is not None:
        target.target_percent = _check_percent(target_percent, "target_percent")
    if sort_order is not None:
        _check_sort_order(ledger.entry_targets_for(target.asset_id), sort_order, target.id)
        target.sort_order = sort_order
    if name is not None:
        target.name = name
    ledger.touch(target)
    logger.info(f"Updated entry target {target_id}")
    return target


def delete_entry_target(ledger: Ledger, target_id: str) -> None:
    target: EntryTarget = ledger.get_entry_target(target_id)
    ledger.remove_entry_target(target)
    logger.info(f"Deleted entry target {target_id}")


def entry_threshold(ledger: Ledger, asset_id: str) -> float | None:
    """Drop percent that flags a buy: the first entry target by sort order."""
    targets: list[EntryTarget] = ledger.entry_targets_for(asset_id)
    return targets[0].target_percent if targets else None


def add_profit_target(
    ledger: Ledger,
    asset_id: str,
    target_percent: float,
    allocation_percent: float,
    sort_order: int | None = None,
    name: str | None = None,
    wallet_type: WalletType = WalletType.SWING,
) -> ProfitTarget:
    _ = ledger.get_asset(asset_id)
    existing: list[ProfitTarget] = ledger.profit_targets_for(asset_id)
    if sort_order is None:
        sort_order = max((t.sort_order for t in existing), default=0) + 1
    _check_sort_order(existing, sort_order)

    allocation: float = _check_percent(allocation_percent, "allocation_percent", allow_zero=True)
    if allocation > 100:
        raise ValidationError("allocation_percent cannot exceed 100", field="allocation_percent")

    target: ProfitTarget = ledger.add_profit_target(
        ProfitTarget(
            asset_id=asset_id,
            target_percent=_check_percent(target_percent, "target_percent"),
            allocation_percent=allocation,
            sort_order=sort_order,
            name=name,
            wallet_type=wallet_type,
        )
    )
    logger.info(
        f"Added profit target +{target.target_percent}% ({allocation}% allocation) to asset {asset_id}"
    )
    warning: str | None = allocation_warning(ledger, asset_id)
    if warning:
        logger.warning(warning)
    return target


def update_profit_target(
    ledger: Ledger,
    target_id: str,
    target_percent: float | None = None,
    allocation_percent: float | None = None,
    sort_order: int | None = None,
    name: str | None = None,
    wallet_type: WalletType | None = None,
) -> ProfitTarget:
    """Change a profit target. A new target percent re-prices every wallet under it."""
    target: ProfitTarget = ledger.get_profit_target(target_id)
    if sort_order is not None:
        _check_sort_order(ledger.profit_targets_for(target.asset_id), sort_order, target.id)
        target.sort_order = sort_order
    if allocation_percent is not None:
        allocation: float = _check_percent(
            allocation_percent, "allocation_percent", allow_zero=True
        )
        if allocation > 100:
            raise ValidationError(
                "allocation_percent cannot exceed 100", field="allocation_percent"
            )
        target.allocation_percent = allocation
    if name is not None:
        target.name = name
    if wallet_type is not None:
        target.wallet_type = wallet_type
    if target_percent is not None:
        target.target_percent = _check_percent(target_percent, "target_percent")
        asset: Asset = ledger.get_asset(target.asset_id)
        for wallet in ledger.wallets_for(target.asset_id):
            if wallet.profit_target_id == target.id:
                wallet.tp_value = calculate_tp(
                    wallet.buy_price, target.target_percent, asset.commission
                )
                wallet.tp_percent = target.target_percent
                ledger.touch(wallet)
    ledger.touch(target)
    logger.info(f"Updated profit target {target_id}")
    return target


def delete_profit_target(ledger: Ledger, target_id: str) -> None:
    """
    Remove a profit target whose wallets are all sold out.

    Its allocation percent is shared out over the remaining targets in
    proportion to their current allocation (equally if they are all zero),
    rounded to 2 dp with the rounding residue put on the largest target so
    the allocations still add up to exactly 100.
    """
    target: ProfitTarget = ledger.get_profit_target(target_id)
    remaining: float = sum(
        w.remaining_shares
        for w in ledger.wallets_for(target.asset_id)
        if w.profit_target_id == target.id
    )
    if remaining > SHARE_EPSILON:
        logger.warning(f"Refusing to delete profit target {target_id} with open wallets")
        raise ProfitTargetInUseError(target_id, remaining)

    others: list[ProfitTarget] = [
        t for t in ledger.profit_targets_for(target.asset_id) if t.id != target.id
    ]
    ledger.remove_profit_target(target)

    if others:
        redistribute_allocation(others, target.allocation_percent)
        for other in others:
            ledger.touch(other)
    logger.info(
        f"Deleted profit target {target_id}, redistributed {target.allocation_percent}% "
        f"over {len(others)} targets"
    )


def redistribute_allocation(targets: list[ProfitTarget], freed_percent: float) -> None:
    old_total: float = sum(t.allocation_percent for t in targets)
    grand_total: float = old_total + freed_percent

    for target in targets:
        if old_total > 0:
            share: float = freed_percent * target.allocation_percent / old_total
        else:
            share = freed_percent / len(targets)
        target.allocation_percent = round(target.allocation_percent + share, 2)

    residue: float = round(grand_total - sum(t.allocation_percent for t in targets), 2)
    if residue:
        largest: ProfitTarget = max(targets, key=lambda t: t.allocation_percent)
        largest.allocation_percent = round(largest.allocation_percent + residue, 2)


def allocation_warning(ledger: Ledger, asset_id: str) -> str | None:
    """Message for an asset whose profit-target allocations do not add up to 100%."""
    targets: list[ProfitTarget] = ledger.profit_targets_for(asset_id)
    if not targets:
        return None
    total: float = sum(t.allocation_percent for t in targets)
    if abs(total - 100) > ALLOCATION_TOLERANCE:
        return f"Profit target allocations add up to {total:.2f}%, not 100%"
    return None
