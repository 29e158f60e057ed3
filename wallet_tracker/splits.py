"""Stock split recording, reversal and split-adjusted arithmetic."""

import logging
from collections.abc import Callable, Iterable
from datetime import date

from wallet_tracker.constants import PERCENT_EPSILON, SHARE_EPSILON
from wallet_tracker.exceptions import SplitDeletionError, ValidationError
from wallet_tracker.ledger import Ledger
from wallet_tracker.models import Asset, Transaction, TxnAction, Wallet
from wallet_tracker.utils.number_utils import safe_percent, snap_shares

logger: logging.Logger = logging.getLogger(__name__)


def cumulative_split_factor(splits: Iterable[Transaction], on_date: date) -> float:
    """
    Product of the ratios of every split dated after `on_date`.

    1.0 means no later split; 2.0 means prices recorded on `on_date` must be
    halved and share counts doubled to be comparable with today's figures.
    """
    factor: float = 1.0
    for split in splits:
        if split.txn_date > on_date and split.split_ratio:
            factor *= split.split_ratio
    return factor


def split_adjusted_pl(
    sell_price: float,
    buy_price: float,
    shares: float,
    sell_date: date,
    buy_date: date,
    splits: Iterable[Transaction],
) -> float:
    """Profit of selling `shares` bought at `buy_price`, both legs restated in post-split terms."""
    split_list: list[Transaction] = list(splits)
    buy_factor: float = cumulative_split_factor(split_list, buy_date)
    sell_factor: float = cumulative_split_factor(split_list, sell_date)
    adjusted_buy: float = buy_price / buy_factor
    adjusted_shares: float = shares * buy_factor
    adjusted_sell: float = sell_price / sell_factor
    return (adjusted_sell - adjusted_buy) * adjusted_shares


def record_split(
    ledger: Ledger,
    asset_id: str,
    split_date: date,
    ratio: float,
    pre_split_price: float | None = None,
) -> Transaction:
    """
    Apply a ratio:1 split to every wallet created before `split_date`.

    Shares are multiplied and prices divided by the ratio; investment and
    realized P/L are unchanged. The asset's test price follows the split.
    """
    if ratio is None or ratio <= 0:
        raise ValidationError("Split ratio must be greater than 0", field="split_ratio")
    if abs(ratio - 1) < PERCENT_EPSILON:
        raise ValidationError("Split ratio of 1 has no effect", field="split_ratio")

    asset: Asset = ledger.get_asset(asset_id)
    adjusted: int = _scale_wallets(
        ledger, asset_id, lambda w: w.created_date < split_date, ratio
    )
    if asset.test_price:
        asset.test_price = asset.test_price / ratio
        ledger.touch(asset)

    txn: Transaction = ledger.add_transaction(
        Transaction(
            asset_id=asset_id,
            action=TxnAction.SPLIT,
            txn_date=split_date,
            split_ratio=ratio,
            price=pre_split_price,
        )
    )
    logger.info(
        f"Recorded {ratio:g}:1 split for {asset.symbol} on {split_date}, adjusted {adjusted} wallets"
    )
    return txn


def delete_split(ledger: Ledger, txn: Transaction) -> None:
    """Undo a split. Refused while any later transaction depends on the adjusted figures."""
    later: list[Transaction] = [
        t
        for t in ledger.transactions_for(txn.asset_id)
        if t.id != txn.id and t.txn_date > txn.txn_date
    ]
    if later:
        logger.warning(
            f"Refusing to delete split {txn.id}: {len(later)} later transactions exist"
        )
        raise SplitDeletionError(txn.txn_date.isoformat(), len(later))

    ratio: float = txn.split_ratio or 1.0
    asset: Asset = ledger.get_asset(txn.asset_id)
    _ = _scale_wallets(
        ledger, txn.asset_id, lambda w: w.created_date < txn.txn_date, 1 / ratio
    )
    if asset.test_price:
        asset.test_price = asset.test_price * ratio
        ledger.touch(asset)
    ledger.remove_transaction(txn)
    logger.info(f"Deleted {ratio:g}:1 split for {asset.symbol} dated {txn.txn_date}")


def _scale_wallets(
    ledger: Ledger, asset_id: str, affected: Callable[[Wallet], bool], factor: float
) -> int:
    """Multiply shares and divide prices by `factor`, re-keying and merging wallets that collide."""
    moving: list[Wallet] = [w for w in ledger.wallets_for(asset_id) if affected(w)]
    # Lift every affected wallet out first so a moved wallet never collides with one about to move
    for wallet in moving:
        _ = ledger.wallets.pop(wallet.key, None)

    for wallet in moving:
        wallet.buy_price = wallet.buy_price / factor
        wallet.total_shares_qty = wallet.total_shares_qty * factor
        wallet.remaining_shares = snap_shares(wallet.remaining_shares * factor)
        wallet.shares_sold = wallet.shares_sold * factor
        if wallet.tp_value is not None:
            wallet.tp_value = round(wallet.tp_value / factor, 4)

        existing: Wallet | None = ledger.get_wallet(wallet.key)
        if existing is None:
            _ = ledger.put_wallet(wallet)
        else:
            merge_wallets(ledger, existing, wallet)
    return len(moving)


def merge_wallets(ledger: Ledger, target: Wallet, source: Wallet) -> None:
    """Fold `source` into `target` (same key) and drop `source`."""
    target.total_shares_qty += source.total_shares_qty
    target.total_investment += source.total_investment
    target.shares_sold += source.shares_sold
    target.remaining_shares = snap_shares(target.remaining_shares + source.remaining_shares)
    target.realized_pl += source.realized_pl
    target.sell_txn_count += source.sell_txn_count
    target.created_date = min(target.created_date, source.created_date)
    target.realized_pl_percent = safe_percent(
        target.realized_pl, target.buy_price * target.shares_sold
    )
    target.archived = target.remaining_shares < SHARE_EPSILON and target.total_shares_qty > 0

    for txn in ledger.transactions.values():
        if txn.completed_wallet_id == source.id:
            txn.completed_wallet_id = target.id
            ledger.touch(txn)

    # `source` may already be out of the key map; record the deletion either way
    if ledger.wallets.get(source.key) is source:
        del ledger.wallets[source.key]
    ledger.changes.delete(source)
    ledger.touch(target)
    logger.debug(f"Merged wallet {source.id} into {target.id} at {target.key}")
