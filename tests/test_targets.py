from datetime import date

import pytest

from wallet_tracker.accounting import record_buy, record_sell
from wallet_tracker.exceptions import NotFoundError, ProfitTargetInUseError, ValidationError
from wallet_tracker.ledger import Ledger
from wallet_tracker.models import Asset, EntryTarget, ProfitTarget, Wallet, WalletType
from wallet_tracker.targets import (
    add_entry_target,
    add_profit_target,
    allocation_warning,
    delete_entry_target,
    delete_profit_target,
    entry_threshold,
    redistribute_allocation,
    update_entry_target,
    update_profit_target,
)


def _targets(*allocations: float) -> list[ProfitTarget]:
    return [
        ProfitTarget(asset_id="a", target_percent=5.0, allocation_percent=a, sort_order=i)
        for i, a in enumerate(allocations, 1)
    ]


class TestRedistributeAllocation:
    def test_proportional(self):
        targets: list[ProfitTarget] = _targets(30.0, 10.0)
        redistribute_allocation(targets, 60.0)
        assert [t.allocation_percent for t in targets] == [75.0, 25.0]

    def test_equal_split_when_remaining_are_zero(self):
        targets: list[ProfitTarget] = _targets(0.0, 0.0)
        redistribute_allocation(targets, 100.0)
        assert [t.allocation_percent for t in targets] == [50.0, 50.0]

    def test_rounding_residue_goes_to_largest(self):
        targets: list[ProfitTarget] = _targets(0.0, 0.0, 0.0)
        redistribute_allocation(targets, 100.0)
        assert sum(t.allocation_percent for t in targets) == pytest.approx(100.0)
        assert sorted(t.allocation_percent for t in targets) == [33.33, 33.33, 33.34]


class TestProfitTargets:
    def test_add_assigns_next_sort_order(self, ledger: Ledger, asset: Asset):
        first: ProfitTarget = add_profit_target(ledger, asset.id, 5.0, 50.0)
        second: ProfitTarget = add_profit_target(ledger, asset.id, 10.0, 50.0)
        assert (first.sort_order, second.sort_order) == (1, 2)
        assert allocation_warning(ledger, asset.id) is None

    def test_duplicate_sort_order_rejected(self, ledger: Ledger, asset: Asset):
        _ = add_profit_target(ledger, asset.id, 5.0, 50.0, sort_order=1)
        with pytest.raises(ValidationError) as exc_info:
            _ = add_profit_target(ledger, asset.id, 10.0, 50.0, sort_order=1)
        assert exc_info.value.field == "sort_order"

    def test_allocation_over_100_rejected(self, ledger: Ledger, asset: Asset):
        with pytest.raises(ValidationError):
            _ = add_profit_target(ledger, asset.id, 5.0, 120.0)

    def test_allocation_warning(self, ledger: Ledger, asset: Asset):
        _ = add_profit_target(ledger, asset.id, 5.0, 60.0)
        warning: str | None = allocation_warning(ledger, asset.id)
        assert warning is not None
        assert "60.00%" in warning

    def test_changing_target_percent_reprices_wallets(
        self, ledger: Ledger, asset: Asset, swing_target: ProfitTarget
    ):
        _ = record_buy(ledger, asset.id, date(2024, 1, 10), 10.0, 1000.0)
        _ = update_profit_target(ledger, swing_target.id, target_percent=20.0)

        wallet: Wallet = ledger.wallets_for(asset.id)[0]
        assert wallet.tp_value == pytest.approx(12.0)
        assert wallet.tp_percent == 20.0

    def test_update_other_fields(self, ledger: Ledger, asset: Asset, swing_target: ProfitTarget):
        updated: ProfitTarget = update_profit_target(
            ledger, swing_target.id, name="long", wallet_type=WalletType.HOLD
        )
        assert updated.name == "long"
        assert updated.wallet_type == WalletType.HOLD

    def test_delete_redistributes_allocation(
        self, ledger: Ledger, asset: Asset, split_targets: tuple[ProfitTarget, ProfitTarget]
    ):
        swing, hold = split_targets
        delete_profit_target(ledger, hold.id)

        assert ledger.profit_targets_for(asset.id) == [swing]
        assert swing.allocation_percent == pytest.approx(100.0)

    def test_delete_refused_while_wallet_holds_shares(
        self, ledger: Ledger, asset: Asset, split_targets: tuple[ProfitTarget, ProfitTarget]
    ):
        _, hold = split_targets
        _ = record_buy(ledger, asset.id, date(2024, 1, 10), 10.0, 1000.0)

        with pytest.raises(ProfitTargetInUseError) as exc_info:
            delete_profit_target(ledger, hold.id)
        assert exc_info.value.remaining_shares == pytest.approx(40.0)
        assert hold in ledger.profit_targets_for(asset.id)

    def test_delete_allowed_once_wallets_sold_out(
        self, ledger: Ledger, asset: Asset, split_targets: tuple[ProfitTarget, ProfitTarget]
    ):
        swing, hold = split_targets
        _ = record_buy(ledger, asset.id, date(2024, 1, 10), 10.0, 1000.0)
        hold_wallet: Wallet = next(
            w for w in ledger.wallets_for(asset.id) if w.profit_target_id == hold.id
        )
        _ = record_sell(ledger, hold_wallet.id, date(2024, 2, 1), 15.0, 40.0)

        delete_profit_target(ledger, hold.id)
        assert swing.allocation_percent == pytest.approx(100.0)

    def test_unknown_target(self, ledger: Ledger):
        with pytest.raises(NotFoundError):
            delete_profit_target(ledger, "missing")


class TestEntryTargets:
    def test_threshold_is_first_by_sort_order(self, ledger: Ledger, asset: Asset):
        # The asset fixture already has a 4% target at sort order 1
        _ = add_entry_target(ledger, asset.id, 8.0)
        assert entry_threshold(ledger, asset.id) == 4.0

    def test_reorder_changes_threshold(self, ledger: Ledger, asset: Asset):
        deeper: EntryTarget = add_entry_target(ledger, asset.id, 8.0, sort_order=5)
        first: EntryTarget = ledger.entry_targets_for(asset.id)[0]
        _ = update_entry_target(ledger, first.id, sort_order=9)
        assert entry_threshold(ledger, asset.id) == deeper.target_percent

    def test_percent_must_be_positive(self, ledger: Ledger, asset: Asset):
        with pytest.raises(ValidationError):
            _ = add_entry_target(ledger, asset.id, 0.0)

    def test_delete(self, ledger: Ledger, asset: Asset):
        first: EntryTarget = ledger.entry_targets_for(asset.id)[0]
        delete_entry_target(ledger, first.id)
        assert entry_threshold(ledger, asset.id) is None
