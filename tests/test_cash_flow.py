from datetime import date

import pytest

from wallet_tracker.accounting import record_buy, record_cash, record_sell
from wallet_tracker.cash_flow import next_cash_flow_state, rebuild_cash_flow, roic
from wallet_tracker.ledger import Ledger
from wallet_tracker.models import (
    Asset,
    CashFlowState,
    ProfitTarget,
    Transaction,
    TxnAction,
    Wallet,
)

DAY = date(2024, 1, 10)


def _buy(investment: float) -> Transaction:
    return Transaction(asset_id="a", action=TxnAction.BUY, txn_date=DAY, investment=investment)


class TestNextCashFlowState:
    def test_buy_without_cash_is_out_of_pocket(self):
        state: CashFlowState = next_cash_flow_state(CashFlowState(), _buy(1000.0))
        assert state == CashFlowState(total_out_of_pocket=1000.0, cash_balance=0.0)

    def test_buy_is_funded_from_cash_first(self):
        state: CashFlowState = next_cash_flow_state(
            CashFlowState(total_out_of_pocket=1000.0, cash_balance=300.0), _buy(500.0)
        )
        assert state.total_out_of_pocket == pytest.approx(1200.0)
        assert state.cash_balance == 0.0

    def test_buy_fully_covered_by_cash(self):
        state: CashFlowState = next_cash_flow_state(
            CashFlowState(total_out_of_pocket=1000.0, cash_balance=800.0), _buy(500.0)
        )
        assert state.total_out_of_pocket == 1000.0
        assert state.cash_balance == pytest.approx(300.0)

    def test_sell_proceeds_are_net_of_commission(self):
        sell = Transaction(
            asset_id="a", action=TxnAction.SELL, txn_date=DAY, price=10.0, quantity=50.0
        )
        state: CashFlowState = next_cash_flow_state(CashFlowState(), sell, commission=1.0)
        assert state.cash_balance == pytest.approx(495.0)
        assert state.total_out_of_pocket == 0.0

    @pytest.mark.parametrize("action", [TxnAction.DIVIDEND, TxnAction.SLP])
    def test_cash_payments(self, action):
        txn = Transaction(asset_id="a", action=action, txn_date=DAY, amount=12.5)
        state: CashFlowState = next_cash_flow_state(CashFlowState(cash_balance=1.0), txn)
        assert state.cash_balance == pytest.approx(13.5)

    def test_split_has_no_cash_effect(self):
        split = Transaction(asset_id="a", action=TxnAction.SPLIT, txn_date=DAY, split_ratio=2.0)
        before = CashFlowState(total_out_of_pocket=10.0, cash_balance=5.0)
        assert next_cash_flow_state(before, split) == before


class TestRebuildCashFlow:
    def test_replays_in_date_order(self, ledger: Ledger, asset: Asset, swing_target: ProfitTarget):
        _ = record_buy(ledger, asset.id, date(2024, 1, 10), 10.0, 1000.0)
        wallet: Wallet = ledger.wallets_for(asset.id)[0]
        _ = record_sell(ledger, wallet.id, date(2024, 2, 1), 12.0, 50.0)
        _ = record_cash(ledger, asset.id, TxnAction.DIVIDEND, date(2024, 2, 5), 20.0)
        # Back-dated buy lands before the sell, so it cannot use the sale's cash
        _ = record_buy(ledger, asset.id, date(2024, 1, 20), 8.0, 400.0)

        state: CashFlowState = rebuild_cash_flow(ledger, asset.id)

        assert state.total_out_of_pocket == pytest.approx(1400.0)
        assert state.cash_balance == pytest.approx(620.0)
        assert asset.total_out_of_pocket == 1400.0
        assert asset.cash_balance == 620.0

    def test_later_buy_uses_sale_cash(self, ledger: Ledger, asset: Asset, swing_target: ProfitTarget):
        _ = record_buy(ledger, asset.id, date(2024, 1, 10), 10.0, 1000.0)
        wallet: Wallet = ledger.wallets_for(asset.id)[0]
        _ = record_sell(ledger, wallet.id, date(2024, 2, 1), 12.0, 50.0)
        _ = record_buy(ledger, asset.id, date(2024, 3, 1), 8.0, 400.0)

        assert asset.total_out_of_pocket == pytest.approx(1000.0)
        assert asset.cash_balance == pytest.approx(200.0)


class TestRoic:
    def test_roic(self):
        assert roic(600.0, 500.0, 1000.0) == pytest.approx(10.0)

    def test_nothing_invested(self):
        assert roic(0.0, 0.0, 0.0) == 0.0
