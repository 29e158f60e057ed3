"""Asset-level out-of-pocket and cash balance tracking."""

import logging

from wallet_tracker.ledger import Ledger
from wallet_tracker.models import Asset, CashFlowState, Transaction, TxnAction
from wallet_tracker.utils.number_utils import safe_percent

logger: logging.Logger = logging.getLogger(__name__)


def next_cash_flow_state(
    state: CashFlowState, txn: Transaction, commission: float = 0.0
) -> CashFlowState:
    """
    Apply one transaction to an asset's cash position.

    Buys are funded from the cash balance first and only the shortfall is
    added to out-of-pocket, so out-of-pocket never decreases. Sell proceeds
    (net of commission), dividends and lending payments go to the cash balance.
    Splits have no cash effect.
    """
    oop: float = state.total_out_of_pocket
    cash: float = state.cash_balance

    if txn.action == TxnAction.BUY and txn.investment is not None:
        if cash >= txn.investment:
            cash -= txn.investment
        else:
            oop += txn.investment - cash
            cash = 0.0
    elif txn.action == TxnAction.SELL and txn.price is not None and txn.quantity is not None:
        proceeds: float = txn.price * txn.quantity * (1 - commission / 100)
        cash += proceeds
    elif txn.action in (TxnAction.DIVIDEND, TxnAction.SLP) and txn.amount is not None:
        cash += txn.amount

    return CashFlowState(total_out_of_pocket=max(0.0, oop), cash_balance=max(0.0, cash))


def rebuild_cash_flow(ledger: Ledger, asset_id: str) -> CashFlowState:
    """Replay all transactions of an asset in ledger order and store the result on the asset."""
    asset: Asset = ledger.get_asset(asset_id)
    state: CashFlowState = CashFlowState()
    for txn in ledger.transactions_for(asset_id):
        state = next_cash_flow_state(state, txn, asset.commission)

    asset.total_out_of_pocket = round(state.total_out_of_pocket, 2)
    asset.cash_balance = round(state.cash_balance, 2)
    ledger.touch(asset)
    logger.debug(
        f"Cash flow for {asset.symbol}: OOP={asset.total_out_of_pocket:.2f}, "
        f"balance={asset.cash_balance:.2f}"
    )
    return state


def roic(cash_balance: float, market_value: float, out_of_pocket: float) -> float | None:
    """Return on invested capital: what the position is worth back against the cash put in."""
    return safe_percent(cash_balance + market_value - out_of_pocket, out_of_pocket)
