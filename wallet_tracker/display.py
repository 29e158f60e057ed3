import logging
from collections.abc import Sequence

from wallet_tracker.dip_analysis import DipAnalysisResult
from wallet_tracker.models import (
    Asset,
    DashboardRow,
    EntryTarget,
    GroupSummary,
    ProfitLossSummary,
    ProfitTarget,
    TargetProximity,
    Transaction,
    WalletRow,
)

logger = logging.getLogger(__name__)

PROXIMITY_MARKS: dict[TargetProximity, str] = {
    TargetProximity.HIT: "**",
    TargetProximity.NEAR: "*",
    TargetProximity.FAR: "",
}


def fmt_money(value: float | None) -> str:
    return "-" if value is None else f"{value:,.2f}"


def fmt_percent(value: float | None) -> str:
    return "-" if value is None else f"{value:.2f}%"


def fmt_shares(value: float | None) -> str:
    return "-" if value is None else f"{value:.5f}"


def fmt_price(value: float | None) -> str:
    return "-" if value is None else f"{value:.4f}"


def print_table(title: str, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    """
    Print rows in a box-drawn ASCII table.

    Column widths fit the widest cell; the first column is left aligned and the
    rest are right aligned.
    """
    widths: list[int] = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def line(left: str, mid: str, right: str) -> str:
        return left + mid.join("═" * (w + 2) for w in widths) + right

    def cells(values: Sequence[str]) -> str:
        parts: list[str] = [
            f" {v:<{w}} " if i == 0 else f" {v:>{w}} "
            for i, (v, w) in enumerate(zip(values, widths))
        ]
        return "║" + "║".join(parts) + "║"

    inner: int = sum(w + 3 for w in widths) - 1
    print("\n╔" + "═" * inner + "╗")
    print(f"║{title.upper():^{inner}}║")
    print(line("╠", "╦", "╣"))
    print(cells(headers))
    print(line("╠", "╬", "╣"))
    for row in rows:
        print(cells(row))
    print(line("╚", "╩", "╝"))


def display_assets(assets: list[Asset]) -> None:
    if not assets:
        print("No assets to display.")
        return
    print_table(
        "Assets",
        ["Symbol", "Type", "Status", "Commission", "Budget", "HTP", "Test price", "OOP", "Cash"],
        [
            [
                a.symbol,
                str(a.asset_type),
                str(a.status),
                fmt_percent(a.commission),
                fmt_money(a.budget),
                fmt_percent(a.htp),
                fmt_price(a.test_price),
                fmt_money(a.total_out_of_pocket),
                fmt_money(a.cash_balance),
            ]
            for a in assets
        ],
    )


def display_targets(
    entry_targets: list[EntryTarget], profit_targets: list[ProfitTarget], warning: str | None
) -> None:
    print_table(
        "Entry targets",
        ["Id", "Order", "Name", "Drop"],
        [[t.id, str(t.sort_order), t.name or "", fmt_percent(-t.target_percent)] for t in entry_targets],
    )
    print_table(
        "Profit targets",
        ["Id", "Order", "Name", "Type", "Target", "Allocation"],
        [
            [
                t.id,
                str(t.sort_order),
                t.name or "",
                str(t.wallet_type),
                fmt_percent(t.target_percent),
                fmt_percent(t.allocation_percent),
            ]
            for t in profit_targets
        ],
    )
    if warning:
        print(f"\nWarning: {warning}")


def display_transactions(symbol: str, transactions: list[Transaction]) -> None:
    if not transactions:
        print(f"No transactions for {symbol}.")
        return
    print_table(
        f"{symbol} transactions",
        ["Id", "Date", "Action", "Type", "Price", "Quantity", "Amount", "Profit", "Signal"],
        [
            [
                t.id,
                t.txn_date.isoformat(),
                str(t.action),
                str(t.txn_type or ""),
                fmt_price(t.price),
                fmt_shares(t.quantity),
                fmt_money(t.investment if t.investment is not None else t.amount)
                if t.split_ratio is None
                else f"{t.split_ratio:g}:1",
                fmt_money(t.txn_profit),
                t.signal or "",
            ]
            for t in transactions
        ],
    )


def display_dashboard(rows: list[DashboardRow]) -> None:
    """Signal table: '*' marks a target within 1%, '**' a target reached, '~' a test price."""
    if not rows:
        print("No active assets to display.")
        return
    table: list[list[str]] = []
    for r in rows:
        price: str = fmt_price(r.current_price) + ("~" if r.is_test_price else "")
        to_target: str = fmt_percent(r.percent_to_target) + PROXIMITY_MARKS.get(r.proximity, "")
        table.append(
            [
                ("(" + r.symbol + ")") if r.grayed_out else r.symbol,
                price,
                fmt_percent(r.five_day_dip),
                fmt_percent(r.last_buy_dip),
                "-" if r.days_since_buy is None else str(r.days_since_buy),
                "-" if r.days_since_sell is None else str(r.days_since_sell),
                str(r.buy_count),
                to_target,
                fmt_percent(r.percent_to_break_even),
                fmt_percent(r.percent_to_htp) + ("!" if r.htp_triggered else ""),
                fmt_shares(r.total_shares),
                fmt_money(r.available),
                "BUY" if r.buy_opportunity else "",
            ]
        )
    print_table(
        "Dashboard",
        ["Symbol", "Price", "5DD", "LBD", "Since buy", "Since sell", "Buys", "%2PT", "%2BE",
         "%2HTP", "Shares", "Available", "Signal"],
        table,
    )


def display_wallet_rows(asset: Asset, price: float | None, rows: list[WalletRow]) -> None:
    if not rows:
        print(f"No active wallets for {asset.symbol}.")
        return
    print_table(
        f"{asset.symbol} wallets @ {fmt_price(price)}",
        ["Id", "Type", "Buy price", "Remaining", "Invested", "TP", "%2PT", "%2BE", "Unrealized",
         "HTP price"],
        [
            [
                r.wallet.id,
                str(r.wallet.wallet_type),
                fmt_price(r.wallet.buy_price),
                fmt_shares(r.wallet.remaining_shares),
                fmt_money(r.wallet.total_investment),
                fmt_price(r.wallet.tp_value),
                fmt_percent(r.percent_to_target) + PROXIMITY_MARKS.get(r.proximity, ""),
                fmt_percent(r.percent_to_break_even),
                fmt_money(r.unrealized_pl),
                fmt_price(r.htp_trigger_price) + ("!" if r.htp_triggered else ""),
            ]
            for r in rows
        ],
    )


def display_profit_loss(summary: ProfitLossSummary) -> None:
    if not summary.assets:
        print("No portfolio data to display.")
        return
    table: list[list[str]] = [
        [
            a.symbol,
            fmt_money(a.pl.realized),
            fmt_money(a.pl.unrealized),
            fmt_money(a.pl.combined),
            fmt_money(a.pl.cost_basis),
            fmt_percent(a.roi),
            fmt_money(a.total_out_of_pocket),
            fmt_money(a.market_value),
            fmt_percent(a.roic),
        ]
        for a in summary.assets
    ]
    table.append(
        [
            "TOTAL",
            fmt_money(summary.total.realized),
            fmt_money(summary.total.unrealized),
            fmt_money(summary.total.combined),
            fmt_money(summary.total.cost_basis),
            fmt_percent(summary.roi),
            "",
            "",
            "",
        ]
    )
    print_table(
        "Profit and loss",
        ["Symbol", "Realized", "Unrealized", "Combined", "Cost basis", "ROI", "OOP",
         "Market value", "ROIC"],
        table,
    )
    print(
        f"\nSwing: realized {fmt_money(summary.total.realized_swing)}, "
        f"unrealized {fmt_money(summary.total.unrealized_swing)}"
    )
    print(
        f"Hold:  realized {fmt_money(summary.total.realized_hold)}, "
        f"unrealized {fmt_money(summary.total.unrealized_hold)}"
    )


def display_groups(groups: list[GroupSummary]) -> None:
    print_table(
        "Portfolio groups",
        ["Group", "Max risk", "OOP", "Tied up", "Market value", "ROIC"],
        [
            [
                g.group_name,
                fmt_money(g.max_risk),
                fmt_money(g.out_of_pocket),
                fmt_money(g.tied_up),
                fmt_money(g.market_value),
                fmt_percent(g.roic),
            ]
            for g in groups
        ],
    )


def display_dip_analysis(result: DipAnalysisResult) -> None:
    stats = result.statistics
    if result.period_start is None:
        print(f"{result.symbol}: {result.recommendation.suggested_sell_strategy}")
        return

    print(f"\n{result.symbol}: {result.period_start} to {result.period_end} ({result.total_days} closes)")
    print_table(
        "Dip statistics",
        ["Metric", "Value"],
        [
            ["Dips", str(stats.total_dips)],
            ["Recovered", str(stats.recovered_count)],
            ["Recovery rate", fmt_percent(stats.recovery_rate)],
            ["Average drop", fmt_percent(stats.average_drop)],
            ["Median drop", fmt_percent(stats.median_drop)],
            ["Min / max drop", f"{fmt_percent(stats.min_drop)} / {fmt_percent(stats.max_drop)}"],
            ["Std deviation", fmt_percent(stats.std_deviation)],
            ["Avg recovery days", f"{stats.average_recovery_days:.1f}"],
            ["Median recovery days", f"{stats.median_recovery_days:.1f}"],
        ],
    )
    print_table(
        "Drop frequency",
        ["Range", "Dips"],
        [[b.range_label, str(b.count)] for b in result.frequency_distribution],
    )

    rec = result.recommendation
    print(f"\nSuggested buy threshold: -{rec.suggested_buy_threshold:.2f}%")
    print(f"Sell strategy: {rec.suggested_sell_strategy}")
    print(f"Expected recovery: {rec.expected_recovery_days} days")

    sim = result.roic_simulation
    if sim is not None:
        print_table(
            "Simulated trades",
            ["Metric", "Value"],
            [
                ["Trades", f"{sim.trade_count} ({sim.successful_trades} profitable)"],
                ["Invested", fmt_money(sim.total_investment_used)],
                ["Returned", fmt_money(sim.total_cash_returned)],
                ["Profit", f"{fmt_money(sim.total_profit)} ({fmt_percent(sim.total_profit_percent)})"],
                ["ROIC", fmt_percent(sim.roic_percent)],
                ["Success rate", fmt_percent(sim.success_rate)],
                ["Avg profit / trade", fmt_money(sim.average_profit_per_trade)],
                ["Largest gain / loss", f"{fmt_money(sim.largest_gain)} / {fmt_money(sim.largest_loss)}"],
            ],
        )
