"""Rich rendering for valuation, risk and stress reports."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable
from rich.text import Text


def _signed(value, fmt="{:+,.0f}", bold=False):
    style = "green" if value >= 0 else "red"
    if bold:
        style = f"bold {style}"
    return Text(fmt.format(value), style=style)


class HedgeVisualizer:
    """Rich-based tables for the hedging book."""

    def __init__(self, console=None):
        self.console = console or Console(width=110)

    def _table(self, title):
        return RichTable(
            title=title,
            expand=True,
            title_style="bold white",
            show_header=True,
            header_style="bold cyan",
        )

    def render_prices(self, details, labels):
        """One row per PriceDetail: model, sigma, t and any warning codes."""
        tbl = self._table("Theoretical Prices (per unit notional)")
        tbl.add_column("ID", style="bold", width=18)
        tbl.add_column("Type", width=22)
        tbl.add_column("Model", width=17, style="dim")
        tbl.add_column("Vol", justify="right", width=6)
        tbl.add_column("T (y)", justify="right", width=6)
        tbl.add_column("Price", justify="right", width=10)
        tbl.add_column("Warnings", width=20, style="yellow")
        for d in details:
            vol = f"{d.volatility:.1%}" if d.volatility is not None else "-"
            tbl.add_row(d.instrument_id, labels.get(d.instrument_id, ""), d.model, vol,
                        f"{d.time_to_maturity:.2f}", f"{d.price:.6f}", ", ".join(d.warnings))
        self.console.print(Panel(tbl, border_style="cyan"))

    def render_valuations(self, valuations, excluded=()):
        """
        Parameters
        ----------
        valuations : list[InstrumentValuation]
        excluded   : ids left out of the valuation
        """
        tbl = self._table("Hedging Instruments (Mark-to-Market)")
        tbl.add_column("ID", style="bold", width=18)
        tbl.add_column("Type", width=22)
        tbl.add_column("Pair", width=8)
        tbl.add_column("Notional", justify="right", width=12)
        tbl.add_column("Original", justify="right", width=9)
        tbl.add_column("Today", justify="right", width=9)
        tbl.add_column("Vol", justify="right", width=6)
        tbl.add_column("Model", width=17, style="dim")
        tbl.add_column("MTM", justify="right", width=12)

        total = 0.0
        for v in valuations:
            total += v.mtm
            vol = f"{v.volatility:.1%}" if v.volatility is not None else "-"
            tbl.add_row(
                v.instrument_id, v.label, v.currency_pair,
                f"{v.notional:,.0f}", f"{v.original_price:.4f}", f"{v.today_price:.4f}",
                vol, v.model, _signed(v.mtm),
            )
        tbl.add_row("", "", "", "", "", "", "", Text("TOTAL", style="bold"), _signed(total, bold=True))
        self.console.print(Panel(tbl, border_style="cyan"))

        if excluded:
            self.console.print(f"[yellow]Excluded (see warnings): {', '.join(excluded)}[/yellow]")

    def render_risk(self, metrics, currency_exposures=()):
        tbl = self._table("Value-at-Risk / Expected Shortfall (1 day)")
        tbl.add_column("Measure", style="bold", width=24)
        tbl.add_column("95%", justify="right", width=14)
        tbl.add_column("99%", justify="right", width=14)
        tbl.add_row("VaR", f"{metrics.var95:,.0f}", f"{metrics.var99:,.0f}")
        tbl.add_row("Expected Shortfall",
                    f"{metrics.expected_shortfall95:,.0f}", f"{metrics.expected_shortfall99:,.0f}")

        summary = self._table("Exposure Summary")
        summary.add_column("Item", style="bold", width=24)
        summary.add_column("Value", justify="right", width=16)
        summary.add_row("Total exposure", f"{metrics.total_exposure:,.0f}")
        summary.add_row("Hedged", f"{metrics.hedged_exposure:,.0f}")
        summary.add_row("Unhedged", f"{metrics.unhedged_exposure:,.0f}")
        summary.add_row("Hedge ratio", f"{metrics.hedge_ratio:.1f}%")
        summary.add_row("MTM impact", _signed(metrics.mtm_impact))

        self.console.print(Panel(tbl, border_style="cyan"))
        self.console.print(Panel(summary, border_style="cyan"))

        if currency_exposures:
            ccy = self._table("Currency Exposures")
            ccy.add_column("Ccy", style="bold", width=6)
            ccy.add_column("Gross", justify="right", width=14)
            ccy.add_column("Net", justify="right", width=14)
            ccy.add_column("Hedged", justify="right", width=14)
            ccy.add_column("Ratio", justify="right", width=8)
            ccy.add_column("Vol", justify="right", width=7)
            ccy.add_column("VaR 95%", justify="right", width=12)
            for c in currency_exposures:
                ccy.add_row(c.currency, f"{c.gross_exposure:,.0f}", _signed(c.net_exposure),
                            f"{c.hedged_amount:,.0f}", f"{c.hedge_ratio:.0f}%",
                            f"{c.volatility:.1%}", f"{c.var95:,.0f}")
            self.console.print(Panel(ccy, border_style="cyan"))

        if metrics.excluded:
            self.console.print(f"[yellow]Excluded: {', '.join(metrics.excluded)}[/yellow]")

    def render_stress(self, results):
        """
        Parameters
        ----------
        results : dict[name, ScenarioResult]
        """
        tbl = self._table("Stress Test Results")
        tbl.add_column("Scenario", style="bold", width=14)
        tbl.add_column("Description", width=36, style="dim")
        tbl.add_column("Base MTM", justify="right", width=12)
        tbl.add_column("Stressed MTM", justify="right", width=12)
        tbl.add_column("Change", justify="right", width=12)
        tbl.add_column("%", justify="right", width=8)
        tbl.add_column("Unhedged", justify="right", width=10)

        for name, r in results.items():
            tbl.add_row(
                name, r.description,
                f"{r.base_mtm:+,.0f}", f"{r.shocked_mtm:+,.0f}",
                _signed(r.change, bold=True), f"{r.pct_change:+.1f}%",
                _signed(r.exposure_impact),
            )
        self.console.print(Panel(tbl, border_style="red"))

    def render_impacts(self, result):
        tbl = self._table(f"Scenario: {result.name}")
        tbl.add_column("ID", style="bold", width=18)
        tbl.add_column("Type", width=22)
        tbl.add_column("Base", justify="right", width=9)
        tbl.add_column("Shocked", justify="right", width=9)
        tbl.add_column("Change", justify="right", width=12)
        tbl.add_column("%", justify="right", width=8)
        for i in result.impacts:
            tbl.add_row(i.instrument_id, i.label, f"{i.base_price:.4f}", f"{i.shocked_price:.4f}",
                        _signed(i.change), f"{i.pct_change:+.1f}%")
        tbl.add_row("", Text("PORTFOLIO", style="bold"), "", "",
                    _signed(result.change, bold=True), f"{result.pct_change:+.1f}%")
        self.console.print(Panel(tbl, border_style="red"))

    def render_config(self, current, defaults):
        tbl = self._table("Engine Configuration")
        tbl.add_column("Key", style="bold", width=28)
        tbl.add_column("Value", justify="right", width=22)
        tbl.add_column("Default", justify="right", width=22, style="dim")
        for key, default in defaults.items():
            val = current[key]
            style = "" if val == default else "yellow"
            tbl.add_row(key, Text(str(val), style=style), str(default))
        self.console.print(Panel(tbl, border_style="cyan"))
