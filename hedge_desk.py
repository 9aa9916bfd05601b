#!/usr/bin/env python3
"""
FX Hedge Desk: value, mark and stress a book of FX hedging instruments.

Usage:
    python hedge_desk.py                              # one-shot MTM + risk report
    python hedge_desk.py price                        # per-instrument model price
    python hedge_desk.py mtm                          # mark-to-market
    python hedge_desk.py risk                         # VaR / ES / exposures
    python hedge_desk.py stress                       # predefined stress scenarios
    python hedge_desk.py stress --spot -5 --vol 3     # custom shock
    python hedge_desk.py config [--set KEY VALUE]     # show/edit engine config

Options:
    --portfolio FILE   JSON book {"valuation_date", "markets", "instruments", "exposures"}
    --db PATH          ring store file (default: in-memory)
    --verbose          debug logging, including pricing diagnostics
"""

import argparse
import json
import logging
from datetime import date, timedelta

from rich.console import Console

from fxhedge import (
    Diagnostics,
    InstrumentPricingDispatcher,
    Exposure,
    Instrument,
    MarketSnapshot,
    PortfolioRepository,
    RingStore,
    RiskAggregator,
    STRESS_SCENARIOS,
    StressEngine,
    default_markets,
    exposures_from_instruments,
)
from fxhedge.config import DEFAULT_CONFIG, SCALAR_KEYS, ensure_config, load_config, set_config_value
from fxhedge.errors import ConfigError, UnknownInstrumentKindError
from fxhedge.market import market_for
from fxhedge.rendering import HedgeVisualizer
from fxhedge.timebasis import as_date

logging.basicConfig(level=logging.WARNING)
log = logging.getLogger("hedge_desk")

RING_SPEC = "hedge_desk;default"


# ── Book loading ─────────────────────────────────────────────────────────

def demo_book(valuation_date):
    """A small mixed EUR/USD and GBP/USD book used when no portfolio is given."""
    d = as_date(valuation_date)
    in_months = lambda m: d + timedelta(days=round(m * 30.44))
    return [
        Instrument("FWD-EUR-1", "Forward", "EUR/USD", 2_000_000, in_months(3),
                   strike=1.0800, original_price=0.0),
        Instrument("CALL-EUR-1", "Vanilla Call", "EUR/USD", 1_000_000, in_months(6),
                   strike=1.0850, volatility=0.20, original_price=0.045),
        Instrument("PUT-EUR-1", "Vanilla Put", "EUR/USD", 1_000_000, in_months(6),
                   quantity=-100, strike=1.0500, volatility=0.20, original_price=0.030),
        Instrument("KO-EUR-1", "Knock-Out Call", "EUR/USD", 1_500_000, in_months(6),
                   strike=1.0850, barrier1=1.1800, volatility=0.20, original_price=0.020),
        Instrument("DKO-GBP-1", "Double Knock-Out Put", "GBP/USD", 750_000, in_months(4),
                   strike=1.2650, barrier1=1.1800, barrier2=1.3500, original_price=0.015),
        Instrument("OT-GBP-1", "One-Touch", "GBP/USD", 500_000, in_months(3),
                   barrier1=1.3200, rebate=0.05, original_price=0.012),
    ]


def load_portfolio(path):
    """Read a JSON book. Returns (valuation_date, markets, instruments, exposures)."""
    with open(path) as f:
        doc = json.load(f)
    valuation_date = as_date(doc.get("valuation_date", date.today().isoformat()))
    markets = default_markets(valuation_date)
    for pair, snap in doc.get("markets", {}).items():
        snap = dict(snap, valuation_date=snap.get("valuation_date", valuation_date.isoformat()))
        snap.setdefault("currency_pair", pair)
        markets[pair] = MarketSnapshot.from_dict(snap)
    instruments = [Instrument.from_dict(i) for i in doc.get("instruments", [])]
    exposures = [Exposure.from_dict(e) for e in doc.get("exposures", [])]
    return valuation_date, markets, instruments, exposures or None


def load_book(args, store):
    if args.portfolio:
        return load_portfolio(args.portfolio)
    valuation_date = date.today()
    repo = PortfolioRepository(store)
    if len(repo) == 0:
        log.info("Empty book, seeding demo portfolio")
        for inst in demo_book(valuation_date):
            repo.add(inst)
    return valuation_date, default_markets(valuation_date), repo.instruments(), repo.exposures() or None


# ── Commands ─────────────────────────────────────────────────────────────

def cmd_price(book, config, console, diagnostics):
    _, markets, instruments, _ = book
    dispatcher = InstrumentPricingDispatcher(config, diagnostics)
    details = []
    for inst in instruments:
        market = market_for(markets, inst.currency_pair)
        if market is None:
            console.print(f"[yellow]{inst.id}: no market data for {inst.currency_pair}[/yellow]")
            continue
        try:
            details.append(dispatcher.price_detail(inst, market))
        except UnknownInstrumentKindError as e:
            console.print(f"[red]{e}[/red]")
    labels = {inst.id: inst.label for inst in instruments}
    HedgeVisualizer(console).render_prices(details, labels)


def cmd_mtm(book, config, console, diagnostics):
    _, markets, instruments, _ = book
    agg = RiskAggregator(config, diagnostics)
    valuations, excluded = agg.value_portfolio(instruments, markets)
    HedgeVisualizer(console).render_valuations(valuations, excluded)


def cmd_risk(book, config, console, diagnostics):
    _, markets, instruments, exposures = book
    agg = RiskAggregator(config, diagnostics)
    metrics = agg.aggregate_risk(instruments, markets, exposures)
    if exposures is None:
        exposures = exposures_from_instruments(instruments)
    HedgeVisualizer(console).render_risk(metrics, agg.currency_exposures(exposures, markets))


def cmd_stress(book, config, console, diagnostics, spot=None, vol=None, scenario=None):
    _, markets, instruments, exposures = book
    engine = StressEngine(config, diagnostics)
    viz = HedgeVisualizer(console)
    if scenario:
        viz.render_impacts(engine.run_named(scenario, instruments, markets, exposures))
        return
    if spot is not None or vol is not None:
        result = engine.run_custom(instruments, markets, spot or 0.0, vol or 0.0, exposures=exposures)
        viz.render_impacts(result)
        return
    console.print("[dim]Running stress scenarios...[/dim]")
    viz.render_stress(engine.run_all(instruments, markets, exposures))


def cmd_config(store, console, set_pair=None):
    """Show or edit engine configuration."""
    if set_pair:
        key, value = set_pair
        try:
            typed_val = set_config_value(store, key, value)
        except (ConfigError, ValueError) as e:
            console.print(f"[red]Cannot set {key}: {e}[/red]")
            console.print(f"Valid keys: {', '.join(SCALAR_KEYS)}")
            return
        console.print(f"[green]Set {key} = {typed_val}[/green]")
        return

    config = load_config(store)
    HedgeVisualizer(console).render_config(config.to_mapping(), DEFAULT_CONFIG)
    console.print("[dim]Edit: python hedge_desk.py config --set KEY VALUE[/dim]")


def report_diagnostics(diagnostics, console):
    warnings = diagnostics.warnings()
    if not warnings:
        return
    console.print(f"[yellow]{len(warnings)} pricing warning(s):[/yellow]")
    for w in warnings:
        who = f"{w.instrument_id}: " if w.instrument_id else ""
        console.print(f"  [yellow]{w.code}[/yellow] {who}{w.message}")


# ── CLI ──────────────────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(description="FX Hedge Desk")
    parser.add_argument("--portfolio", help="JSON portfolio file")
    parser.add_argument("--db", default=":memory:", help="Ring store path (default: in-memory)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("price", help="Theoretical price and model for every instrument")
    sub.add_parser("mtm", help="Mark-to-market against original prices")
    sub.add_parser("risk", help="Show VaR, Expected Shortfall and exposures")

    stress_p = sub.add_parser("stress", help="Run stress scenarios")
    stress_p.add_argument("--spot", type=float, help="Custom spot shock in percent")
    stress_p.add_argument("--vol", type=float, help="Custom volatility shock in points")
    stress_p.add_argument("--scenario", choices=list(STRESS_SCENARIOS), help="Run one named scenario")

    cfg_p = sub.add_parser("config", help="Show/edit engine config")
    cfg_p.add_argument("--set", nargs=2, metavar=("KEY", "VALUE"),
                       help="Set a config value")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console(width=110)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    store = RingStore.open(RING_SPEC, db_path=args.db)
    try:
        ensure_config(store)
        if args.command == "config":
            cmd_config(store, console, set_pair=args.set)
            return

        config = load_config(store)
        diagnostics = Diagnostics()
        book = load_book(args, store)

        if args.command == "price":
            cmd_price(book, config, console, diagnostics)
        elif args.command == "mtm":
            cmd_mtm(book, config, console, diagnostics)
        elif args.command == "risk":
            cmd_risk(book, config, console, diagnostics)
        elif args.command == "stress":
            cmd_stress(book, config, console, diagnostics, spot=args.spot, vol=args.vol,
                       scenario=args.scenario)
        else:
            cmd_mtm(book, config, console, diagnostics)
            cmd_risk(book, config, console, diagnostics)
        report_diagnostics(diagnostics, console)
    finally:
        store.close()


if __name__ == "__main__":
    main()
