"""
Scenario and stress analysis.

A scenario is a pair of market sets, base and shocked. Every instrument is
repriced under both and the MTM difference is reported per instrument and
for the portfolio. Named stress scenarios build the shocked set from per
pair spot moves plus an optional volatility shock.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from .config import EngineConfig
from .instruments import split_pair
from .market import normalize_pair
from .risk import RiskAggregator

logger = logging.getLogger(__name__)

SAFE_HAVENS = ("USD", "CHF", "JPY")


# ── Shock generators ─────────────────────────────────────────────────────
# Each returns {pair: spot shock in percent} for the pairs given.

def usd_strength_shocks(pairs, magnitude_pct):
    """USD appreciates: XXX/USD falls, USD/XXX rises."""
    shocks = {}
    for pair in pairs:
        base, quote = split_pair(pair)
        if quote == "USD":
            shocks[pair] = -magnitude_pct
        elif base == "USD":
            shocks[pair] = magnitude_pct
    return shocks


def eur_crisis_shocks(pairs, magnitude_pct):
    """EUR depreciates against everything."""
    shocks = {}
    for pair in pairs:
        base, quote = split_pair(pair)
        if base == "EUR":
            shocks[pair] = -magnitude_pct
        elif quote == "EUR":
            shocks[pair] = magnitude_pct
    return shocks


def risk_off_shocks(pairs, magnitude_pct):
    """Safe havens (USD, CHF, JPY) strengthen against risk currencies."""
    shocks = {}
    for pair in pairs:
        base, quote = split_pair(pair)
        base_safe, quote_safe = base in SAFE_HAVENS, quote in SAFE_HAVENS
        if base_safe and not quote_safe:
            shocks[pair] = magnitude_pct
        elif quote_safe and not base_safe:
            shocks[pair] = -magnitude_pct
        else:
            shocks[pair] = 0.0
    return shocks


def uniform_shocks(pairs, magnitude_pct):
    return {pair: magnitude_pct for pair in pairs}


STRESS_SCENARIOS = {
    "USD Strength": {
        "generator": usd_strength_shocks,
        "magnitude_pct": 10.0,
        "vol_shock_pts": 0.0,
        "description": "10% USD appreciation across all pairs",
    },
    "EUR Crisis": {
        "generator": eur_crisis_shocks,
        "magnitude_pct": 15.0,
        "vol_shock_pts": 5.0,
        "description": "15% EUR depreciation with increased volatility",
    },
    "Risk-Off": {
        "generator": risk_off_shocks,
        "magnitude_pct": 5.0,
        "vol_shock_pts": 3.0,
        "description": "Flight to safe havens (USD, CHF, JPY)",
    },
    "Vol Spike": {
        "generator": uniform_shocks,
        "magnitude_pct": 0.0,
        "vol_shock_pts": 10.0,
        "description": "Implied volatility +10 points, spots unchanged",
    },
}


def shock_markets(markets, spot_shock_pct=0.0, vol_shock_pts=0.0, pairs=None):
    """
    Shocked copy of ``markets``.

    ``spot_shock_pct`` is either one percentage applied to every pair or a
    ``{pair: pct}`` mapping. ``pairs`` restricts the shock to those pairs;
    the others are carried over unchanged.
    """
    selected = None if pairs is None else {normalize_pair(p) for p in pairs}
    out = {}
    for key, snap in markets.items():
        pair = normalize_pair(snap.currency_pair or key)
        if selected is not None and pair not in selected:
            out[key] = snap
            continue
        if isinstance(spot_shock_pct, dict):
            spot = spot_shock_pct.get(pair, spot_shock_pct.get(key, 0.0))
        else:
            spot = spot_shock_pct
        out[key] = snap.shocked(spot, vol_shock_pts)
    return out


# ── Results ──────────────────────────────────────────────────────────────

@dataclass
class PerInstrumentImpact:
    instrument_id: str
    label: str
    base_price: float
    shocked_price: float
    base_mtm: float
    shocked_mtm: float
    change: float
    pct_change: float


@dataclass
class ScenarioResult:
    name: str
    impacts: list
    base_mtm: float
    shocked_mtm: float
    change: float
    pct_change: float
    exposure_impact: float = 0.0
    excluded: list = field(default_factory=list)
    description: str = ""


def _pct(change, base):
    return change / abs(base) * 100.0 if base else 0.0


def run_scenario(instruments, base_markets, shocked_markets, config=None, diagnostics=None,
                 aggregator=None):
    """
    Reprice ``instruments`` under both market sets.

    Percentage change is measured against the absolute signed market value
    (sign * price * notional) under the base markets. Instruments missing a
    snapshot in either set are left out.
    """
    aggregator = aggregator or RiskAggregator(config, diagnostics)
    instruments = list(instruments)
    base_vals, _ = aggregator.value_portfolio(instruments, base_markets)
    shocked_vals, _ = aggregator.value_portfolio(instruments, shocked_markets)
    base_by_id = {v.instrument_id: v for v in base_vals}
    shocked_by_id = {v.instrument_id: v for v in shocked_vals}

    impacts = []
    for inst in instruments:
        b, s = base_by_id.get(inst.id), shocked_by_id.get(inst.id)
        if b is None or s is None:
            continue
        base_value = inst.quantity_sign * b.today_price * inst.notional
        change = s.mtm - b.mtm
        impacts.append(PerInstrumentImpact(
            instrument_id=inst.id,
            label=inst.label,
            base_price=b.today_price,
            shocked_price=s.today_price,
            base_mtm=b.mtm,
            shocked_mtm=s.mtm,
            change=change,
            pct_change=_pct(change, base_value),
        ))
    return impacts


def exposure_impact(exposures, shocks_pct):
    """
    P&L on the unhedged part of the exposures: unhedged amount * shock,
    using the first shocked pair that quotes the exposure currency.
    """
    total = 0.0
    for exp in exposures:
        for pair, pct in shocks_pct.items():
            if exp.currency in split_pair(pair):
                unhedged = abs(exp.amount) - abs(exp.hedged_amount)
                sign = 1.0 if exp.net_amount >= 0 else -1.0
                total += sign * unhedged * pct / 100.0
                break
    return total


# ── StressEngine ─────────────────────────────────────────────────────────

class StressEngine:
    """Run predefined and custom stress scenarios over a hedging book."""

    def __init__(self, config=None, diagnostics=None, cancel_event=None):
        self.config = config or EngineConfig()
        self.diagnostics = diagnostics
        self.aggregator = RiskAggregator(self.config, diagnostics, cancel_event)

    def run_custom(self, instruments, markets, spot_shock_pct=0.0, vol_shock_pts=0.0,
                   exposures=None, name="Custom", description=""):
        shocked = shock_markets(markets, spot_shock_pct, vol_shock_pts)
        if isinstance(spot_shock_pct, dict):
            shocks = dict(spot_shock_pct)
        else:
            shocks = {normalize_pair(s.currency_pair or k): spot_shock_pct for k, s in markets.items()}
        return self._summarise(name, description, instruments, markets, shocked, shocks, exposures)

    def run_named(self, name, instruments, markets, exposures=None):
        if name not in STRESS_SCENARIOS:
            raise ValueError(f"Unknown scenario: {name}. "
                             f"Available: {list(STRESS_SCENARIOS.keys())}")
        scenario = STRESS_SCENARIOS[name]
        pairs = [normalize_pair(s.currency_pair or k) for k, s in markets.items()]
        shocks = scenario["generator"](pairs, scenario["magnitude_pct"])
        return self.run_custom(instruments, markets, shocks, scenario["vol_shock_pts"],
                               exposures=exposures, name=name,
                               description=scenario["description"])

    def run_all(self, instruments, markets, exposures=None):
        """Run all predefined scenarios in parallel. Returns dict[name, ScenarioResult]."""
        instruments = list(instruments)
        with ThreadPoolExecutor(max_workers=min(self.config.max_workers, len(STRESS_SCENARIOS))) as pool:
            futures = {
                pool.submit(self.run_named, name, instruments, markets, exposures): name
                for name in STRESS_SCENARIOS
            }
            results = {}
            for future in futures:
                results[futures[future]] = future.result()
        return results

    def _summarise(self, name, description, instruments, markets, shocked, shocks, exposures):
        instruments = list(instruments)
        impacts = run_scenario(instruments, markets, shocked, aggregator=self.aggregator)
        priced = {i.instrument_id for i in impacts}
        excluded = [inst.id for inst in instruments if inst.id not in priced]
        by_id = {inst.id: inst for inst in instruments}

        base_mtm = sum(i.base_mtm for i in impacts)
        shocked_mtm = sum(i.shocked_mtm for i in impacts)
        base_value = sum(
            by_id[i.instrument_id].quantity_sign * i.base_price * by_id[i.instrument_id].notional
            for i in impacts
        )
        change = shocked_mtm - base_mtm
        logger.info(f"Scenario {name}: change {change:+,.2f} over {len(impacts)} instruments")
        return ScenarioResult(
            name=name,
            impacts=impacts,
            base_mtm=base_mtm,
            shocked_mtm=shocked_mtm,
            change=change,
            pct_change=_pct(change, base_value),
            exposure_impact=exposure_impact(exposures or [], shocks),
            excluded=excluded,
            description=description,
        )
