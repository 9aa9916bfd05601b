"""
Portfolio MTM and parametric risk.

MTM per instrument is ``sign(q) * (today - original) * |notional|``.
Portfolio VaR is the delta-normal figure over currency net exposures with a
static correlation table; Expected Shortfall is VaR times a configured
multiplier per confidence level.

Instruments whose currency pair has no market snapshot, or whose kind has
no pricer, are excluded from the sums and reported; they never contribute
a silent zero.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from . import diagnostics as diag
from .config import EngineConfig
from .dispatcher import InstrumentPricingDispatcher
from .errors import UnknownInstrumentKindError
from .instruments import exposures_from_instruments, split_pair
from .market import market_for

logger = logging.getLogger(__name__)


# ── Correlations ─────────────────────────────────────────────────────────

CURRENCY_CORRELATIONS = {
    frozenset(("EUR", "GBP")): 0.75,
    frozenset(("EUR", "CHF")): 0.85,
    frozenset(("GBP", "CHF")): 0.65,
    frozenset(("USD", "JPY")): -0.25,
    frozenset(("EUR", "USD")): -0.15,
    frozenset(("GBP", "USD")): -0.10,
}


def correlation(ccy1, ccy2, default=0.3):
    """Symmetric currency correlation; 1.0 on the diagonal."""
    if ccy1 == ccy2:
        return 1.0
    return CURRENCY_CORRELATIONS.get(frozenset((ccy1, ccy2)), default)


def currency_volatility(currency, markets, default=0.10):
    """Volatility of the first market pair quoting ``currency``."""
    for pair, snap in markets.items():
        if currency in split_pair(snap.currency_pair or pair):
            return snap.volatility
    return default


# ── Result records ───────────────────────────────────────────────────────

@dataclass
class InstrumentValuation:
    instrument_id: str
    label: str
    currency_pair: str
    notional: float
    today_price: float
    original_price: float
    mtm: float
    model: str
    volatility: float = None


@dataclass
class CurrencyExposure:
    currency: str
    gross_exposure: float
    net_exposure: float
    hedged_amount: float
    hedge_ratio: float
    volatility: float
    var95: float


@dataclass
class RiskMetrics:
    """Portfolio risk figures; recomputed on every request."""
    var95: float
    var99: float
    expected_shortfall95: float
    expected_shortfall99: float
    total_exposure: float
    hedged_exposure: float
    unhedged_exposure: float
    hedge_ratio: float
    mtm_impact: float
    excluded: list = field(default_factory=list)


def mtm_from_prices(instrument, today_price):
    return instrument.quantity_sign * (today_price - instrument.original_price) * instrument.notional


def compute_mtm(instrument, market, config=None, diagnostics=None):
    """Mark-to-market of one position in quote currency."""
    today = InstrumentPricingDispatcher(config, diagnostics).price(instrument, market)
    return mtm_from_prices(instrument, today)


# ── RiskAggregator ───────────────────────────────────────────────────────

class RiskAggregator:
    """
    Value a book and aggregate it into MTM, VaR and Expected Shortfall.

    Instruments are priced in a thread pool; each one draws Monte Carlo
    paths from its own generator (seed + instrument id), so results do not
    depend on scheduling.
    """

    def __init__(self, config=None, diagnostics=None, cancel_event=None):
        self.config = config or EngineConfig()
        self.diagnostics = diagnostics
        self.dispatcher = InstrumentPricingDispatcher(self.config, diagnostics, cancel_event)

    def _value_one(self, instrument, markets):
        market = market_for(markets, instrument.currency_pair)
        if market is None:
            diag.report(self.diagnostics, diag.MISSING_MARKET_DATA,
                        f"no market snapshot for {instrument.currency_pair}; excluded",
                        instrument.id)
            return None
        try:
            detail = self.dispatcher.price_detail(instrument, market)
        except UnknownInstrumentKindError as e:
            diag.report(self.diagnostics, diag.UNKNOWN_KIND, f"{e}; excluded", instrument.id)
            return None
        return InstrumentValuation(
            instrument_id=instrument.id,
            label=instrument.label,
            currency_pair=instrument.currency_pair,
            notional=instrument.notional,
            today_price=detail.price,
            original_price=instrument.original_price,
            mtm=mtm_from_prices(instrument, detail.price),
            model=detail.model,
            volatility=detail.volatility,
        )

    def value_portfolio(self, instruments, markets):
        """
        Price every instrument.

        Returns (valuations, excluded_ids). Valuations keep the input order.
        """
        instruments = list(instruments)
        if not instruments:
            return [], []
        workers = max(1, min(self.config.max_workers, len(instruments)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._value_one, inst, markets) for inst in instruments]
            results = [f.result() for f in futures]

        valuations = [v for v in results if v is not None]
        excluded = [inst.id for inst, v in zip(instruments, results) if v is None]
        logger.info(f"Valued {len(valuations)} instruments, excluded {len(excluded)}")
        return valuations, excluded

    def currency_exposures(self, exposures, markets):
        """Net, gross and hedged amounts per currency with standalone 95% VaR."""
        grouped = {}
        for exp in exposures:
            g = grouped.setdefault(exp.currency, {"gross": 0.0, "net": 0.0, "hedged": 0.0})
            g["gross"] += abs(exp.amount)
            g["net"] += exp.net_amount
            g["hedged"] += abs(exp.hedged_amount)

        horizon = math.sqrt(self.config.var_horizon_days / self.config.trading_days)
        z95 = self.config.z_scores[0.95]
        result = []
        for ccy, g in grouped.items():
            vol = currency_volatility(ccy, markets, self.config.default_currency_volatility)
            result.append(CurrencyExposure(
                currency=ccy,
                gross_exposure=g["gross"],
                net_exposure=g["net"],
                hedged_amount=g["hedged"],
                hedge_ratio=g["hedged"] / g["gross"] * 100.0 if g["gross"] > 0 else 0.0,
                volatility=vol,
                var95=abs(g["net"]) * vol * z95 * horizon,
            ))
        return result

    def portfolio_var(self, currency_exposures, confidence):
        """
        Parametric VaR at ``confidence`` (0.95 or 0.99).

        VaR = z * sqrt(sum_ij net_i net_j vol_i vol_j rho_ij) * sqrt(h / 252)
        """
        z = self.config.z_scores[confidence]
        variance = 0.0
        for a in currency_exposures:
            for b in currency_exposures:
                rho = correlation(a.currency, b.currency, self.config.default_correlation)
                variance += a.net_exposure * b.net_exposure * a.volatility * b.volatility * rho
        # tiny negative variances come from rounding with negative correlations
        std = math.sqrt(max(0.0, variance))
        return z * std * math.sqrt(self.config.var_horizon_days / self.config.trading_days)

    def aggregate_risk(self, instruments, markets, exposures=None):
        """
        Portfolio RiskMetrics.

        Without explicit ``exposures`` they are derived from the valued
        instruments (one fully hedged exposure per base currency).
        """
        instruments = list(instruments)
        valuations, excluded = self.value_portfolio(instruments, markets)
        mtm_impact = sum(v.mtm for v in valuations)

        if exposures is None:
            valued_ids = {v.instrument_id for v in valuations}
            exposures = exposures_from_instruments(
                [inst for inst in instruments if inst.id in valued_ids]
            )

        total = sum(abs(e.amount) for e in exposures)
        hedged = sum(abs(e.hedged_amount) for e in exposures)
        ccy_exp = self.currency_exposures(exposures, markets)
        var95 = self.portfolio_var(ccy_exp, 0.95)
        var99 = self.portfolio_var(ccy_exp, 0.99)

        return RiskMetrics(
            var95=var95,
            var99=var99,
            expected_shortfall95=var95 * self.config.es_multipliers[0.95],
            expected_shortfall99=var99 * self.config.es_multipliers[0.99],
            total_exposure=total,
            hedged_exposure=hedged,
            unhedged_exposure=total - hedged,
            hedge_ratio=hedged / total * 100.0 if total > 0 else 0.0,
            mtm_impact=mtm_impact,
            excluded=excluded,
        )


def aggregate_risk(instruments, markets, exposures=None, config=None, diagnostics=None):
    return RiskAggregator(config, diagnostics).aggregate_risk(instruments, markets, exposures)
