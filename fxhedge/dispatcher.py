"""
Instrument pricing dispatcher.

Maps an instrument kind onto its pricer, resolves the volatility to use and
turns recoverable pricer failures into a zero price plus a diagnostic, so
that one bad trade never aborts a portfolio valuation.

Dispatch order: barrier kinds, digital kinds, vanilla call/put, forward,
swap, then the opt-in fallback for unrecognised kinds.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from . import diagnostics as diag
from .barrier import double_barrier_price, single_barrier_price
from .config import CLOSED_FORM, MONTE_CARLO, EngineConfig
from .errors import BarrierFormulaError, PricingDomainError, UnknownInstrumentKindError
from .instruments import (
    Digital,
    DigitalSubtype,
    DoubleBarrier,
    Forward,
    OptionType,
    SingleBarrier,
    Swap,
    VanillaCall,
    VanillaPut,
)
from .montecarlo import (
    PathSimulator,
    barrier_monte_carlo,
    digital_monte_carlo,
    make_rng,
    vanilla_monte_carlo,
)
from .timebasis import year_fraction
from .vanilla import check_domain, forward_value, garman_kohlhagen, swap_value

logger = logging.getLogger(__name__)


@dataclass
class PriceDetail:
    """Result of one valuation with the inputs that produced it."""
    instrument_id: str
    price: float
    model: str
    volatility: Optional[float] = None
    time_to_maturity: float = 0.0
    warnings: list = field(default_factory=list)


def effective_volatility(instrument, market):
    """
    Volatility used to price ``instrument``.

    Priority: the instrument's implied-vol override, then the volatility of
    the strategy leg it came from, then its own stored volatility, then the
    market snapshot's volatility. Instrument-level values are moved by the
    snapshot's ``volatility_shift`` so that stressed markets shock them too.
    The result is floored at zero.
    """
    for candidate in (instrument.volatility_override,
                      instrument.strategy_volatility,
                      instrument.volatility):
        if candidate is not None:
            return max(0.0, candidate + market.volatility_shift)
    return max(0.0, market.volatility)


class InstrumentPricingDispatcher:
    """
    Price instruments against market snapshots.

    Parameters
    ----------
    config       : EngineConfig (defaults when omitted)
    diagnostics  : Diagnostics collector receiving warnings (optional)
    cancel_event : threading.Event checked between Monte Carlo batches
    """

    def __init__(self, config=None, diagnostics=None, cancel_event=None):
        self.config = config or EngineConfig()
        self.diagnostics = diagnostics
        self.cancel_event = cancel_event

    def _warn(self, detail, code, message):
        detail.warnings.append(code)
        diag.report(self.diagnostics, code, message, detail.instrument_id)

    def _simulator(self, instrument, rng=None):
        if rng is None:
            rng = make_rng(self.config.random_seed, instrument.id)
        return PathSimulator(rng, self.config.batch_size, self.cancel_event)

    def price(self, instrument, market, rng=None):
        return self.price_detail(instrument, market, rng=rng).price

    def price_detail(self, instrument, market, rng=None):
        """
        Value one unit of notional of ``instrument`` in ``market``.

        Expired instruments are worth exactly 0 without a warning. Domain
        problems, missing barriers and closed-form failures give 0 (or a
        Monte Carlo price) with a warning. An unrecognised kind raises
        UnknownInstrumentKindError unless ``allow_unknown_fallback`` is set.
        """
        t = year_fraction(instrument.maturity_date, market.valuation_date)
        detail = PriceDetail(instrument.id, 0.0, "expired", time_to_maturity=t)
        if t <= 0:
            return detail

        sigma = effective_volatility(instrument, market)
        detail.volatility = sigma
        kind = instrument.kind

        try:
            if isinstance(kind, (SingleBarrier, DoubleBarrier)):
                self._price_barrier(detail, instrument, market, t, sigma, rng)
            elif isinstance(kind, Digital):
                self._price_digital(detail, instrument, market, t, sigma, rng)
            elif isinstance(kind, (VanillaCall, VanillaPut)):
                self._price_vanilla(detail, kind.option_type, instrument, market, t, sigma, rng)
            elif isinstance(kind, Forward):
                self._require_strike(instrument)
                detail.model = "forward"
                detail.price = forward_value(market.spot, instrument.strike,
                                             market.domestic_rate, market.foreign_rate, t)
            elif isinstance(kind, Swap):
                detail.model = "swap"
                detail.price = swap_value(market.spot, market.domestic_rate, market.foreign_rate, t)
            elif self.config.allow_unknown_fallback:
                self._warn(detail, diag.UNKNOWN_KIND,
                           f"unrecognised kind {kind.label!r}, priced as a vanilla call")
                self._price_vanilla(detail, OptionType.CALL, instrument, market, t, sigma, rng)
            else:
                raise UnknownInstrumentKindError(
                    f"{instrument.id}: no pricer for kind {getattr(kind, 'label', kind)!r}"
                )
        except (PricingDomainError, ArithmeticError) as e:
            detail.model = "guard"
            detail.price = 0.0
            self._warn(detail, diag.DOMAIN_GUARD, f"{type(e).__name__}: {e}")

        logger.debug(f"{instrument.id} [{kind.label}] {detail.model}: {detail.price:.6f}")
        return detail

    # ── Pricers ──────────────────────────────────────────────────────────

    @staticmethod
    def _require_strike(instrument):
        if instrument.strike is None:
            raise PricingDomainError(f"{instrument.label} requires a strike")

    def _price_vanilla(self, detail, option_type, instrument, market, t, sigma, rng):
        self._require_strike(instrument)
        check_domain(market.spot, instrument.strike, sigma)
        args = (option_type, market.spot, instrument.strike,
                market.domestic_rate, market.foreign_rate, t, sigma)
        if self.config.vanilla_model == MONTE_CARLO:
            detail.model = "monte-carlo"
            detail.price = vanilla_monte_carlo(*args, n_paths=self.config.vanilla_paths,
                                               simulator=self._simulator(instrument, rng))
        else:
            detail.model = "garman-kohlhagen"
            detail.price = garman_kohlhagen(*args)

    def _price_barrier(self, detail, instrument, market, t, sigma, rng):
        kind = instrument.kind
        double = isinstance(kind, DoubleBarrier)
        if instrument.barrier1 is None or (double and instrument.barrier2 is None):
            self._warn(detail, diag.MISSING_BARRIER, f"{kind.label} has no barrier level")
            detail.model = "guard"
            return

        self._require_strike(instrument)
        check_domain(market.spot, instrument.strike, sigma)
        S, K = market.spot, instrument.strike
        r_d, r_f = market.domestic_rate, market.foreign_rate

        if self.config.barrier_model == CLOSED_FORM:
            try:
                if double:
                    detail.model = "ikeda-kunitomo"
                    detail.price = double_barrier_price(
                        kind.option_type, kind.knock, S, K,
                        instrument.barrier1, instrument.barrier2,
                        r_d, r_f, t, sigma, terms=self.config.series_terms,
                    )
                else:
                    detail.model = "reiner-rubinstein"
                    detail.price = single_barrier_price(
                        kind.option_type, kind.knock, S, K, instrument.barrier1,
                        r_d, r_f, t, sigma, reverse=kind.reverse,
                    )
                return
            except BarrierFormulaError as e:
                self._warn(detail, diag.BARRIER_FORMULA_FAILED, e.reason)
                if not self.config.monte_carlo_fallback:
                    detail.model = "guard"
                    detail.price = 0.0
                    return
                self._warn(detail, diag.MONTE_CARLO_FALLBACK,
                           f"pricing {kind.label} by simulation")

        detail.model = "monte-carlo"
        detail.price = barrier_monte_carlo(
            kind.option_type, kind.knock, S, K, instrument.barrier1,
            r_d, r_f, t, sigma,
            barrier2=instrument.barrier2 if double else None,
            reverse=getattr(kind, "reverse", False),
            n_paths=self.config.barrier_paths,
            steps_per_year=self.config.steps_per_year,
            min_steps=self.config.min_steps,
            simulator=self._simulator(instrument, rng),
        )

    def _price_digital(self, detail, instrument, market, t, sigma, rng):
        subtype = instrument.kind.subtype
        if instrument.barrier1 is None or (subtype.needs_second_barrier and instrument.barrier2 is None):
            self._warn(detail, diag.MISSING_BARRIER, f"{subtype.label} has no barrier level")
            detail.model = "guard"
            return
        if subtype in (DigitalSubtype.RANGE_BINARY, DigitalSubtype.OUTSIDE_BINARY):
            self._require_strike(instrument)
        if sigma <= 0:
            raise PricingDomainError(f"volatility must be positive, got {sigma}")

        detail.model = "monte-carlo"
        detail.price = digital_monte_carlo(
            subtype, market.spot, instrument.barrier1,
            market.domestic_rate, market.foreign_rate, t, sigma, instrument.rebate,
            K=instrument.strike, barrier2=instrument.barrier2,
            n_paths=self.config.digital_paths,
            steps_per_day=self.config.digital_steps_per_day,
            steps_per_year=self.config.steps_per_year,
            min_steps=self.config.min_steps,
            simulator=self._simulator(instrument, rng),
        )


def price_instrument(instrument, market, config=None, diagnostics=None):
    """Theoretical price of one unit of notional (0 when expired)."""
    return InstrumentPricingDispatcher(config, diagnostics).price(instrument, market)
