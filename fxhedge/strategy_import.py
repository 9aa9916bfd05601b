"""
Strategy import: turn the legs of a hedging strategy into book instruments.

A strategy is a list of legs (call, knock-out put, one-touch, ...) applied
over a hedging horizon split into monthly periods. Each leg produces one
instrument per period, maturing at the period's month end, with notional
``|quantity| / 100 * period volume``. Strikes and barriers may be given in
percent of spot or as absolute levels; volatilities, rates and rebates are
entered in percent.
"""

import calendar
import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from .instruments import (
    BARRIER_KINDS,
    Digital,
    Forward,
    Instrument,
    OptionType,
    Swap,
    UnknownKind,
    parse_kind,
)
from .timebasis import as_date

logger = logging.getLogger(__name__)

DEFAULT_DIGITAL_REBATE_PCT = 5.0
PERCENT = "percent"
ESTIMATE_HORIZON_YEARS = 1.0


@dataclass
class StrategyLeg:
    type: str
    strike: float
    quantity: float = 100.0
    volatility: float = 20.0
    strike_type: str = PERCENT
    barrier: Optional[float] = None
    second_barrier: Optional[float] = None
    barrier_type: str = PERCENT
    rebate: Optional[float] = None


@dataclass
class StrategyParams:
    currency_pair: str
    spot: float
    start_date: date
    months_to_hedge: int
    base_volume: float
    domestic_rate: float = 1.0
    foreign_rate: float = 0.5
    custom_periods: list = field(default_factory=list)  # [(maturity, volume)]

    def __post_init__(self):
        self.start_date = as_date(self.start_date)


def _month_end(year, month):
    return date(year, month, calendar.monthrange(year, month)[1])


def maturity_dates(start_date, months_to_hedge, custom_periods=None):
    """
    Month-end maturities starting with the end of the start month.

    Custom periods, when given, replace the monthly schedule and are
    returned sorted by date.
    """
    if custom_periods:
        return sorted(as_date(m) for m, _ in custom_periods)

    start = as_date(start_date)
    dates = []
    year, month = start.year, start.month
    for _ in range(months_to_hedge):
        dates.append(_month_end(year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return dates


def estimate_premium(leg, spot):
    """
    Rough premium (per unit notional) when no model price is available:
    intrinsic value plus a 1-year time value, 30% off for barriers, and
    half the rebate for digitals.
    """
    kind = parse_kind(leg.type)
    if isinstance(kind, (Forward, Swap)):
        return 0.0
    if isinstance(kind, Digital):
        rebate = (leg.rebate if leg.rebate is not None else DEFAULT_DIGITAL_REBATE_PCT) / 100.0
        return rebate * 0.5

    strike = _level(leg.strike, leg.strike_type, spot)
    option_type = getattr(kind, "option_type", None)
    if option_type is None:
        intrinsic = 0.0
    elif option_type is OptionType.CALL:
        intrinsic = max(0.0, spot - strike)
    else:
        intrinsic = max(0.0, strike - spot)

    time_value = spot * (leg.volatility / 100.0) * math.sqrt(ESTIMATE_HORIZON_YEARS) * 0.4
    discount = 0.7 if isinstance(kind, BARRIER_KINDS) else 1.0
    return max(0.0001, (intrinsic + time_value) * discount)


def _level(value, value_type, spot):
    if value is None:
        return None
    return spot * value / 100.0 if value_type == PERCENT else value


class StrategyImportMapper:
    """Map strategy legs to :class:`Instrument` records."""

    def __init__(self, id_prefix="HDG"):
        self.id_prefix = id_prefix

    def map_strategy(self, name, legs, params, calculated_prices=None):
        """
        Build the instruments for one strategy.

        Parameters
        ----------
        name              : strategy name, stamped on every instrument
        legs              : list[StrategyLeg]
        params            : StrategyParams
        calculated_prices : optional {(period_index, leg_index): price}
                            used as original price instead of the estimate
        """
        calculated_prices = calculated_prices or {}
        dates = maturity_dates(params.start_date, params.months_to_hedge, params.custom_periods)
        if params.custom_periods:
            volumes = [v for _, v in sorted(params.custom_periods, key=lambda p: as_date(p[0]))]
        else:
            volumes = [params.base_volume / len(dates)] * len(dates) if dates else []

        instruments = []
        for p, (maturity, volume) in enumerate(zip(dates, volumes)):
            for c, leg in enumerate(legs):
                inst = self._map_leg(name, leg, params, maturity, volume, p, c)
                price = calculated_prices.get((p, c))
                inst.original_price = price if price is not None else estimate_premium(leg, params.spot)
                instruments.append(inst)

        logger.info(f"Mapped strategy {name!r}: {len(legs)} legs x {len(dates)} periods")
        return instruments

    def _map_leg(self, name, leg, params, maturity, volume, period_index, leg_index):
        kind = parse_kind(leg.type)
        if isinstance(kind, UnknownKind):
            logger.warning(f"Strategy {name!r} leg {leg_index + 1}: unrecognised type {leg.type!r}")

        inst = Instrument(
            id=f"{self.id_prefix}-{name}-P{period_index + 1}-C{leg_index + 1}",
            kind=kind,
            currency_pair=params.currency_pair,
            notional=abs(leg.quantity) / 100.0 * volume,
            maturity_date=maturity,
            quantity=leg.quantity,
            strike=_level(leg.strike, leg.strike_type, params.spot),
            strategy_volatility=leg.volatility / 100.0,
            volatility=leg.volatility / 100.0,
            strategy_name=f"{name} [P{period_index + 1}]",
            counterparty="Strategy Import",
        )

        if isinstance(kind, BARRIER_KINDS + (Digital,)):
            inst.barrier1 = _level(leg.barrier, leg.barrier_type, params.spot)
            inst.barrier2 = _level(leg.second_barrier, leg.barrier_type, params.spot)

        if leg.rebate is not None:
            inst.rebate = leg.rebate / 100.0
        elif isinstance(kind, Digital):
            inst.rebate = DEFAULT_DIGITAL_REBATE_PCT / 100.0
        return inst
