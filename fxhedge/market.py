"""
Market snapshots for FX pairs.

A ``MarketSnapshot`` is immutable; stress scenarios derive shocked copies
with :meth:`MarketSnapshot.shocked` instead of editing the base snapshot.
"""

import math
from dataclasses import dataclass, replace, asdict
from datetime import date

from .errors import MarketDataError
from .instruments import split_pair
from .timebasis import as_date


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Market state for one currency pair.

    Parameters
    ----------
    spot             : units of quote currency per unit of base
    domestic_rate    : continuously compounded quote-currency rate (decimal)
    foreign_rate     : continuously compounded base-currency rate (decimal)
    volatility       : annualised market volatility (decimal)
    valuation_date   : pricing date
    currency_pair    : e.g. "EUR/USD"
    volatility_shift : absolute vol added to instrument-level volatilities
                       (set by stress scenarios, 0 otherwise)
    """
    spot: float
    domestic_rate: float
    foreign_rate: float
    volatility: float
    valuation_date: date
    currency_pair: str = ""
    volatility_shift: float = 0.0

    def __post_init__(self):
        if not self.spot > 0:
            raise MarketDataError(f"spot must be positive, got {self.spot}")
        if self.volatility < 0:
            raise MarketDataError(f"volatility must be >= 0, got {self.volatility}")
        object.__setattr__(self, "valuation_date", as_date(self.valuation_date))

    @property
    def carry(self):
        """Cost of carry b = r_d - r_f."""
        return self.domestic_rate - self.foreign_rate

    def forward_rate(self, t):
        return self.spot * math.exp(self.carry * t)

    def with_spot(self, spot):
        return replace(self, spot=spot)

    def shocked(self, spot_shock_pct=0.0, vol_shock_pts=0.0):
        """
        Return a shocked copy.

        ``spot_shock_pct`` is a percentage move of spot (10 means +10%).
        ``vol_shock_pts`` is in volatility points (5 means +0.05); it moves
        the market volatility and the shift applied to instrument-level
        volatilities alike. Both results are floored at zero.
        """
        dvol = vol_shock_pts / 100.0
        return replace(
            self,
            spot=self.spot * (1.0 + spot_shock_pct / 100.0),
            volatility=max(0.0, self.volatility + dvol),
            volatility_shift=self.volatility_shift + dvol,
        )

    def to_dict(self):
        d = asdict(self)
        d["valuation_date"] = self.valuation_date.isoformat()
        return d

    @classmethod
    def from_dict(cls, data):
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in dict(data).items() if k in known})


def normalize_pair(currency_pair):
    base, quote = split_pair(currency_pair)
    return f"{base}/{quote}"


def market_for(markets, currency_pair):
    """Look up a snapshot by pair, accepting "EURUSD" or "EUR/USD" keys."""
    key = normalize_pair(currency_pair)
    snap = markets.get(key)
    if snap is None:
        snap = markets.get(key.replace("/", ""))
    return snap


# ── Default market data ──────────────────────────────────────────────────

# spot, vol %, domestic %, foreign %
DEFAULT_MARKET_DATA = {
    "EUR/USD": (1.0850, 20.0, 1.0, 0.5),
    "GBP/USD": (1.2650, 22.0, 1.0, 1.5),
    "USD/JPY": (149.50, 18.0, 1.0, 0.1),
    "USD/CHF": (0.9125, 16.0, 1.0, 0.25),
    "AUD/USD": (0.6750, 24.0, 1.0, 2.0),
    "USD/CAD": (1.3425, 19.0, 1.0, 1.25),
}

FALLBACK_MARKET_DATA = (1.0, 20.0, 1.0, 1.0)


def default_snapshot(currency_pair, valuation_date):
    """Snapshot from the built-in table; unknown pairs get a flat default."""
    pair = normalize_pair(currency_pair)
    spot, vol, rd, rf = DEFAULT_MARKET_DATA.get(pair, FALLBACK_MARKET_DATA)
    return MarketSnapshot(
        spot=spot,
        domestic_rate=rd / 100.0,
        foreign_rate=rf / 100.0,
        volatility=vol / 100.0,
        valuation_date=valuation_date,
        currency_pair=pair,
    )


def default_markets(valuation_date):
    return {pair: default_snapshot(pair, valuation_date) for pair in DEFAULT_MARKET_DATA}
