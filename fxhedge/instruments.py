"""
Instrument records for the hedging book.

An instrument's ``kind`` is one of a closed set of frozen dataclasses
(Forward, Swap, VanillaCall, VanillaPut, SingleBarrier, DoubleBarrier,
Digital). Free-text labels coming from strategy imports or saved portfolios
are turned into a kind once, by :func:`parse_kind`; nothing downstream
inspects label strings.
"""

import re
from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Optional

from .timebasis import as_date


# ── Enums ────────────────────────────────────────────────────────────────

class OptionType(Enum):
    CALL = "call"
    PUT = "put"

    @property
    def phi(self):
        """Payoff sign: +1 for calls, -1 for puts."""
        return 1 if self is OptionType.CALL else -1

    def opposite(self):
        return OptionType.PUT if self is OptionType.CALL else OptionType.CALL


class KnockDirection(Enum):
    IN = "in"
    OUT = "out"


class DigitalSubtype(Enum):
    ONE_TOUCH = "one-touch"
    NO_TOUCH = "no-touch"
    DOUBLE_TOUCH = "double-touch"
    DOUBLE_NO_TOUCH = "double-no-touch"
    RANGE_BINARY = "range-binary"
    OUTSIDE_BINARY = "outside-binary"

    @property
    def needs_second_barrier(self):
        return self in (DigitalSubtype.DOUBLE_TOUCH, DigitalSubtype.DOUBLE_NO_TOUCH)

    @property
    def label(self):
        return {
            DigitalSubtype.ONE_TOUCH: "One-Touch",
            DigitalSubtype.NO_TOUCH: "No-Touch",
            DigitalSubtype.DOUBLE_TOUCH: "Double-Touch",
            DigitalSubtype.DOUBLE_NO_TOUCH: "Double-No-Touch",
            DigitalSubtype.RANGE_BINARY: "Range Binary",
            DigitalSubtype.OUTSIDE_BINARY: "Outside Binary",
        }[self]


# ── Instrument kinds ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Forward:
    label = "Forward"


@dataclass(frozen=True)
class Swap:
    label = "Swap"


@dataclass(frozen=True)
class VanillaCall:
    label = "Vanilla Call"
    option_type = OptionType.CALL


@dataclass(frozen=True)
class VanillaPut:
    label = "Vanilla Put"
    option_type = OptionType.PUT


@dataclass(frozen=True)
class SingleBarrier:
    option_type: OptionType
    knock: KnockDirection
    reverse: bool = False

    @property
    def label(self):
        knock = "Knock-In" if self.knock is KnockDirection.IN else "Knock-Out"
        prefix = "Reverse " if self.reverse else ""
        return f"{prefix}{knock} {self.option_type.value.capitalize()}"


@dataclass(frozen=True)
class DoubleBarrier:
    option_type: OptionType
    knock: KnockDirection

    @property
    def label(self):
        knock = "Knock-In" if self.knock is KnockDirection.IN else "Knock-Out"
        return f"Double {knock} {self.option_type.value.capitalize()}"


@dataclass(frozen=True)
class Digital:
    subtype: DigitalSubtype

    @property
    def label(self):
        return self.subtype.label


@dataclass(frozen=True)
class UnknownKind:
    """A label that does not map onto any supported kind."""
    raw_label: str

    @property
    def label(self):
        return self.raw_label


BARRIER_KINDS = (SingleBarrier, DoubleBarrier)


# ── Label parsing ────────────────────────────────────────────────────────

_DIGITAL_KEYS = [
    # longest first: "doublenotouch" contains "notouch"
    ("doublenotouch", DigitalSubtype.DOUBLE_NO_TOUCH),
    ("doubletouch", DigitalSubtype.DOUBLE_TOUCH),
    ("notouch", DigitalSubtype.NO_TOUCH),
    ("onetouch", DigitalSubtype.ONE_TOUCH),
    ("rangebinary", DigitalSubtype.RANGE_BINARY),
    ("outsidebinary", DigitalSubtype.OUTSIDE_BINARY),
]


def _squash(label):
    return re.sub(r"[^a-z]", "", label.lower())


def parse_kind(label):
    """
    Turn a display or strategy label into an instrument kind.

    Accepts both the book's display labels ("Knock-Out Call",
    "Double-No-Touch") and strategy-leg codes ("call-knockout",
    "put-reverse-knockin", "onetouch"). Barrier and digital membership is
    decided before the generic call/put test, so a knock-out call can never
    be read as a plain call. Unrecognised labels come back as
    :class:`UnknownKind`.
    """
    s = _squash(label)

    if "knock" in s or "barrier" in s or "reverse" in s:
        if "call" in s:
            opt = OptionType.CALL
        elif "put" in s:
            opt = OptionType.PUT
        else:
            return UnknownKind(label)
        knock = KnockDirection.IN if "knockin" in s else KnockDirection.OUT
        if "double" in s:
            return DoubleBarrier(opt, knock)
        return SingleBarrier(opt, knock, reverse="reverse" in s)

    for key, subtype in _DIGITAL_KEYS:
        if key in s:
            return Digital(subtype)

    if s in ("vanillacall", "call"):
        return VanillaCall()
    if s in ("vanillaput", "put"):
        return VanillaPut()
    if s == "forward":
        return Forward()
    if s == "swap":
        return Swap()
    if "call" in s:
        return VanillaCall()
    if "put" in s:
        return VanillaPut()
    return UnknownKind(label)


def split_pair(currency_pair):
    """``"EUR/USD"`` or ``"EURUSD"`` -> ``("EUR", "USD")``."""
    if "/" in currency_pair:
        base, quote = currency_pair.split("/", 1)
        return base.strip().upper(), quote.strip().upper()
    pair = currency_pair.strip().upper()
    return pair[:3], pair[3:6]


# ── Instrument ───────────────────────────────────────────────────────────

@dataclass
class Instrument:
    """
    One hedging instrument in the book.

    ``quantity`` is the signed share (in percent) of the hedged volume; only
    its sign matters for valuation. Volatilities are decimals and the rebate
    is a fraction of notional.
    """
    id: str
    kind: object
    currency_pair: str
    notional: float
    maturity_date: date
    quantity: float = 100.0
    strike: Optional[float] = None
    barrier1: Optional[float] = None
    barrier2: Optional[float] = None
    rebate: float = 0.05
    volatility_override: Optional[float] = None
    strategy_volatility: Optional[float] = None
    volatility: Optional[float] = None
    original_price: float = 0.0
    strategy_name: Optional[str] = None
    counterparty: str = ""
    hedge_accounting: bool = True

    def __post_init__(self):
        self.notional = abs(float(self.notional))
        self.maturity_date = as_date(self.maturity_date)
        if isinstance(self.kind, str):
            self.kind = parse_kind(self.kind)

    @property
    def quantity_sign(self):
        return -1 if self.quantity < 0 else 1

    @property
    def is_short(self):
        return self.quantity < 0

    @property
    def base_currency(self):
        return split_pair(self.currency_pair)[0]

    @property
    def quote_currency(self):
        return split_pair(self.currency_pair)[1]

    @property
    def label(self):
        return self.kind.label

    def to_dict(self):
        d = asdict(self)
        d["kind"] = self.kind.label
        d["maturity_date"] = self.maturity_date.isoformat()
        return d

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


# ── Exposures ────────────────────────────────────────────────────────────

RECEIVABLE = "receivable"
PAYABLE = "payable"


@dataclass
class Exposure:
    """An underlying currency flow the book is hedging."""
    id: str
    currency: str
    amount: float
    exposure_type: str
    maturity_date: date
    hedge_ratio: float = 0.0
    hedged_amount: float = 0.0
    description: str = ""
    subsidiary: str = ""

    def __post_init__(self):
        self.maturity_date = as_date(self.maturity_date)

    @property
    def net_amount(self):
        """Receivables count positive, payables negative."""
        if self.exposure_type == RECEIVABLE:
            return abs(self.amount)
        return -abs(self.amount)

    def to_dict(self):
        d = asdict(self)
        d["maturity_date"] = self.maturity_date.isoformat()
        return d

    @classmethod
    def from_dict(cls, data):
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in dict(data).items() if k in known})


def validate_exposure(exposure, valuation_date=None):
    """Return a list of human-readable problems (empty when valid)."""
    errors = []
    if not exposure.currency or len(exposure.currency) != 3:
        errors.append("Currency must be a valid 3-letter code")
    if not exposure.amount:
        errors.append("Amount must be non-zero")
    if not exposure.description or not exposure.description.strip():
        errors.append("Description is required")
    if exposure.hedge_ratio < 0 or exposure.hedge_ratio > 100:
        errors.append("Hedge ratio must be between 0 and 100")
    if valuation_date is not None and exposure.maturity_date <= as_date(valuation_date):
        errors.append("Maturity date must be in the future")
    if exposure.exposure_type not in (RECEIVABLE, PAYABLE):
        errors.append("Type must be either receivable or payable")

    expected = exposure.hedge_ratio / 100.0 * exposure.amount
    if abs(exposure.hedged_amount - expected) > abs(exposure.amount) * 0.01:
        errors.append("Hedged amount is inconsistent with hedge ratio")
    return errors


def exposures_from_instruments(instruments):
    """
    Build one fully hedged exposure per base currency of ``instruments``.

    A currency group is a receivable when it holds any call or forward,
    otherwise a payable. Maturity is the average of the group's maturities.
    """
    groups = {}
    for inst in instruments:
        groups.setdefault(inst.base_currency, []).append(inst)

    exposures = []
    for currency, group in groups.items():
        total = sum(inst.notional for inst in group)
        ordinals = [inst.maturity_date.toordinal() for inst in group]
        avg_maturity = date.fromordinal(round(sum(ordinals) / len(ordinals)))
        receivable = any(
            isinstance(inst.kind, (VanillaCall, Forward)) for inst in group
        )
        amount = total if receivable else -total
        exposures.append(Exposure(
            id=f"AUTO-{currency}",
            currency=currency,
            amount=amount,
            exposure_type=RECEIVABLE if receivable else PAYABLE,
            maturity_date=avg_maturity,
            hedge_ratio=100.0,
            hedged_amount=amount,
            description=f"Auto-generated from {len(group)} hedging instrument(s)",
            subsidiary="Auto-Generated",
        ))
    return exposures
