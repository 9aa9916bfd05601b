"""Exception types raised by the pricing and risk engine."""


class PricingError(Exception):
    """Base class for valuation failures."""


class PricingDomainError(PricingError, ValueError):
    """Inputs outside a formula's domain (non-positive spot, strike or vol)."""


class BarrierFormulaError(PricingError):
    """The closed-form barrier pricer could not resolve a type flag or overflowed."""

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class UnknownInstrumentKindError(PricingError):
    """Instrument kind has no registered pricer."""


class PricingCancelled(PricingError):
    """A Monte-Carlo run was cancelled between path batches."""


class MarketDataError(ValueError):
    """Invalid market snapshot."""


class ConfigError(KeyError):
    """Unknown configuration key."""
