"""
fxhedge: pricing and risk engine for a book of FX hedging instruments.

Components:
- Normal / TimeBasis: A&S normal CDF, ACT/365.25 year fractions
- Vanilla: Garman-Kohlhagen options, forwards, swaps
- Barrier: Reiner-Rubinstein single barriers, Ikeda-Kunitomo double barriers
- Monte Carlo: shared batched GBM simulator for barrier, digital and vanilla
- Dispatcher: kind -> pricer, volatility resolution, error policy
- Risk / Scenarios: MTM, parametric VaR/ES, stress testing
- Store / Portfolio / Strategy import: the book and how it is filled
"""

from .errors import (
    PricingError,
    PricingDomainError,
    BarrierFormulaError,
    UnknownInstrumentKindError,
    PricingCancelled,
    MarketDataError,
    ConfigError,
)
from .normal import cnd, erf, norm_pdf, cnd_array
from .timebasis import year_fraction, tenor_to_years
from .instruments import (
    OptionType,
    KnockDirection,
    DigitalSubtype,
    Forward,
    Swap,
    VanillaCall,
    VanillaPut,
    SingleBarrier,
    DoubleBarrier,
    Digital,
    UnknownKind,
    Instrument,
    Exposure,
    parse_kind,
    exposures_from_instruments,
    validate_exposure,
)
from .market import MarketSnapshot, DEFAULT_MARKET_DATA, default_snapshot, default_markets
from .config import EngineConfig
from .diagnostics import Diagnostic, Diagnostics
from .vanilla import garman_kohlhagen, forward_value, swap_value, forward_rate
from .barrier import (
    single_barrier_price,
    single_barrier_flag,
    double_barrier_price,
    double_barrier_knock_out,
    DOUBLE_BARRIER_SERIES_TERMS,
)
from .montecarlo import (
    PathSimulator,
    make_rng,
    barrier_monte_carlo,
    digital_monte_carlo,
    vanilla_monte_carlo,
)
from .dispatcher import (
    InstrumentPricingDispatcher,
    PriceDetail,
    effective_volatility,
    price_instrument,
)
from .risk import (
    RiskAggregator,
    RiskMetrics,
    InstrumentValuation,
    CurrencyExposure,
    compute_mtm,
    aggregate_risk,
    correlation,
)
from .scenarios import (
    StressEngine,
    ScenarioResult,
    PerInstrumentImpact,
    STRESS_SCENARIOS,
    run_scenario,
    shock_markets,
)
from .store import RingStore
from .portfolio import PortfolioRepository
from .strategy_import import StrategyImportMapper, StrategyLeg, StrategyParams

__all__ = [
    "PricingError", "PricingDomainError", "BarrierFormulaError",
    "UnknownInstrumentKindError", "PricingCancelled", "MarketDataError", "ConfigError",
    "cnd", "erf", "norm_pdf", "cnd_array",
    "year_fraction", "tenor_to_years",
    "OptionType", "KnockDirection", "DigitalSubtype",
    "Forward", "Swap", "VanillaCall", "VanillaPut", "SingleBarrier", "DoubleBarrier",
    "Digital", "UnknownKind", "Instrument", "Exposure",
    "parse_kind", "exposures_from_instruments", "validate_exposure",
    "MarketSnapshot", "DEFAULT_MARKET_DATA", "default_snapshot", "default_markets",
    "EngineConfig", "Diagnostic", "Diagnostics",
    "garman_kohlhagen", "forward_value", "swap_value", "forward_rate",
    "single_barrier_price", "single_barrier_flag", "double_barrier_price",
    "double_barrier_knock_out", "DOUBLE_BARRIER_SERIES_TERMS",
    "PathSimulator", "make_rng", "barrier_monte_carlo", "digital_monte_carlo",
    "vanilla_monte_carlo",
    "InstrumentPricingDispatcher", "PriceDetail", "effective_volatility", "price_instrument",
    "RiskAggregator", "RiskMetrics", "InstrumentValuation", "CurrencyExposure",
    "compute_mtm", "aggregate_risk", "correlation",
    "StressEngine", "ScenarioResult", "PerInstrumentImpact", "STRESS_SCENARIOS",
    "run_scenario", "shock_markets",
    "RingStore", "PortfolioRepository",
    "StrategyImportMapper", "StrategyLeg", "StrategyParams",
]
