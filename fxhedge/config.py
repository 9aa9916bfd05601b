"""
Engine configuration.

``EngineConfig`` holds every tunable of the pricing and risk engine. The CLI
persists overrides in the ring store under ``/Config/<key>``, the same way
risk limits are kept on the desk.
"""

import logging
from dataclasses import dataclass, field, fields, replace as _replace
from typing import Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

CLOSED_FORM = "closed-form"
MONTE_CARLO = "monte-carlo"


@dataclass
class EngineConfig:
    """Configuration for pricing, simulation and risk aggregation."""
    # Monte Carlo
    barrier_paths: int = 1000
    digital_paths: int = 10_000
    vanilla_paths: int = 10_000
    steps_per_year: int = 252
    digital_steps_per_day: int = 4
    min_steps: int = 50
    batch_size: int = 2000
    random_seed: Optional[int] = 42
    # Closed form
    series_terms: int = 5
    barrier_model: str = CLOSED_FORM
    vanilla_model: str = CLOSED_FORM
    monte_carlo_fallback: bool = True
    allow_unknown_fallback: bool = False
    # Risk
    z_scores: dict = field(default_factory=lambda: {0.95: 1.645, 0.99: 2.326})
    es_multipliers: dict = field(default_factory=lambda: {0.95: 1.28, 0.99: 1.15})
    var_horizon_days: int = 1
    trading_days: int = 252
    default_correlation: float = 0.3
    default_currency_volatility: float = 0.10
    max_workers: int = 4

    def __post_init__(self):
        for name in ("barrier_model", "vanilla_model"):
            value = getattr(self, name)
            if value not in (CLOSED_FORM, MONTE_CARLO):
                raise ValueError(f"{name} must be {CLOSED_FORM!r} or {MONTE_CARLO!r}, got {value!r}")

    @classmethod
    def keys(cls):
        return [f.name for f in fields(cls)]

    @classmethod
    def from_mapping(cls, mapping):
        unknown = set(mapping) - set(cls.keys())
        if unknown:
            raise ConfigError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**mapping)

    def to_mapping(self):
        return {name: getattr(self, name) for name in self.keys()}

    def replace(self, **changes):
        return _replace(self, **changes)


DEFAULT_CONFIG = EngineConfig().to_mapping()

# Keys that can be edited with a single scalar on the command line
SCALAR_KEYS = [k for k, v in DEFAULT_CONFIG.items() if not isinstance(v, dict)]

# Keys whose value may be None ("none" on the command line)
NULLABLE_KEYS = {"random_seed": int}


def coerce_value(key, raw):
    """Cast a command-line string to the type of the key's default."""
    if key not in SCALAR_KEYS:
        raise ConfigError(key)
    default = DEFAULT_CONFIG[key]
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if key in NULLABLE_KEYS:
        return None if raw.strip().lower() in ("none", "") else NULLABLE_KEYS[key](raw)
    return type(default)(raw)


def ensure_config(store):
    for key, default in DEFAULT_CONFIG.items():
        bk = f"/Config/{key}"
        if bk not in store:
            store[bk] = default


def load_config(store):
    cfg = {}
    for key in DEFAULT_CONFIG:
        cfg[key] = store.get(f"/Config/{key}", DEFAULT_CONFIG[key])
    # JSON round-trips turn float dict keys into strings
    for key in ("z_scores", "es_multipliers"):
        cfg[key] = {float(k): float(v) for k, v in cfg[key].items()}
    logger.debug(f"Loaded engine config: {cfg}")
    return EngineConfig.from_mapping(cfg)


def set_config_value(store, key, raw):
    value = coerce_value(key, raw)
    EngineConfig.from_mapping({key: value})
    store[f"/Config/{key}"] = value
    return value
