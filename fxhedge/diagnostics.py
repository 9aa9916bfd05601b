"""
Structured diagnostics for valuation runs.

Pricers report recoverable problems (missing barrier, domain guard,
closed-form failure, ...) through a ``Diagnostics`` collector instead of
printing. Every record is also sent to the ``fxhedge.pricing`` logger, so
hot-path output is switched off by raising that logger's level.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

PRICING_LOGGER = "fxhedge.pricing"
pricing_log = logging.getLogger(PRICING_LOGGER)

MISSING_BARRIER = "MISSING_BARRIER"
DOMAIN_GUARD = "DOMAIN_GUARD"
MISSING_MARKET_DATA = "MISSING_MARKET_DATA"
UNKNOWN_KIND = "UNKNOWN_KIND"
BARRIER_FORMULA_FAILED = "BARRIER_FORMULA_FAILED"
MONTE_CARLO_FALLBACK = "MONTE_CARLO_FALLBACK"


@dataclass(frozen=True)
class Diagnostic:
    code: str
    message: str
    instrument_id: Optional[str] = None
    level: int = logging.WARNING


class Diagnostics:
    """Thread-safe collector of :class:`Diagnostic` records."""

    def __init__(self):
        self._records = []
        self._lock = threading.Lock()

    def warn(self, code, message, instrument_id=None):
        self._add(Diagnostic(code, message, instrument_id, logging.WARNING))

    def debug(self, code, message, instrument_id=None):
        self._add(Diagnostic(code, message, instrument_id, logging.DEBUG))

    def _add(self, record):
        with self._lock:
            self._records.append(record)
        emit(record)

    def codes(self):
        return [r.code for r in self]

    def warnings(self):
        return [r for r in self if r.level >= logging.WARNING]

    def for_instrument(self, instrument_id):
        return [r for r in self if r.instrument_id == instrument_id]

    def clear(self):
        with self._lock:
            self._records.clear()

    def __iter__(self):
        with self._lock:
            return iter(list(self._records))

    def __len__(self):
        with self._lock:
            return len(self._records)

    def __repr__(self):
        return f"Diagnostics({len(self)} records)"


def emit(record):
    if not pricing_log.isEnabledFor(record.level):
        return
    prefix = f"[{record.instrument_id}] " if record.instrument_id else ""
    pricing_log.log(record.level, f"{record.code}: {prefix}{record.message}")


def report(diagnostics, code, message, instrument_id=None):
    """Record a warning on ``diagnostics`` when given, else log it."""
    if diagnostics is not None:
        diagnostics.warn(code, message, instrument_id)
    else:
        emit(Diagnostic(code, message, instrument_id))


def silence():
    """Disable all hot-path diagnostic logging."""
    pricing_log.setLevel(logging.CRITICAL + 1)


def set_level(level):
    pricing_log.setLevel(level)
