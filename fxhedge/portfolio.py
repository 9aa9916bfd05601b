"""
PortfolioRepository: the hedging book, explicitly constructed and injected.

Instruments, exposures and imported strategies are kept in a
:class:`RingStore` under ``/Instruments/<id>``, ``/Exposures/<id>`` and
``/Strategies/<name>``. Pass a store opened on a file to persist the book;
by default an in-memory store is used.
"""

import logging
from dataclasses import replace

from .instruments import Exposure, Instrument, validate_exposure
from .store import RingStore

logger = logging.getLogger(__name__)

INSTRUMENTS = "/Instruments/"
EXPOSURES = "/Exposures/"
STRATEGIES = "/Strategies/"


class PortfolioRepository:

    def __init__(self, store=None):
        self.store = store if store is not None else RingStore.open("portfolio")

    # ── Instruments ──────────────────────────────────────────────────────

    def add(self, instrument):
        key = INSTRUMENTS + instrument.id
        if key in self.store:
            raise ValueError(f"Instrument {instrument.id} already exists")
        self.store[key] = instrument.to_dict()

    def get(self, instrument_id):
        data = self.store.get(INSTRUMENTS + instrument_id)
        if data is None:
            raise KeyError(instrument_id)
        return Instrument.from_dict(data)

    def update(self, instrument_id, **changes):
        """Apply field changes to a stored instrument and return it."""
        updated = replace(self.get(instrument_id), **changes)
        self.store[INSTRUMENTS + instrument_id] = updated.to_dict()
        return updated

    def remove(self, instrument_id):
        if INSTRUMENTS + instrument_id not in self.store:
            raise KeyError(instrument_id)
        del self.store[INSTRUMENTS + instrument_id]

    def instruments(self):
        return [Instrument.from_dict(self.store[k]) for k in self.store.keys(INSTRUMENTS)]

    def __len__(self):
        return len(self.store.keys(INSTRUMENTS))

    # ── Exposures ────────────────────────────────────────────────────────

    def add_exposure(self, exposure, valuation_date=None):
        errors = validate_exposure(exposure, valuation_date)
        if errors:
            raise ValueError(f"Invalid exposure {exposure.id}: {', '.join(errors)}")
        self.store[EXPOSURES + exposure.id] = exposure.to_dict()

    def remove_exposure(self, exposure_id):
        if EXPOSURES + exposure_id not in self.store:
            raise KeyError(exposure_id)
        del self.store[EXPOSURES + exposure_id]

    def exposures(self):
        return [Exposure.from_dict(self.store[k]) for k in self.store.keys(EXPOSURES)]

    # ── Strategies ───────────────────────────────────────────────────────

    def import_strategy(self, name, instruments):
        """
        Add the instruments produced for strategy ``name``.

        Raises ValueError, storing nothing, if any id is repeated or
        already in the book.
        """
        instruments = list(instruments)
        ids = [inst.id for inst in instruments]
        clashes = sorted({i for i in ids if ids.count(i) > 1 or INSTRUMENTS + i in self.store})
        if clashes:
            raise ValueError(f"Strategy {name!r}: instrument ids already exist: {clashes}")
        for inst in instruments:
            self.add(inst)
        existing = self.store.get(STRATEGIES + name, {"instrument_ids": []})
        existing["instrument_ids"] = existing["instrument_ids"] + ids
        self.store[STRATEGIES + name] = existing
        logger.info(f"Imported strategy {name!r} with {len(ids)} instruments")
        return ids

    def strategies(self):
        return [k[len(STRATEGIES):] for k in self.store.keys(STRATEGIES)]

    def delete_strategy(self, name):
        """Remove a strategy and every instrument it created."""
        record = self.store.get(STRATEGIES + name)
        if record is None:
            raise KeyError(name)
        for inst_id in record["instrument_ids"]:
            if INSTRUMENTS + inst_id in self.store:
                del self.store[INSTRUMENTS + inst_id]
        del self.store[STRATEGIES + name]

    # ── Bulk ─────────────────────────────────────────────────────────────

    def clear(self):
        for prefix in (INSTRUMENTS, EXPOSURES, STRATEGIES):
            for key in self.store.keys(prefix):
                del self.store[key]

    def export_data(self):
        return {
            "instruments": [i.to_dict() for i in self.instruments()],
            "exposures": [e.to_dict() for e in self.exposures()],
            "strategies": {n: self.store[STRATEGIES + n] for n in self.strategies()},
        }

    def import_data(self, doc, valuation_date=None):
        """
        Replace the book with ``doc`` (as produced by :meth:`export_data`).

        Returns a list of validation errors; when it is non-empty nothing
        is changed.
        """
        errors = []
        try:
            instruments = [Instrument.from_dict(d) for d in doc.get("instruments", [])]
            exposures = [Exposure.from_dict(d) for d in doc.get("exposures", [])]
        except (TypeError, ValueError) as e:
            return [f"Malformed document: {e}"]

        for exp in exposures:
            problems = validate_exposure(exp, valuation_date)
            if problems:
                errors.append(f"Exposure {exp.description or exp.id}: {', '.join(problems)}")
        ids = [i.id for i in instruments]
        if len(ids) != len(set(ids)):
            errors.append("Duplicate instrument ids")
        if errors:
            return errors

        self.clear()
        for inst in instruments:
            self.add(inst)
        for exp in exposures:
            self.store[EXPOSURES + exp.id] = exp.to_dict()
        for name, record in doc.get("strategies", {}).items():
            self.store[STRATEGIES + name] = record
        return []
