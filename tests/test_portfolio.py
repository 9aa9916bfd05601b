"""Tests for PortfolioRepository and the strategy import mapper."""

from datetime import date

import pytest

from fxhedge.instruments import (
    RECEIVABLE,
    Digital,
    DigitalSubtype,
    Exposure,
    Instrument,
    KnockDirection,
    OptionType,
    SingleBarrier,
    VanillaCall,
)
from fxhedge.portfolio import PortfolioRepository
from fxhedge.store import RingStore
from fxhedge.strategy_import import (
    StrategyImportMapper,
    StrategyLeg,
    StrategyParams,
    estimate_premium,
    maturity_dates,
)

VAL = date(2024, 1, 2)


# ── Helpers ──────────────────────────────────────────────────────────────

def _inst(id="A", kind="Vanilla Call", **kw):
    kw.setdefault("strike", 1.10)
    return Instrument(id, kind, "EUR/USD", 1_000_000, date(2024, 6, 28), **kw)


def _exposure(id="E1", **kw):
    data = dict(currency="EUR", amount=2_000_000, exposure_type=RECEIVABLE,
                maturity_date=date(2024, 6, 28), hedge_ratio=75.0, hedged_amount=1_500_000,
                description="Q2 export sales")
    data.update(kw)
    return Exposure(id, **data)


def _collar_legs():
    return [
        StrategyLeg("call", strike=105.0, quantity=100, volatility=20.0),
        StrategyLeg("put-knockout", strike=95.0, quantity=-50, volatility=18.0, barrier=85.0),
        StrategyLeg("onetouch", strike=100.0, barrier=110.0),
    ]


def _params(**kw):
    data = dict(currency_pair="EUR/USD", spot=1.10, start_date=date(2024, 1, 15),
                months_to_hedge=3, base_volume=3_000_000)
    data.update(kw)
    return StrategyParams(**data)


# ── Repository ───────────────────────────────────────────────────────────

class TestInstruments:
    def test_add_and_get(self):
        repo = PortfolioRepository()
        repo.add(_inst())
        assert repo.get("A") == _inst()
        assert len(repo) == 1

    def test_duplicate_rejected(self):
        repo = PortfolioRepository()
        repo.add(_inst())
        with pytest.raises(ValueError):
            repo.add(_inst())

    def test_update(self):
        repo = PortfolioRepository()
        repo.add(_inst())
        updated = repo.update("A", volatility_override=0.25)
        assert updated.volatility_override == 0.25
        assert repo.get("A").volatility_override == 0.25

    def test_remove(self):
        repo = PortfolioRepository()
        repo.add(_inst())
        repo.remove("A")
        assert len(repo) == 0
        with pytest.raises(KeyError):
            repo.remove("A")
        with pytest.raises(KeyError):
            repo.get("A")

    def test_repositories_are_independent(self):
        a, b = PortfolioRepository(), PortfolioRepository()
        a.add(_inst())
        assert len(b) == 0

    def test_persisted_book(self, tmp_path):
        db = str(tmp_path / "book.db")
        PortfolioRepository(RingStore.open("book", db_path=db)).add(_inst(kind="Knock-Out Call",
                                                                         barrier1=1.2))
        reopened = PortfolioRepository(RingStore.open("book", db_path=db))
        assert reopened.get("A").kind == SingleBarrier(OptionType.CALL, KnockDirection.OUT)


class TestExposures:
    def test_add_valid(self):
        repo = PortfolioRepository()
        repo.add_exposure(_exposure(), valuation_date=VAL)
        assert repo.exposures() == [_exposure()]

    def test_add_invalid(self):
        repo = PortfolioRepository()
        with pytest.raises(ValueError):
            repo.add_exposure(_exposure(hedged_amount=100.0))
        assert repo.exposures() == []

    def test_remove(self):
        repo = PortfolioRepository()
        repo.add_exposure(_exposure())
        repo.remove_exposure("E1")
        assert repo.exposures() == []
        with pytest.raises(KeyError):
            repo.remove_exposure("E1")


class TestStrategiesAndBulk:
    def test_import_and_delete_strategy(self):
        repo = PortfolioRepository()
        repo.add(_inst("OTHER"))
        instruments = StrategyImportMapper().map_strategy("Collar", _collar_legs(), _params())
        ids = repo.import_strategy("Collar", instruments)
        assert len(ids) == 9
        assert repo.strategies() == ["Collar"]
        repo.delete_strategy("Collar")
        assert [i.id for i in repo.instruments()] == ["OTHER"]
        assert repo.strategies() == []

    def test_clashing_strategy_import_stores_nothing(self):
        repo = PortfolioRepository()
        legs = StrategyImportMapper().map_strategy("Collar", _collar_legs(), _params())
        repo.add(_inst(legs[4].id))
        with pytest.raises(ValueError):
            repo.import_strategy("Collar", legs)
        assert [i.id for i in repo.instruments()] == [legs[4].id]
        assert repo.strategies() == []

    def test_repeated_ids_within_strategy_rejected(self):
        repo = PortfolioRepository()
        with pytest.raises(ValueError):
            repo.import_strategy("Dup", [_inst("X"), _inst("X")])
        assert len(repo) == 0

    def test_delete_unknown_strategy(self):
        with pytest.raises(KeyError):
            PortfolioRepository().delete_strategy("Nope")

    def test_export_import_round_trip(self):
        src = PortfolioRepository()
        src.add(_inst("A"))
        src.add(_inst("B", kind="Double-No-Touch", barrier1=1.2, barrier2=1.0))
        src.add_exposure(_exposure())
        src.import_strategy("Collar", StrategyImportMapper().map_strategy(
            "Collar", _collar_legs()[:1], _params(months_to_hedge=1)))

        dst = PortfolioRepository()
        dst.add(_inst("STALE"))
        assert dst.import_data(src.export_data()) == []
        assert dst.export_data() == src.export_data()
        assert "STALE" not in [i.id for i in dst.instruments()]

    def test_import_errors_leave_book_untouched(self):
        repo = PortfolioRepository()
        repo.add(_inst("KEEP"))
        doc = {
            "instruments": [_inst("X").to_dict(), _inst("X").to_dict()],
            "exposures": [_exposure(currency="EURO").to_dict()],
        }
        errors = repo.import_data(doc)
        assert any("Duplicate" in e for e in errors)
        assert any("Currency" in e for e in errors)
        assert [i.id for i in repo.instruments()] == ["KEEP"]

    def test_malformed_document(self):
        errors = PortfolioRepository().import_data({"instruments": [{"id": "X"}]})
        assert errors and errors[0].startswith("Malformed")


# ── Strategy import ──────────────────────────────────────────────────────

class TestMaturityDates:
    def test_month_ends(self):
        assert maturity_dates(date(2024, 1, 15), 3) == [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]

    def test_year_rollover(self):
        assert maturity_dates("2024-11-03", 3)[-1] == date(2025, 1, 31)

    def test_custom_periods_sorted(self):
        custom = [("2024-06-30", 2e6), ("2024-03-31", 1e6)]
        assert maturity_dates(date(2024, 1, 1), 12, custom) == [date(2024, 3, 31), date(2024, 6, 30)]


class TestEstimatePremium:
    def test_otm_call(self):
        assert estimate_premium(StrategyLeg("call", 105.0), 1.10) == pytest.approx(1.10 * 0.2 * 0.4)

    def test_itm_put_has_intrinsic(self):
        leg = StrategyLeg("put", 110.0, volatility=10.0)
        assert estimate_premium(leg, 1.0) == pytest.approx(0.10 + 0.04)

    def test_barrier_discount(self):
        leg = StrategyLeg("call-knockout", 105.0, barrier=120.0)
        assert estimate_premium(leg, 1.10) == pytest.approx(1.10 * 0.2 * 0.4 * 0.7)

    def test_digital_and_forward(self):
        assert estimate_premium(StrategyLeg("onetouch", 100.0, rebate=8.0), 1.1) == pytest.approx(0.04)
        assert estimate_premium(StrategyLeg("forward", 100.0), 1.1) == 0.0


class TestStrategyImportMapper:
    def test_one_instrument_per_leg_per_period(self):
        insts = StrategyImportMapper().map_strategy("Collar", _collar_legs(), _params())
        assert len(insts) == 9
        assert insts[0].id == "HDG-Collar-P1-C1"
        assert insts[-1].id == "HDG-Collar-P3-C3"
        assert insts[3].maturity_date == date(2024, 2, 29)
        assert insts[0].strategy_name == "Collar [P1]"

    def test_leg_mapping(self):
        call, ko_put, touch = StrategyImportMapper().map_strategy("Collar", _collar_legs(), _params())[:3]

        assert call.kind == VanillaCall()
        assert call.notional == pytest.approx(1_000_000)
        assert call.strike == pytest.approx(1.155)
        assert call.strategy_volatility == pytest.approx(0.20)
        assert call.barrier1 is None

        assert ko_put.kind == SingleBarrier(OptionType.PUT, KnockDirection.OUT)
        assert ko_put.notional == pytest.approx(500_000)
        assert ko_put.is_short
        assert ko_put.barrier1 == pytest.approx(0.935)

        assert touch.kind == Digital(DigitalSubtype.ONE_TOUCH)
        assert touch.barrier1 == pytest.approx(1.21)
        assert touch.rebate == pytest.approx(0.05)

    def test_absolute_levels_and_rebate(self):
        leg = StrategyLeg("put-knockin", strike=1.05, strike_type="absolute",
                          barrier=0.98, barrier_type="absolute", rebate=2.0)
        inst = StrategyImportMapper().map_strategy("KI", [leg], _params(months_to_hedge=1))[0]
        assert inst.strike == 1.05
        assert inst.barrier1 == 0.98
        assert inst.rebate == pytest.approx(0.02)

    def test_calculated_prices_override_estimate(self):
        insts = StrategyImportMapper().map_strategy("Collar", _collar_legs(), _params(),
                                                    calculated_prices={(0, 0): 0.031})
        assert insts[0].original_price == 0.031
        assert insts[3].original_price == pytest.approx(estimate_premium(_collar_legs()[0], 1.10))

    def test_custom_period_volumes(self):
        params = _params(custom_periods=[("2024-06-30", 2e6), ("2024-03-31", 1e6)])
        insts = StrategyImportMapper(id_prefix="X").map_strategy("C", _collar_legs()[:1], params)
        assert [(i.maturity_date, i.notional) for i in insts] == [
            (date(2024, 3, 31), 1e6), (date(2024, 6, 30), 2e6)]
        assert insts[0].id == "X-C-P1-C1"
