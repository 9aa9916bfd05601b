"""Tests for instrument kinds, label parsing, exposures and market snapshots."""

from datetime import date

import pytest

from fxhedge.errors import MarketDataError
from fxhedge.instruments import (
    PAYABLE,
    RECEIVABLE,
    Digital,
    DigitalSubtype,
    DoubleBarrier,
    Exposure,
    Forward,
    Instrument,
    KnockDirection,
    OptionType,
    SingleBarrier,
    Swap,
    UnknownKind,
    VanillaCall,
    VanillaPut,
    exposures_from_instruments,
    parse_kind,
    split_pair,
    validate_exposure,
)
from fxhedge.market import (
    FALLBACK_MARKET_DATA,
    MarketSnapshot,
    default_markets,
    default_snapshot,
    market_for,
)

VAL = date(2024, 1, 2)


# ── parse_kind ───────────────────────────────────────────────────────────

class TestParseKind:
    def test_vanillas(self):
        assert parse_kind("Vanilla Call") == VanillaCall()
        assert parse_kind("put") == VanillaPut()
        assert parse_kind("CALL") == VanillaCall()

    def test_forward_and_swap(self):
        assert parse_kind("Forward") == Forward()
        assert parse_kind("swap") == Swap()

    def test_knock_out_call_is_not_a_vanilla(self):
        kind = parse_kind("Knock-Out Call")
        assert kind == SingleBarrier(OptionType.CALL, KnockDirection.OUT)

    def test_strategy_codes(self):
        assert parse_kind("call-knockin") == SingleBarrier(OptionType.CALL, KnockDirection.IN)
        assert parse_kind("put-reverse-knockout") == SingleBarrier(
            OptionType.PUT, KnockDirection.OUT, reverse=True)
        assert parse_kind("Reverse Knock-In Call") == SingleBarrier(
            OptionType.CALL, KnockDirection.IN, reverse=True)

    def test_double_barriers(self):
        assert parse_kind("Double Knock-Out Put") == DoubleBarrier(OptionType.PUT, KnockDirection.OUT)
        assert parse_kind("call-double-knockin") == DoubleBarrier(OptionType.CALL, KnockDirection.IN)

    def test_digitals(self):
        assert parse_kind("One-Touch") == Digital(DigitalSubtype.ONE_TOUCH)
        assert parse_kind("no-touch") == Digital(DigitalSubtype.NO_TOUCH)
        assert parse_kind("Double-No-Touch") == Digital(DigitalSubtype.DOUBLE_NO_TOUCH)
        assert parse_kind("double-touch") == Digital(DigitalSubtype.DOUBLE_TOUCH)
        assert parse_kind("Range Binary") == Digital(DigitalSubtype.RANGE_BINARY)
        assert parse_kind("outside binary") == Digital(DigitalSubtype.OUTSIDE_BINARY)

    def test_barrier_without_class_is_unknown(self):
        assert isinstance(parse_kind("knock-out"), UnknownKind)

    def test_unknown(self):
        kind = parse_kind("Asian Basket")
        assert isinstance(kind, UnknownKind)
        assert kind.label == "Asian Basket"

    def test_labels_round_trip(self):
        kinds = [
            Forward(), Swap(), VanillaCall(), VanillaPut(),
            SingleBarrier(OptionType.PUT, KnockDirection.IN),
            SingleBarrier(OptionType.CALL, KnockDirection.OUT, reverse=True),
            DoubleBarrier(OptionType.CALL, KnockDirection.OUT),
            Digital(DigitalSubtype.ONE_TOUCH),
            Digital(DigitalSubtype.RANGE_BINARY),
        ]
        for kind in kinds:
            assert parse_kind(kind.label) == kind


class TestOptionType:
    def test_phi(self):
        assert OptionType.CALL.phi == 1
        assert OptionType.PUT.phi == -1

    def test_opposite(self):
        assert OptionType.CALL.opposite() is OptionType.PUT
        assert OptionType.PUT.opposite() is OptionType.CALL

    def test_second_barrier_subtypes(self):
        assert DigitalSubtype.DOUBLE_TOUCH.needs_second_barrier
        assert not DigitalSubtype.ONE_TOUCH.needs_second_barrier


# ── Instrument ───────────────────────────────────────────────────────────

class TestInstrument:
    def test_string_kind_is_parsed(self):
        inst = Instrument("I1", "Knock-Out Put", "EUR/USD", 1e6, "2024-06-30",
                          strike=1.05, barrier1=0.95)
        assert inst.kind == SingleBarrier(OptionType.PUT, KnockDirection.OUT)
        assert inst.maturity_date == date(2024, 6, 30)

    def test_notional_is_absolute(self):
        inst = Instrument("I1", "Forward", "EUR/USD", -2e6, VAL, strike=1.08)
        assert inst.notional == 2e6

    def test_quantity_sign(self):
        long_ = Instrument("L", "Vanilla Call", "EUR/USD", 1e6, VAL, quantity=50, strike=1.1)
        short = Instrument("S", "Vanilla Call", "EUR/USD", 1e6, VAL, quantity=-50, strike=1.1)
        assert long_.quantity_sign == 1 and not long_.is_short
        assert short.quantity_sign == -1 and short.is_short

    def test_currencies(self):
        inst = Instrument("I1", "Forward", "GBPUSD", 1e6, VAL, strike=1.2)
        assert inst.base_currency == "GBP"
        assert inst.quote_currency == "USD"

    def test_dict_round_trip(self):
        inst = Instrument("I1", "Double Knock-In Call", "EUR/USD", 1e6, "2024-12-31",
                          strike=1.1, barrier1=1.0, barrier2=1.2, volatility=0.12,
                          original_price=0.01)
        d = inst.to_dict()
        assert d["kind"] == "Double Knock-In Call"
        assert d["maturity_date"] == "2024-12-31"
        assert Instrument.from_dict(d) == inst

    def test_from_dict_ignores_unknown_fields(self):
        d = {"id": "X", "kind": "Forward", "currency_pair": "EUR/USD", "notional": 1,
             "maturity_date": "2024-05-01", "strike": 1.0, "comment": "legacy"}
        assert Instrument.from_dict(d).id == "X"

    def test_split_pair(self):
        assert split_pair("eur/usd") == ("EUR", "USD")
        assert split_pair("USDJPY") == ("USD", "JPY")


# ── Exposures ────────────────────────────────────────────────────────────

def _exposure(**overrides):
    data = dict(id="E1", currency="EUR", amount=1_000_000, exposure_type=RECEIVABLE,
                maturity_date=date(2024, 6, 30), hedge_ratio=50.0, hedged_amount=500_000,
                description="Export receivable")
    data.update(overrides)
    return Exposure(**data)


class TestExposure:
    def test_net_amount_sign(self):
        assert _exposure().net_amount == 1_000_000
        assert _exposure(exposure_type=PAYABLE).net_amount == -1_000_000

    def test_valid(self):
        assert validate_exposure(_exposure(), VAL) == []

    def test_bad_currency_and_amount(self):
        errors = validate_exposure(_exposure(currency="EURO", amount=0, hedged_amount=0))
        assert any("Currency" in e for e in errors)
        assert any("Amount" in e for e in errors)

    def test_hedge_ratio_range(self):
        errors = validate_exposure(_exposure(hedge_ratio=120.0, hedged_amount=1_200_000))
        assert any("Hedge ratio" in e for e in errors)

    def test_past_maturity(self):
        errors = validate_exposure(_exposure(maturity_date=date(2023, 12, 1)), VAL)
        assert any("future" in e for e in errors)

    def test_inconsistent_hedged_amount(self):
        errors = validate_exposure(_exposure(hedged_amount=700_000))
        assert any("inconsistent" in e for e in errors)

    def test_small_rounding_is_tolerated(self):
        assert validate_exposure(_exposure(hedged_amount=505_000)) == []

    def test_bad_type(self):
        errors = validate_exposure(_exposure(exposure_type="loan"))
        assert any("receivable or payable" in e for e in errors)


class TestExposuresFromInstruments:
    def test_groups_by_base_currency(self):
        insts = [
            Instrument("A", "Vanilla Put", "EUR/USD", 1e6, date(2024, 3, 1), strike=1.0),
            Instrument("B", "Knock-Out Put", "EUR/USD", 2e6, date(2024, 3, 3), strike=1.0, barrier1=0.9),
            Instrument("C", "Forward", "GBP/USD", 5e5, date(2024, 6, 1), strike=1.25),
        ]
        by_ccy = {e.currency: e for e in exposures_from_instruments(insts)}
        assert set(by_ccy) == {"EUR", "GBP"}

        eur = by_ccy["EUR"]
        assert eur.exposure_type == PAYABLE
        assert eur.amount == -3e6
        assert eur.maturity_date == date(2024, 3, 2)
        assert eur.hedge_ratio == 100.0
        assert validate_exposure(eur) == []

        assert by_ccy["GBP"].exposure_type == RECEIVABLE
        assert by_ccy["GBP"].id == "AUTO-GBP"


# ── Market snapshots ─────────────────────────────────────────────────────

class TestMarketSnapshot:
    def test_rejects_bad_spot(self):
        with pytest.raises(MarketDataError):
            MarketSnapshot(0.0, 0.01, 0.01, 0.1, VAL)

    def test_rejects_negative_vol(self):
        with pytest.raises(MarketDataError):
            MarketSnapshot(1.0, 0.01, 0.01, -0.1, VAL)

    def test_forward_rate(self):
        snap = MarketSnapshot(1.0, 0.03, 0.01, 0.1, VAL)
        assert snap.carry == pytest.approx(0.02)
        assert snap.forward_rate(1.0) == pytest.approx(1.0202013, rel=1e-6)

    def test_shocked_is_a_copy(self):
        snap = MarketSnapshot(1.10, 0.02, 0.01, 0.10, VAL, "EUR/USD")
        shocked = snap.shocked(spot_shock_pct=-10.0, vol_shock_pts=5.0)
        assert shocked.spot == pytest.approx(0.99)
        assert shocked.volatility == pytest.approx(0.15)
        assert shocked.volatility_shift == pytest.approx(0.05)
        assert snap.spot == 1.10 and snap.volatility == 0.10

    def test_vol_shock_floors_at_zero(self):
        snap = MarketSnapshot(1.0, 0.0, 0.0, 0.05, VAL)
        assert snap.shocked(vol_shock_pts=-10).volatility == 0.0

    def test_dict_round_trip(self):
        snap = MarketSnapshot(1.10, 0.02, 0.01, 0.10, VAL, "EUR/USD")
        assert MarketSnapshot.from_dict(snap.to_dict()) == snap


class TestDefaultMarkets:
    def test_default_snapshot_in_decimals(self):
        snap = default_snapshot("EURUSD", VAL)
        assert snap.currency_pair == "EUR/USD"
        assert snap.spot == 1.0850
        assert snap.volatility == pytest.approx(0.20)
        assert snap.domestic_rate == pytest.approx(0.01)

    def test_unknown_pair_uses_fallback(self):
        snap = default_snapshot("NZD/SEK", VAL)
        assert snap.spot == FALLBACK_MARKET_DATA[0]

    def test_market_for_accepts_both_forms(self):
        markets = default_markets(VAL)
        assert market_for(markets, "GBPUSD").spot == 1.2650
        assert market_for(markets, "eur/usd").spot == 1.0850
        assert market_for(markets, "NZD/SEK") is None
