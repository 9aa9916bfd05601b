"""Tests for RingStore and the store-backed engine configuration."""

import pytest

from fxhedge.config import (
    DEFAULT_CONFIG,
    SCALAR_KEYS,
    EngineConfig,
    coerce_value,
    ensure_config,
    load_config,
    set_config_value,
)
from fxhedge.errors import ConfigError
from fxhedge.store import RingStore


# ── RingStore ────────────────────────────────────────────────────────────

class TestRingStoreBasics:
    def test_open_and_repr(self):
        store = RingStore.open("desk;default")
        assert "desk" in repr(store)
        assert store.ring_names == ["desk", "default"]
        store.close()

    def test_set_and_get(self):
        store = RingStore.open("default")
        store["/Instruments/A"] = {"id": "A", "notional": 1e6}
        assert store["/Instruments/A"] == {"id": "A", "notional": 1e6}
        store.close()

    def test_missing_key(self):
        store = RingStore.open("default")
        with pytest.raises(KeyError):
            _ = store["/nope"]
        assert store.get("/nope", "fallback") == "fallback"
        store.close()

    def test_stored_none_is_a_value(self):
        store = RingStore.open("default")
        store["/Config/random_seed"] = None
        assert "/Config/random_seed" in store
        assert store.get("/Config/random_seed", 42) is None
        store.close()

    def test_delete(self):
        store = RingStore.open("default")
        store["/x"] = 1
        del store["/x"]
        assert "/x" not in store
        store.close()

    def test_keys_with_prefix(self):
        store = RingStore.open("default")
        store["/Instruments/B"] = 1
        store["/Instruments/A"] = 2
        store["/Exposures/E"] = 3
        assert store.keys("/Instruments/") == ["/Instruments/A", "/Instruments/B"]
        store.close()

    def test_stored_none_shadows_lower_ring(self, tmp_path):
        db = str(tmp_path / "book.db")
        shared = RingStore.open("default", db_path=db)
        shared["/Config/random_seed"] = 42
        desk = RingStore.open("desk;default", db_path=db)
        desk["/Config/random_seed"] = None
        assert desk.get("/Config/random_seed", 7) is None
        desk.close()
        shared.close()


class TestRingCascade:
    def test_reads_fall_through_writes_stay_on_top(self, tmp_path):
        db = str(tmp_path / "book.db")
        shared = RingStore.open("default", db_path=db)
        shared["/Config/barrier_paths"] = 1000
        shared["/Config/digital_paths"] = 10_000

        desk = RingStore.open("desk;default", db_path=db)
        assert desk["/Config/barrier_paths"] == 1000
        desk["/Config/barrier_paths"] = 5000
        assert desk["/Config/barrier_paths"] == 5000
        assert shared["/Config/barrier_paths"] == 1000
        assert desk.keys("/Config/") == ["/Config/barrier_paths", "/Config/digital_paths"]
        desk.close()
        shared.close()

    def test_persists_across_opens(self, tmp_path):
        db = str(tmp_path / "book.db")
        store = RingStore.open("default", db_path=db)
        store["/k"] = [1, 2, 3]
        store.close()
        reopened = RingStore.open("default", db_path=db)
        assert reopened["/k"] == [1, 2, 3]
        reopened.close()


# ── EngineConfig ─────────────────────────────────────────────────────────

class TestEngineConfig:
    def test_defaults(self):
        cfg = EngineConfig()
        assert cfg.barrier_paths == 1000
        assert cfg.series_terms == 5
        assert cfg.z_scores == {0.95: 1.645, 0.99: 2.326}
        assert cfg.allow_unknown_fallback is False

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(ConfigError):
            EngineConfig.from_mapping({"barrier_pathz": 10})

    def test_bad_model_name(self):
        with pytest.raises(ValueError):
            EngineConfig(barrier_model="lattice")

    def test_replace(self):
        cfg = EngineConfig().replace(random_seed=7)
        assert cfg.random_seed == 7
        assert EngineConfig().random_seed == 42

    def test_mapping_round_trip(self):
        cfg = EngineConfig(max_workers=2)
        assert EngineConfig.from_mapping(cfg.to_mapping()) == cfg


class TestStoredConfig:
    def test_ensure_and_load(self):
        store = RingStore.open("default")
        ensure_config(store)
        assert load_config(store) == EngineConfig()
        store.close()

    def test_ensure_keeps_existing_values(self):
        store = RingStore.open("default")
        store["/Config/barrier_paths"] = 3000
        ensure_config(store)
        assert load_config(store).barrier_paths == 3000
        store.close()

    def test_set_value_is_coerced(self):
        store = RingStore.open("default")
        ensure_config(store)
        assert set_config_value(store, "barrier_paths", "5000") == 5000
        assert set_config_value(store, "monte_carlo_fallback", "false") is False
        assert set_config_value(store, "random_seed", "none") is None
        assert set_config_value(store, "default_correlation", "0.25") == 0.25
        cfg = load_config(store)
        assert (cfg.barrier_paths, cfg.monte_carlo_fallback, cfg.random_seed) == (5000, False, None)
        store.close()

    def test_set_rejects_bad_values(self):
        store = RingStore.open("default")
        with pytest.raises(ConfigError):
            set_config_value(store, "no_such_key", "1")
        with pytest.raises(ValueError):
            set_config_value(store, "barrier_model", "lattice")
        with pytest.raises(ValueError):
            set_config_value(store, "barrier_paths", "many")
        assert "/Config/barrier_model" not in store
        store.close()

    def test_random_seed_can_be_unset_and_reset(self):
        store = RingStore.open("default")
        ensure_config(store)
        assert load_config(store).random_seed == 42
        set_config_value(store, "random_seed", "None")
        assert load_config(store).random_seed is None
        set_config_value(store, "random_seed", "7")
        assert load_config(store).random_seed == 7
        store.close()

    def test_non_nullable_keys_reject_none(self):
        with pytest.raises(ValueError):
            coerce_value("barrier_paths", "none")

    def test_dict_keys_are_not_scalar(self):
        assert "z_scores" not in SCALAR_KEYS
        with pytest.raises(ConfigError):
            coerce_value("z_scores", "1.0")
        assert set(SCALAR_KEYS) < set(DEFAULT_CONFIG)
