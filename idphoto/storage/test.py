"""Tests for key-value storage backends."""

import pytest

from . import create_store
from .memory import InMemoryStore
from .sqlite import SQLiteStore


class TestInMemoryStore:
    """Tests for the dictionary-backed store."""

    @pytest.mark.unit
    def test_missing_key_returns_none(self):
        assert InMemoryStore().get("absent") is None

    @pytest.mark.unit
    def test_set_then_get(self):
        store = InMemoryStore()
        store.set("k", "v")
        assert store.get("k") == "v"
        assert "k" in store

    @pytest.mark.unit
    def test_initial_data_is_copied(self):
        initial = {"k": "v"}
        store = InMemoryStore(initial)
        store.set("k", "w")
        assert initial["k"] == "v"


class TestSQLiteStore:
    """Tests for the SQLite-backed store."""

    @pytest.mark.unit
    def test_missing_key_returns_none(self, tmp_path):
        with SQLiteStore(tmp_path / "state.db") as store:
            assert store.get("absent") is None

    @pytest.mark.unit
    def test_overwrite(self, tmp_path):
        with SQLiteStore(tmp_path / "state.db") as store:
            store.set("k", "1")
            store.set("k", "2")
            assert store.get("k") == "2"

    @pytest.mark.unit
    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "nested" / "state.db"
        with SQLiteStore(path) as store:
            store.set("k", "[1, 2]")
        with SQLiteStore(path) as store:
            assert store.get("k") == "[1, 2]"

    @pytest.mark.unit
    def test_lazy_initialize(self):
        store = SQLiteStore(":memory:")
        store.set("k", "v")
        assert store.get("k") == "v"
        store.close()
        store.close()

    @pytest.mark.unit
    def test_create_store_uses_path(self, tmp_path):
        store = create_store(tmp_path / "s.db")
        store.set("k", "v")
        assert (tmp_path / "s.db").exists()
        store.close()
