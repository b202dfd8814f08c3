"""Unit tests for the property store and persisted build state."""
from pathlib import Path

import pytest

from orderrecon.common.errors import ConfigurationError
from orderrecon.storage.state_store import BuildPhase, BuildState, BuildStateRepository, PropertyStore


KEY = "CLEAN_MASTER_BUILD_STATE_V2"


def test_property_store_roundtrip(tmp_path: Path):
    store = PropertyStore(tmp_path / "props.json")
    assert store.get_property("a") is None
    store.set_property("a", "1")
    store.set_property("b", "2")
    store.delete_property("a")
    assert store.get_property("a") is None
    assert PropertyStore(tmp_path / "props.json").get_property("b") == "2"


def test_repository_persists_sets_and_phase(tmp_path: Path):
    repo = BuildStateRepository(PropertyStore(tmp_path / "props.json"), KEY)
    assert repo.load() is None
    state = BuildState(phase=BuildPhase.PLATFORM_B, row_cursor=17, out_row=40, written_count=38,
                       totaled_order_keys=["Squarespace||S1"], excluded_order_ids=["R1"])
    repo.save(state)
    loaded = repo.load()
    assert loaded == state
    repo.delete()
    assert repo.load() is None


def test_corrupt_state_reads_as_no_build(tmp_path: Path):
    store = PropertyStore(tmp_path / "props.json")
    store.set_property(KEY, "{not json")
    assert BuildStateRepository(store, KEY).load() is None
    store.set_property(KEY, '{"phase": "done"}')
    assert BuildStateRepository(store, KEY).load() is None


def test_fresh_state_defaults():
    state = BuildState()
    assert state.phase is BuildPhase.PLATFORM_A
    assert (state.row_cursor, state.out_row, state.excluded_count, state.written_count) == (2, 2, 0, 0)


def test_unreadable_property_file_is_configuration_error(tmp_path: Path):
    path = tmp_path / "props.json"
    path.write_text("[1, 2", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        PropertyStore(path).get_property(KEY)
