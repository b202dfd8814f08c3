"""Unit tests for workbook-directory tables."""
from pathlib import Path

import pandas as pd
import pytest

from orderrecon.common.errors import ConfigurationError
from orderrecon.storage.tables import CanonicalTable, RawOrderStore, Workbook, is_blank_row


HEADERS = ["a", "b"]


def test_raw_store_reads_chunks_by_sheet_row():
    store = RawOrderStore("Raw", pd.DataFrame({" a ": ["1", "2", "3"], "b": ["x", "y", "z"]}))
    assert store.headers == ["a", "b"]
    assert store.last_row == 4
    assert store.read_rows(3, 5) == [["2", "y"], ["3", "z"]]
    assert RawOrderStore("Empty", pd.DataFrame(columns=["a"])).last_row == 1


def test_write_rows_replaces_uncommitted_tail(tmp_path: Path):
    table = CanonicalTable(tmp_path / "Out.csv", HEADERS)
    table.prepare()
    table.write_rows(2, [["1", "x"], ["2", "y"]])
    # Replaying the same chunk (crash before checkpoint) must not duplicate rows
    table.write_rows(2, [["1", "x"], ["2", "y"]])
    table.write_rows(4, [["3", "z"]])
    frame = table.read_frame()
    assert frame["a"].tolist() == ["1", "2", "3"]
    assert CanonicalTable(tmp_path / "Out.csv", HEADERS).body_row_count() == 3


def test_write_rows_rejects_gap(tmp_path: Path):
    table = CanonicalTable(tmp_path / "Out.csv", HEADERS)
    table.prepare()
    with pytest.raises(RuntimeError, match="out of sync"):
        table.write_rows(5, [["1", "x"]])


def test_prepare_archives_incompatible_header(tmp_path: Path):
    path = tmp_path / "Out.csv"
    path.write_text("old,columns\n1,2\n", encoding="utf-8")
    table = CanonicalTable(path, HEADERS)
    archived = table.prepare()
    assert archived is not None and archived.exists()
    assert "_ARCHIVE_" in archived.name
    assert table.read_header() == HEADERS
    assert table.body_row_count() == 0


def test_prepare_truncates_compatible_table(tmp_path: Path):
    path = tmp_path / "Out.csv"
    path.write_text("a,b\n1,2\n", encoding="utf-8")
    assert CanonicalTable(path, HEADERS).prepare() is None
    assert CanonicalTable(path, HEADERS).read_frame().empty


def test_workbook_locates_sheets_by_name(tmp_path: Path):
    pd.DataFrame({"x": ["1"]}).to_csv(tmp_path / "Raw Orders.csv", index=False)
    workbook = Workbook(tmp_path)
    assert workbook.has_sheet("Raw Orders")
    assert workbook.raw_store("Raw Orders").last_row == 2
    with pytest.raises(ConfigurationError, match="Missing"):
        workbook.raw_store("Nope")


def test_is_blank_row():
    assert is_blank_row(["", "  ", None, float("nan")])
    assert not is_blank_row(["", "x"])
