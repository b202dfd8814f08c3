"""Sheet-like tables backed by files in a workbook directory.

A workbook directory holds one file per sheet, named after the sheet
(``Shopify Orders.csv``, ``All_Orders_Clean.csv``...). Row numbers follow
spreadsheet conventions: row 1 is the header, data starts at row 2.
"""
from __future__ import annotations

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pandas as pd

from ..common.errors import ConfigurationError
from ..ingestion_utils import SUPPORTED_EXTENSIONS, ensure_directory, normalize_headers, read_input_file


LOGGER = logging.getLogger("orderrecon.storage")

FIRST_DATA_ROW = 2


def is_blank_row(row: Sequence[object]) -> bool:
    for value in row:
        if value is None:
            continue
        try:
            if pd.isna(value):
                continue
        except (TypeError, ValueError):
            pass
        if str(value).strip() != "":
            return False
    return True


class RawOrderStore:
    """Read-only, header-addressed raw order export."""

    def __init__(self, name: str, frame: pd.DataFrame, path: Optional[Path] = None) -> None:
        self.name = name
        self.path = path
        self._frame = normalize_headers(frame)

    @classmethod
    def from_path(cls, name: str, path: Path) -> "RawOrderStore":
        return cls(name, read_input_file(path), path)

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame

    @property
    def headers(self) -> List[str]:
        return [str(c) for c in self._frame.columns]

    @property
    def last_row(self) -> int:
        """Sheet row number of the last data row (1 when only a header exists)."""
        return len(self._frame) + FIRST_DATA_ROW - 1

    def read_rows(self, start_row: int, count: int) -> List[List[object]]:
        """Forward chunk read: ``count`` rows starting at sheet row ``start_row``."""
        begin = max(0, start_row - FIRST_DATA_ROW)
        return self._frame.iloc[begin:begin + max(0, count)].values.tolist()


class CanonicalTable:
    """The canonical output table, stored as CSV with a fixed header row."""

    def __init__(self, path: str | Path, headers: Sequence[str], now: Optional[Callable[[], datetime]] = None) -> None:
        self.path = Path(path)
        self.headers = list(headers)
        self._now = now or datetime.now
        self._row_count: Optional[int] = None

    @property
    def name(self) -> str:
        return self.path.stem

    def exists(self) -> bool:
        return self.path.exists()

    def read_header(self) -> List[str]:
        if not self.exists():
            return []
        with self.path.open("r", encoding="utf-8", newline="") as fh:
            first = next(csv.reader(fh), [])
        return [h.strip() for h in first]

    def headers_compatible(self, existing: Sequence[str]) -> bool:
        """An existing header is compatible when it agrees on the common prefix."""
        n = min(len(existing), len(self.headers))
        return list(existing[:n]) == self.headers[:n]

    def _write_header_only(self) -> None:
        ensure_directory(self.path.parent)
        pd.DataFrame(columns=self.headers).to_csv(self.path, index=False)
        self._row_count = 0

    def prepare(self) -> Optional[Path]:
        """Write the header row and truncate all body rows.

        A table whose header is out of sync with ``headers`` is archived as
        ``<name>_ARCHIVE_<timestamp>`` first; the archive path is returned.
        """
        archived: Optional[Path] = None
        existing = self.read_header()
        if existing and any(existing) and not self.headers_compatible(existing):
            stamp = self._now().strftime("%Y%m%d_%H%M%S")
            archived = self.path.with_name(f"{self.path.stem}_ARCHIVE_{stamp}{self.path.suffix}")
            self.path.replace(archived)
            LOGGER.warning("Headers changed for %s; old table archived as %s", self.path.name, archived.name)
        self._write_header_only()
        return archived

    def clear_body(self) -> None:
        """Drop all data rows, keeping the header row."""
        if self.exists():
            self._write_header_only()

    def read_frame(self) -> pd.DataFrame:
        if not self.exists():
            return pd.DataFrame(columns=self.headers)
        try:
            return pd.read_csv(self.path, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return pd.DataFrame(columns=self.headers)

    def body_row_count(self) -> int:
        if self._row_count is None:
            self._row_count = len(self.read_frame())
        return self._row_count

    def write_rows(self, start_row: int, rows: Sequence[Sequence[object]]) -> None:
        """Positional, contiguous write of ``rows`` starting at sheet row ``start_row``.

        Rows already present at or after ``start_row`` are replaced, so
        repeating a write that was never checkpointed does not duplicate data.
        """
        if not rows:
            return
        if not self.exists():
            raise ConfigurationError(f"Output table {self.path} is missing; reset the build to recreate it.")
        keep = start_row - FIRST_DATA_ROW
        count = self.body_row_count()
        if keep < 0 or keep > count:
            raise RuntimeError(
                f"Cannot write {self.name} at row {start_row}: table has {count} data rows. "
                "Build state is out of sync with the output table; reset the build."
            )
        if keep < count:
            LOGGER.warning("Dropping %d uncommitted rows from %s before rewriting.", count - keep, self.name)
            self.read_frame().iloc[:keep].to_csv(self.path, index=False)
        pd.DataFrame([list(r) for r in rows], columns=self.headers).to_csv(
            self.path, mode="a", header=False, index=False
        )
        self._row_count = keep + len(rows)

    def replace_body(self, frame: pd.DataFrame) -> None:
        """Rewrite the whole table from ``frame`` (columns follow ``headers``)."""
        ensure_directory(self.path.parent)
        out = frame.reindex(columns=self.headers, fill_value="")
        out.to_csv(self.path, index=False)
        self._row_count = len(out)


class Workbook:
    """A directory of sheet files."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def sheet_path(self, name: str) -> Optional[Path]:
        for ext in SUPPORTED_EXTENSIONS:
            candidate = self.directory / f"{name}{ext}"
            if candidate.exists():
                return candidate
        return None

    def has_sheet(self, name: str) -> bool:
        return self.sheet_path(name) is not None

    def raw_store(self, name: str) -> RawOrderStore:
        path = self.sheet_path(name)
        if path is None:
            raise ConfigurationError(f'Missing "{name}" sheet in workbook {self.directory}.')
        return RawOrderStore.from_path(name, path)

    def canonical_table(self, name: str, headers: Sequence[str]) -> CanonicalTable:
        # The formatted .xlsx copy beside it is export-only
        return CanonicalTable(self.directory / f"{name}.csv", headers)

    def replace_sheet(self, name: str, frame: pd.DataFrame) -> Path:
        """Overwrite a raw sheet in its existing format."""
        path = self.sheet_path(name)
        if path is None:
            raise ConfigurationError(f'Missing "{name}" sheet in workbook {self.directory}.')
        suffix = path.suffix.lower()
        if suffix in {".xlsx", ".xlsm", ".xls"}:
            frame.to_excel(path.with_suffix(".xlsx"), index=False)
            if suffix != ".xlsx":
                path.unlink()
            return path.with_suffix(".xlsx")
        sep = "\t" if suffix == ".tsv" else ","
        frame.to_csv(path, index=False, sep=sep)
        return path
