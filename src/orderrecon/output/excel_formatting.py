"""Formatted .xlsx copy of the canonical table (openpyxl)."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pandas as pd

from ..coercion_utils import parse_any_date, parse_money
from ..standards.schemas import DATE_COLUMNS, NUMERIC_COLUMNS


DATE_FORMAT = "yyyy-mm-dd hh:mm"
NUMBER_FORMAT = "0.00"


def _auto_fit_columns(ws) -> None:
    # Simple auto width based on max length per column
    for col_cells in ws.columns:
        max_len = 0
        col = col_cells[0].column_letter
        for cell in col_cells:
            val = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(val))
        ws.column_dimensions[col].width = min(max(10, max_len + 2), 60)


def _typed_value(column: str, value: object) -> object:
    if column in DATE_COLUMNS:
        return parse_any_date(value)
    if column in NUMERIC_COLUMNS:
        return parse_money(value)
    return "" if value is None else value


def export_formatted_workbook(frame: pd.DataFrame, out_path: Path, headers: Sequence[str], sheet_title: str) -> Path:
    """Write ``frame`` to ``out_path`` with a bold frozen header and typed columns."""
    from openpyxl import Workbook
    from openpyxl.styles import Font

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]
    columns = list(headers)
    ws.append(columns)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    body = frame.reindex(columns=columns, fill_value="")
    for values in body.itertuples(index=False, name=None):
        ws.append([_typed_value(col, val) for col, val in zip(columns, values)])

    for idx, col in enumerate(columns, start=1):
        if col in DATE_COLUMNS:
            fmt = DATE_FORMAT
        elif col in NUMERIC_COLUMNS:
            fmt = NUMBER_FORMAT
        else:
            continue
        for (cell,) in ws.iter_rows(min_row=2, min_col=idx, max_col=idx):
            cell.number_format = fmt

    _auto_fit_columns(ws)
    ws.freeze_panes = "A2"
    wb.save(out_path)
    return out_path
