"""Utility functions for loading configuration and raw order exports."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd
import yaml


LOGGER_NAME = "orderrecon"

SUPPORTED_EXTENSIONS = (".csv", ".tsv", ".txt", ".xlsx", ".xlsm", ".xls")


def load_config(path: str | Path) -> Dict:
    """Load a YAML configuration file."""

    with open(path, "r", encoding="utf-8") as stream:
        return yaml.safe_load(stream) or {}


def ensure_directory(directory: str | Path) -> Path:
    """Ensure that the directory exists."""

    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_input_file(path: Path) -> pd.DataFrame:
    """Read a delimited text or Excel file into a DataFrame safely.

    Supported formats: csv, tsv, txt, xlsx, xlsm, xls.
    - Comma for .csv, tab for .tsv; .txt delimiters are sniffed
    - Use dtype=str and keep_default_na=False so blank cells stay "" and
      nothing is silently coerced
    - Do not drop rows silently; if parsing errors occur, raise with context
    """

    suffix = path.suffix.lower()
    if suffix in {".csv", ".tsv", ".txt"}:
        sep = {".csv": ",", ".tsv": "\t"}.get(suffix)
        try:
            return pd.read_csv(path, dtype=str, sep=sep, engine="python", keep_default_na=False)
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except Exception:
            try:
                return pd.read_csv(path, dtype=str, sep=",", engine="python", keep_default_na=False)
            except Exception as exc:
                raise ValueError(f"Failed to read delimited file {path}: {exc}")

    if suffix in {".xlsx", ".xlsm", ".xls"}:
        try:
            # First sheet only, as strings
            return pd.read_excel(path, dtype=str, keep_default_na=False)
        except Exception as exc:
            raise ValueError(f"Failed to read Excel file {path}: {exc}")

    raise ValueError(f"Unsupported input file extension for {path}")


def normalize_headers(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize header whitespace.

    - Strips whitespace
    - Collapses duplicate columns after stripping by appending an index suffix
    - Leaves original case (the token normalizer handles matching)
    """

    df = df.copy()
    raw_cols = [str(col).strip() for col in df.columns]
    seen: Dict[str, int] = {}
    fixed: List[str] = []
    for col in raw_cols:
        base = col
        if base in seen:
            seen[base] += 1
            fixed.append(f"{base}.{seen[base]}")
        else:
            seen[base] = 0
            fixed.append(base)
    df.columns = fixed
    return df


def normalize_header_token(text: object) -> str:
    """Normalize a header/alias token for matching.

    - Converts to string, strips whitespace
    - Lowercases
    - Removes all non-alphanumeric characters (spaces, punctuation, underscores)

    "LineItem SKU", "Lineitem SKU" and "lineitem_sku" all map to the same token.
    """

    if text is None:
        return ""
    token = str(text).strip().lower()
    if not token:
        return ""
    return re.sub(r"[^a-z0-9]+", "", token)


def find_header(headers: Iterable[str], aliases: Iterable[str]) -> Optional[int]:
    """Return the position of the first alias present in ``headers``.

    Aliases are tried in order; for each alias the first matching header wins.
    """

    normalized: Dict[str, int] = {}
    for idx, header in enumerate(headers):
        token = normalize_header_token(header)
        if token and token not in normalized:
            normalized[token] = idx
    for alias in aliases:
        token = normalize_header_token(alias)
        if token in normalized:
            return normalized[token]
    return None
