"""Plain-text reports on raw-store coverage and canonical exclusions."""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .coercion_utils import clean_str, format_datetime, parse_any_date
from .common.config_validator import SheetsConfig
from .ingestion_utils import find_header
from .standards.schemas import CLEAN_HEADERS, Platform, SCHEMAS
from .storage.tables import RawOrderStore, Workbook


LOGGER = logging.getLogger("orderrecon.diagnostics")


def _date_range(store: RawOrderStore, platform: Platform) -> Tuple[Optional[str], Optional[str]]:
    schema = SCHEMAS[platform]
    for spec in schema.date_sources:
        idx = find_header(store.headers, spec.aliases)
        if idx is None:
            continue
        parsed = [d for d in (parse_any_date(v) for v in store.frame.iloc[:, idx]) if d is not None]
        if parsed:
            return format_datetime(min(parsed)), format_datetime(max(parsed))
    return None, None


def _raw_stores(workbook: Workbook, sheets: SheetsConfig) -> List[Tuple[Platform, str, Optional[RawOrderStore]]]:
    out = []
    for platform, name in ((Platform.SHOPIFY, sheets.platform_a), (Platform.SQUARESPACE, sheets.platform_b)):
        out.append((platform, name, workbook.raw_store(name) if workbook.has_sheet(name) else None))
    return out


def data_coverage_report(workbook: Workbook, sheets: SheetsConfig) -> str:
    """Row counts and oldest/newest order date per raw store, plus the canonical row count."""
    lines = ["DATA COVERAGE REPORT", ""]
    for platform, name, store in _raw_stores(workbook, sheets):
        if store is None:
            lines.append(f"{name}: NOT FOUND")
            continue
        oldest, newest = _date_range(store, platform)
        lines.append(f"{name} ({platform.value}): {store.last_row - 1} rows")
        lines.append(f"  oldest order date: {oldest or 'n/a'}")
        lines.append(f"  newest order date: {newest or 'n/a'}")
    table = workbook.canonical_table(sheets.clean_output, CLEAN_HEADERS)
    if table.exists():
        lines.append(f"{sheets.clean_output}: {table.body_row_count()} rows")
    else:
        lines.append(f"{sheets.clean_output}: NOT BUILT")
    report = "\n".join(lines)
    LOGGER.info("%s", report)
    return report


def exclusion_report(workbook: Workbook, sheets: SheetsConfig) -> str:
    """Raw vs canonical line counts per platform; the gap is excluded or skipped rows."""
    canonical = workbook.canonical_table(sheets.clean_output, CLEAN_HEADERS).read_frame()
    per_platform = (
        canonical["platform"].map(clean_str).value_counts().to_dict()
        if "platform" in canonical.columns
        else {}
    )
    lines = ["EXCLUSION REPORT", ""]
    for platform, name, store in _raw_stores(workbook, sheets):
        raw_rows = 0 if store is None else store.last_row - 1
        kept = int(per_platform.get(platform.value, 0))
        lines.append(f"{platform.value}: raw={raw_rows} canonical={kept} dropped={max(0, raw_rows - kept)}")
    report = "\n".join(lines)
    LOGGER.info("%s", report)
    return report
