"""Maintenance operations around the Clean-Master build."""
from __future__ import annotations

import logging

from .coercion_utils import clean_str
from .common.errors import MissingColumnError
from .exclusions.banned_list import BannedList, banned_mask
from .ingestion_utils import find_header
from .standards.schemas import RawStoreSchema
from .storage.state_store import BuildStateRepository
from .storage.tables import CanonicalTable, Workbook


LOGGER = logging.getLogger("orderrecon.maintenance")


def reset_build_state(state_repo: BuildStateRepository, table: CanonicalTable) -> None:
    """Forget any in-progress build and clear the canonical body rows."""
    state_repo.delete()
    table.clear_body()
    LOGGER.info("Build state %s deleted and %s cleared", state_repo.key, table.name)


def deduplicate_raw_store(workbook: Workbook, sheet_name: str, schema: RawStoreSchema) -> int:
    """Drop repeated (order ID, line item ID) rows, keeping the first; returns rows removed."""
    store = workbook.raw_store(sheet_name)
    specs = {spec.name: spec for spec in schema.fields}
    headers = store.headers
    id_idx = find_header(headers, specs["order_id"].aliases)
    line_idx = find_header(headers, specs["line_item_id"].aliases)
    missing = []
    if id_idx is None:
        missing.append("/".join(specs["order_id"].aliases))
    if line_idx is None:
        missing.append("/".join(specs["line_item_id"].aliases))
    if missing:
        raise MissingColumnError(sheet_name, missing)

    frame = store.frame
    keys = frame.iloc[:, id_idx].map(clean_str) + "||" + frame.iloc[:, line_idx].map(clean_str)
    # Rows without an order ID are never treated as duplicates of each other
    has_id = frame.iloc[:, id_idx].map(clean_str) != ""
    duplicated = keys.duplicated(keep="first") & has_id
    removed = int(duplicated.sum())
    if removed:
        workbook.replace_sheet(sheet_name, frame.loc[~duplicated])
    LOGGER.info("Removed %d duplicate rows from %s", removed, sheet_name)
    return removed


def purge_banned_from_canonical(table: CanonicalTable, banned: BannedList) -> int:
    """Remove canonical rows whose raw email is banned now; returns rows removed."""
    frame = table.read_frame()
    if frame.empty:
        return 0
    if "customer_email_raw" not in frame.columns:
        raise MissingColumnError(table.name, ["customer_email_raw"])
    mask = banned_mask(frame["customer_email_raw"], banned)
    removed = int(mask.sum())
    if removed:
        table.replace_body(frame.loc[~mask])
    LOGGER.info("Purged %d banned rows from %s", removed, table.name)
    return removed
