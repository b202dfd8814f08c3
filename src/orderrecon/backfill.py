"""Fill blank canonical order dates from the raw stores."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Mapping, Optional

from .coercion_utils import clean_str, format_datetime, parse_any_date
from .common.errors import MissingColumnError
from .ingestion_utils import find_header
from .standards.schemas import RawStoreSchema, Platform
from .storage.tables import CanonicalTable, RawOrderStore


LOGGER = logging.getLogger("orderrecon.backfill")

REQUIRED_CANONICAL = ("platform", "order_id", "order_date")


def build_order_date_map(store: RawOrderStore, schema: RawStoreSchema) -> Dict[str, datetime]:
    """Order ID -> first parsable date, trying date sources in priority order per row.

    A store without an order ID column or any date column yields an empty map.
    """
    headers = store.headers
    id_spec = next(spec for spec in schema.fields if spec.name == "order_id")
    id_idx = find_header(headers, id_spec.aliases)
    date_idx = [idx for idx in (find_header(headers, spec.aliases) for spec in schema.date_sources) if idx is not None]
    if id_idx is None or not date_idx:
        return {}

    dates: Dict[str, datetime] = {}
    for values in store.frame.itertuples(index=False, name=None):
        order_id = clean_str(values[id_idx])
        if not order_id or order_id in dates:
            continue
        for idx in date_idx:
            parsed = parse_any_date(values[idx])
            if parsed is not None:
                dates[order_id] = parsed
                break
    return dates


def backfill_order_dates(
    table: CanonicalTable,
    stores: Mapping[Platform, RawOrderStore],
    schemas: Mapping[Platform, RawStoreSchema],
) -> int:
    """Fill canonical rows whose ``order_date`` does not parse; returns rows filled.

    Rows that already carry a parsable date are never modified, so running the
    pass twice fills nothing the second time.
    """
    frame = table.read_frame()
    if frame.empty:
        return 0
    missing = [col for col in REQUIRED_CANONICAL if col not in frame.columns]
    if missing:
        raise MissingColumnError(table.name, missing)

    date_maps = {
        platform: build_order_date_map(store, schemas[platform]) for platform, store in stores.items()
    }
    by_value = {platform.value: date_map for platform, date_map in date_maps.items()}

    filled = 0
    for idx, (platform, order_id, order_date) in enumerate(
        zip(frame["platform"], frame["order_id"], frame["order_date"])
    ):
        platform = clean_str(platform)
        order_id = clean_str(order_id)
        if not platform or not order_id:
            continue
        if parse_any_date(order_date) is not None:
            continue
        found: Optional[datetime] = by_value.get(platform, {}).get(order_id)
        if found is None:
            continue
        frame.iat[idx, frame.columns.get_loc("order_date")] = format_datetime(found)
        filled += 1

    if filled:
        table.replace_body(frame)
    LOGGER.info("Backfilled order_date on %d rows of %s", filled, table.name)
    return filled
