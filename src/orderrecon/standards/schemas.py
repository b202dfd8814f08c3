"""Table contracts: the canonical output table and the raw-store header mappings."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from ..coercion_utils import format_datetime, parse_any_date
from ..common.errors import MissingColumnError
from ..ingestion_utils import find_header


# Downstream reports depend on these exact names and this order.
CLEAN_HEADERS: List[str] = [
    "platform",
    "order_id",
    "order_number",
    "order_date",
    "customer_email_raw",
    "customer_email_norm",
    "customer_name",
    "product_name",
    "sku",
    "quantity",
    "unit_price",
    "line_revenue",
    "order_discount_total",
    "order_refund_total",
    "order_net_revenue",
    "currency",
    "financial_status",
    "fulfillment_status",
    "tags",
    "source_sheet",
]

DATE_COLUMNS = ["order_date"]
NUMERIC_COLUMNS = [
    "quantity",
    "unit_price",
    "line_revenue",
    "order_discount_total",
    "order_refund_total",
    "order_net_revenue",
]


class Platform(str, Enum):
    SHOPIFY = "Shopify"
    SQUARESPACE = "Squarespace"


@dataclass(frozen=True)
class FieldSpec:
    """A logical field and the raw header names accepted for it, in priority order."""

    name: str
    aliases: Tuple[str, ...]
    required: bool = False


@dataclass(frozen=True)
class RawStoreSchema:
    platform: Platform
    fields: Tuple[FieldSpec, ...]
    # Ordered date sources; the first one that parses wins
    date_sources: Tuple[FieldSpec, ...]

    def date_aliases(self) -> List[str]:
        return [alias for spec in self.date_sources for alias in spec.aliases]


@dataclass
class ColumnMap:
    """Header positions for one raw store, resolved once per scan."""

    sheet_name: str
    positions: Dict[str, Optional[int]]
    date_positions: List[int] = field(default_factory=list)

    def has(self, name: str) -> bool:
        return self.positions.get(name) is not None

    def get(self, row: Sequence[object], name: str) -> object:
        """Cell value for ``name``; optional columns that are absent read as ""."""
        idx = self.positions.get(name)
        if idx is None or idx >= len(row):
            return ""
        return row[idx]

    def resolve_date(self, row: Sequence[object]) -> Optional[datetime]:
        for idx in self.date_positions:
            if idx < len(row):
                parsed = parse_any_date(row[idx])
                if parsed is not None:
                    return parsed
        return None


def resolve_columns(headers: Sequence[object], schema: RawStoreSchema, sheet_name: str) -> ColumnMap:
    """Map a raw store's header row onto ``schema``.

    Raises MissingColumnError when a required field has none of its accepted
    headers, or when the store has no usable date column at all.
    """
    header_list = [str(h) if h is not None else "" for h in headers]
    positions: Dict[str, Optional[int]] = {}
    missing: List[str] = []
    for spec in schema.fields:
        idx = find_header(header_list, spec.aliases)
        positions[spec.name] = idx
        if idx is None and spec.required:
            missing.append(f"{spec.name} ({' / '.join(spec.aliases)})")
    if missing:
        raise MissingColumnError(sheet_name, missing)

    date_positions: List[int] = []
    for spec in schema.date_sources:
        idx = find_header(header_list, spec.aliases)
        positions[spec.name] = idx
        if idx is not None:
            date_positions.append(idx)
    if not date_positions:
        raise MissingColumnError(sheet_name, ["order date"], expected=schema.date_aliases())

    return ColumnMap(sheet_name=sheet_name, positions=positions, date_positions=date_positions)


SHOPIFY_SCHEMA = RawStoreSchema(
    platform=Platform.SHOPIFY,
    fields=(
        FieldSpec("order_id", ("Order ID",), required=True),
        FieldSpec("order_number", ("Order Number",), required=True),
        FieldSpec("email", ("Customer Email",), required=True),
        FieldSpec("product_name", ("Lineitem Name",), required=True),
        FieldSpec("quantity", ("Lineitem Quantity",), required=True),
        FieldSpec("unit_price", ("Lineitem Price",), required=True),
        FieldSpec("line_item_id", ("Lineitem ID",)),
        FieldSpec("sku", ("Lineitem SKU",)),
        FieldSpec("financial_status", ("Financial Status",)),
        FieldSpec("fulfillment_status", ("Fulfillment Status",)),
        FieldSpec("currency", ("Currency",)),
        FieldSpec("total_discounts", ("Total Discounts",)),
        FieldSpec("total_price", ("Total Price",)),
        FieldSpec("current_total_price", ("Current Total Price",)),
        FieldSpec("total_refunds", ("Total Refunds",)),
        FieldSpec("test_flag", ("Test Order",)),
        FieldSpec("first_name", ("Customer First Name",)),
        FieldSpec("last_name", ("Customer Last Name",)),
        FieldSpec("tags", ("Tags",)),
    ),
    date_sources=(
        FieldSpec("processed_at_local", ("Processed At (Local)",)),
        FieldSpec("processed_at", ("Processed At",)),
        FieldSpec("created_at_local", ("Created At (Local)",)),
        FieldSpec("created_at", ("Created At",)),
        FieldSpec("updated_at", ("Updated At",)),
    ),
)

SQUARESPACE_SCHEMA = RawStoreSchema(
    platform=Platform.SQUARESPACE,
    fields=(
        FieldSpec("order_id", ("Order ID",), required=True),
        FieldSpec("order_number", ("Order Number",), required=True),
        FieldSpec("email", ("Customer Email",), required=True),
        FieldSpec("product_name", ("LineItem Product Name",), required=True),
        FieldSpec("quantity", ("LineItem Quantity",), required=True),
        FieldSpec("grand_total", ("Grand Total Value",), required=True),
        FieldSpec("line_item_id", ("LineItem ID",)),
        FieldSpec("test_flag", ("Test Mode",)),
        FieldSpec("first_name", ("Billing First Name",)),
        FieldSpec("last_name", ("Billing Last Name",)),
        FieldSpec("sku", ("LineItem SKU",)),
        FieldSpec("unit_price", ("LineItem Unit Price Value",)),
        FieldSpec("subtotal_currency", ("Subtotal Currency",)),
        FieldSpec("grand_total_currency", ("Grand Total Currency",)),
        FieldSpec("discount_total", ("Discount Total Value",)),
        FieldSpec("refunded_total", ("Refunded Total Value",)),
        FieldSpec("fulfillment_status", ("Fulfillment Status",)),
    ),
    date_sources=(
        FieldSpec("created_on", ("Created On", "Created")),
        FieldSpec("modified_on", ("Modified On", "Modified")),
    ),
)

SCHEMAS: Dict[Platform, RawStoreSchema] = {
    Platform.SHOPIFY: SHOPIFY_SCHEMA,
    Platform.SQUARESPACE: SQUARESPACE_SCHEMA,
}


@dataclass
class CanonicalOrderLine:
    platform: Platform
    order_id: str
    order_number: str
    order_date: Optional[datetime]
    customer_email_raw: str
    customer_email_norm: str
    customer_name: str
    product_name: str
    sku: str
    quantity: float
    unit_price: float
    line_revenue: float
    order_discount_total: float
    order_refund_total: float
    order_net_revenue: float
    currency: str
    financial_status: str
    fulfillment_status: str
    tags: str
    source_sheet: str

    def to_row(self) -> List[object]:
        """Values in CLEAN_HEADERS order, ready for a table write."""
        return [
            self.platform.value,
            self.order_id,
            self.order_number,
            format_datetime(self.order_date),
            self.customer_email_raw,
            self.customer_email_norm,
            self.customer_name,
            self.product_name,
            self.sku,
            self.quantity,
            self.unit_price,
            self.line_revenue,
            self.order_discount_total,
            self.order_refund_total,
            self.order_net_revenue,
            self.currency,
            self.financial_status,
            self.fulfillment_status,
            self.tags,
            self.source_sheet,
        ]
