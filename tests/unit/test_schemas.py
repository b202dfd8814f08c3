"""Unit tests for raw-store header mapping."""
from datetime import datetime

import pytest

from orderrecon.common.errors import MissingColumnError
from orderrecon.standards.schemas import (
    CLEAN_HEADERS,
    SHOPIFY_SCHEMA,
    SQUARESPACE_SCHEMA,
    resolve_columns,
)


def test_clean_headers_are_fixed():
    assert len(CLEAN_HEADERS) == 20
    assert CLEAN_HEADERS[0] == "platform"
    assert CLEAN_HEADERS[-1] == "source_sheet"


def test_header_matching_ignores_case_and_spacing():
    headers = ["order id", "ORDER NUMBER", "customer_email", "LineItem Name", "lineitem quantity", "Lineitem  Price", "Created At"]
    cols = resolve_columns(headers, SHOPIFY_SCHEMA, "Shopify Orders")
    assert cols.positions["order_id"] == 0
    assert cols.positions["unit_price"] == 5
    assert not cols.has("sku")
    assert cols.get(["1", "2", "3", "4", "5", "6", "7"], "sku") == ""


def test_missing_required_column_names_sheet():
    headers = ["Order ID", "Order Number", "Customer Email", "Lineitem Name", "Lineitem Quantity", "Created At"]
    with pytest.raises(MissingColumnError) as excinfo:
        resolve_columns(headers, SHOPIFY_SCHEMA, "Shopify Orders")
    assert excinfo.value.sheet_name == "Shopify Orders"
    assert str(excinfo.value).startswith("Shopify Orders missing required column(s): unit_price")


def test_missing_date_columns_lists_expected_names():
    headers = ["Order ID", "Order Number", "Customer Email", "LineItem Product Name", "LineItem Quantity", "Grand Total Value"]
    with pytest.raises(MissingColumnError) as excinfo:
        resolve_columns(headers, SQUARESPACE_SCHEMA, "Squarespace Orders")
    assert excinfo.value.expected == ["Created On", "Created", "Modified On", "Modified"]


def test_date_sources_resolve_in_priority_order():
    headers = [
        "Order ID", "Order Number", "Customer Email", "Lineitem Name", "Lineitem Quantity", "Lineitem Price",
        "Created At", "Processed At (Local)",
    ]
    cols = resolve_columns(headers, SHOPIFY_SCHEMA, "Shopify Orders")
    row = ["1", "#1", "a@b.c", "Widget", "1", "1", "2025-01-01 00:00:00", "2025-02-02 10:00:00"]
    assert cols.resolve_date(row) == datetime(2025, 2, 2, 10, 0)
    row[7] = "garbage"
    assert cols.resolve_date(row) == datetime(2025, 1, 1)


def test_squarespace_created_falls_back_to_modified():
    headers = ["Order ID", "Order Number", "Customer Email", "LineItem Product Name", "LineItem Quantity", "Grand Total Value", "Created", "Modified On"]
    cols = resolve_columns(headers, SQUARESPACE_SCHEMA, "Squarespace Orders")
    row = ["9", "S9", "a@b.c", "Kit", "1", "10", "", "2025-07-01"]
    assert cols.resolve_date(row) == datetime(2025, 7, 1)
