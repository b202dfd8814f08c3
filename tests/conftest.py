import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from orderrecon.common.config_validator import AppConfig, load_and_validate_config


SHOPIFY_HEADERS = [
    "Order ID",
    "Order Number",
    "Customer Email",
    "Customer First Name",
    "Customer Last Name",
    "Processed At (Local)",
    "Created At",
    "Lineitem Name",
    "Lineitem SKU",
    "Lineitem Quantity",
    "Lineitem Price",
    "Total Discounts",
    "Total Price",
    "Current Total Price",
    "Total Refunds",
    "Currency",
    "Financial Status",
    "Fulfillment Status",
    "Test Order",
    "Tags",
]

SQUARESPACE_HEADERS = [
    "Order ID",
    "Order Number",
    "Created On",
    "Customer Email",
    "Billing First Name",
    "Billing Last Name",
    "LineItem Product Name",
    "LineItem SKU",
    "LineItem Quantity",
    "LineItem Unit Price Value",
    "Subtotal Currency",
    "Grand Total Value",
    "Grand Total Currency",
    "Discount Total Value",
    "Refunded Total Value",
    "Fulfillment Status",
    "Test Mode",
]


def shopify_row(order_id: str, product: str, qty: str = "1", price: str = "10.00", **overrides) -> Dict[str, str]:
    row = {h: "" for h in SHOPIFY_HEADERS}
    row.update(
        {
            "Order ID": order_id,
            "Order Number": f"#{order_id}",
            "Customer Email": "buyer@example.com",
            "Customer First Name": "Pat",
            "Customer Last Name": "Buyer",
            "Processed At (Local)": "2025-03-01 09:30:00",
            "Created At": "2025-02-28 08:00:00",
            "Lineitem Name": product,
            "Lineitem SKU": f"SKU-{product[:3].upper()}",
            "Lineitem Quantity": qty,
            "Lineitem Price": price,
            "Total Discounts": "0",
            "Total Price": "100.00",
            "Current Total Price": "100.00",
            "Total Refunds": "0",
            "Currency": "USD",
            "Financial Status": "paid",
            "Fulfillment Status": "fulfilled",
            "Test Order": "FALSE",
        }
    )
    row.update(overrides)
    return row


def squarespace_row(order_id: str, product: str, qty: str = "1", grand_total: str = "40.00", **overrides) -> Dict[str, str]:
    row = {h: "" for h in SQUARESPACE_HEADERS}
    row.update(
        {
            "Order ID": order_id,
            "Order Number": f"S{order_id}",
            "Created On": "2025-04-02 12:00:00",
            "Customer Email": "client@example.com",
            "Billing First Name": "Sam",
            "Billing Last Name": "Client",
            "LineItem Product Name": product,
            "LineItem Quantity": qty,
            "Subtotal Currency": "USD",
            "Grand Total Value": grand_total,
            "Grand Total Currency": "USD",
            "Discount Total Value": "0",
            "Refunded Total Value": "0",
            "Fulfillment Status": "PENDING",
            "Test Mode": "false",
        }
    )
    row.update(overrides)
    return row


def write_sheet(path: Path, rows: Iterable[Dict[str, str]], headers: List[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(list(rows), columns=headers).to_csv(path, index=False)
    return path


def seed_workbook(workbook_dir: Path, shopify_rows, squarespace_rows) -> None:
    write_sheet(workbook_dir / "Shopify Orders.csv", shopify_rows, SHOPIFY_HEADERS)
    write_sheet(workbook_dir / "Squarespace Orders.csv", squarespace_rows, SQUARESPACE_HEADERS)


def make_config(root: Path, banned: Optional[List[str]] = None, **build) -> AppConfig:
    workbook = root / "workbook"
    banned_path = None
    if banned is not None:
        banned_path = workbook / "Banned.csv"
        write_sheet(banned_path, [{"Email": b} for b in banned], ["Email"])
    raw = {
        "paths": {
            "workbook_dir": str(workbook),
            "state_file": str(workbook / ".script_properties.json"),
            "lock_file": str(workbook / ".clean_master.lock"),
            "banned_list": str(banned_path) if banned_path else None,
            "logs_dir": str(root / "logs"),
        },
        "build": {"export_xlsx": False, "lock_timeout_seconds": 0, **build},
        "exclusions": {"always_banned_domains": ["dirtlegal.com"]},
    }
    return load_and_validate_config(raw)


class StepClock:
    """Monotonic fake: each call returns a value ``step`` seconds after the last."""

    def __init__(self, step: float) -> None:
        self.step = step
        self.now = 0.0
        self.calls = 0

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        self.calls += 1
        return value


@pytest.fixture
def step_clock():
    return StepClock
