from __future__ import annotations

from typing import Any, Dict, List

import pandas as pd
import pytest

from order_core.data import OrderSnapshot, OrderStore, normalize_records


# Short test keys -> the spreadsheet headers an order export carries.
SOURCE_HEADERS = {
    "order_id": "Order ID",
    "date": "Order Date",
    "amount": "Order Amount",
    "status": "Status",
    "payment": "Payment Method",
    "city": "City",
    "pincode": "Pincode",
    "product": "Product Name",
    "sku": "SKU",
    "partner": "Fulfilled By",
}

DEFAULT_ROW = {
    "date": "2024-03-01",
    "amount": 0,
    "status": "Delivered",
    "payment": "COD",
    "city": "Delhi",
    "pincode": "110001",
    "product": "Widget",
    "sku": "W1",
    "partner": "Delhivery",
}


def source_rows(*records: Dict[str, Any]) -> List[Dict[str, Any]]:
    rows = []
    for i, rec in enumerate(records, start=1):
        merged = dict(DEFAULT_ROW, order_id=f"O{i}")
        merged.update(rec)
        rows.append({SOURCE_HEADERS[k]: v for k, v in merged.items()})
    return rows


def build_orders(*records: Dict[str, Any]) -> pd.DataFrame:
    return normalize_records(source_rows(*records))


@pytest.fixture
def make_orders():
    return build_orders


@pytest.fixture
def sample_orders() -> pd.DataFrame:
    return build_orders(
        {"date": "2024-03-01", "amount": 100, "status": "Delivered", "payment": "COD", "city": "Delhi", "pincode": "110001", "product": "Widget", "partner": "Delhivery"},
        {"date": "2024-03-01", "amount": 200, "status": "Delivered", "payment": "Prepaid", "city": "Delhi", "pincode": "110001", "product": "Widget", "partner": "Delhivery"},
        {"date": "2024-03-02", "amount": 300, "status": "Delivered", "payment": "COD", "city": "Mumbai", "pincode": "400001", "product": "Gadget", "partner": "BlueDart"},
        {"date": "2024-03-03", "amount": 400, "status": "RTO", "payment": "PPD", "city": "Mumbai", "pincode": "400001", "product": "Gadget", "partner": "BlueDart"},
        {"date": "2024-03-04", "amount": 500, "status": "Cancelled", "payment": "UPI", "city": "Pune", "pincode": "411001", "product": "Gizmo", "partner": "Ekart"},
        {"date": "2024-03-05", "amount": 600, "status": "NDR", "payment": "COD", "city": "Pune", "pincode": "411001", "product": "Gizmo", "partner": "Ekart"},
    )


@pytest.fixture
def sample_store(sample_orders) -> OrderStore:
    return OrderStore(OrderSnapshot(frame=sample_orders, origin="spreadsheet", source="orders.xlsx"))
