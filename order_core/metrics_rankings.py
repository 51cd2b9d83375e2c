from __future__ import annotations

from typing import Any, Dict, List, Literal

import pandas as pd

from order_core.data import percentage, round_half_up
from order_core.status import is_cancelled, is_ndr, status_mask

Metric = Literal["orders", "revenue"]
Direction = Literal["top", "bottom"]


def daily_trend(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    dated = df.assign(day=pd.to_datetime(df["order_date"], errors="coerce").dt.normalize()).dropna(subset=["day"])
    if dated.empty:
        return []
    grouped = (
        dated.groupby("day")
        .agg(orders=("amount", "size"), revenue=("amount", "sum"))
        .reset_index()
        .sort_values("day")
    )
    return [
        {"date": r.day.strftime("%Y-%m-%d"), "orders": int(r.orders), "revenue": round_half_up(r.revenue, 2)}
        for r in grouped.itertuples(index=False)
    ]


def top_by_dimension(
    df: pd.DataFrame,
    dimension: str,
    *,
    by: Metric = "orders",
    limit: int = 10,
    direction: Direction = "top",
    label: str | None = None,
) -> List[Dict[str, Any]]:
    """Group by a dimension, rank by orders or revenue.

    Ties keep first-encounter order (groupby sort=False + stable sort).
    """
    if df.empty or dimension not in df.columns:
        return []
    label = label or dimension
    metric = "revenue" if by == "revenue" else "orders"
    grouped = (
        df.assign(group_key=df[dimension].fillna("Unknown").astype(str).str.strip())
        .groupby("group_key", sort=False)
        .agg(orders=("amount", "size"), revenue=("amount", "sum"))
        .reset_index()
        .sort_values(metric, ascending=(direction == "bottom"), kind="stable")
        .head(max(0, int(limit)))
    )
    return [
        {label: str(r.group_key), "orders": int(r.orders), "revenue": float(r.revenue)}
        for r in grouped.itertuples(index=False)
    ]


def top_products(df: pd.DataFrame, by: Metric = "orders", limit: int = 10, direction: Direction = "top") -> List[Dict[str, Any]]:
    return top_by_dimension(df, "product", by=by, limit=limit, direction=direction)


def top_cities(df: pd.DataFrame, by: Metric = "orders", limit: int = 10, direction: Direction = "top") -> List[Dict[str, Any]]:
    return top_by_dimension(df, "city", by=by, limit=limit, direction=direction)


def top_products_by_pincode(df: pd.DataFrame, pincode: str, limit: int = 10) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    pin = str(pincode).strip()
    subset = df[df["pincode"].astype(str).str.strip() == pin]
    return top_products(subset, by="orders", limit=limit)


def top_ndr_pincodes(df: pd.DataFrame, limit: int = 10) -> List[Dict[str, Any]]:
    """Pincodes ranked by absolute NDR count."""
    if df.empty:
        return []
    grouped = (
        df.assign(
            group_pin=df["pincode"].astype(str).str.strip(),
            cancelled=status_mask(df["status"], is_cancelled).astype(int),
            ndr=status_mask(df["status"], is_ndr).astype(int),
        )
        .groupby("group_pin", sort=False)
        .agg(total_orders=("ndr", "size"), cancelled_orders=("cancelled", "sum"), ndr_count=("ndr", "sum"))
        .reset_index()
    )
    grouped = grouped[grouped["ndr_count"] > 0]
    grouped = grouped.sort_values("ndr_count", ascending=False, kind="stable").head(max(0, int(limit)))
    out: List[Dict[str, Any]] = []
    for r in grouped.itertuples(index=False):
        non_cancelled = int(r.total_orders) - int(r.cancelled_orders)
        out.append(
            {
                "pincode": str(r.group_pin),
                "total_orders": int(r.total_orders),
                "cancelled_orders": int(r.cancelled_orders),
                "ndr_count": int(r.ndr_count),
                "non_cancelled_orders": non_cancelled,
                "ndr_ratio": percentage(int(r.ndr_count), non_cancelled),
            }
        )
    return out
