from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from order_core.data import percentage
from order_core.status import PAYMENT_BUCKETS, classify_payment_method


PRICE_BUCKETS: Tuple[Tuple[str, float, float], ...] = (
    ("0-500", 0, 500),
    ("500-1000", 500, 1000),
    ("1000-2000", 1000, 2000),
    ("2000-5000", 2000, 5000),
    ("5000-10000", 5000, 10000),
    ("10000+", 10000, math.inf),
)


def order_status_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    status = df["status"].fillna("Unknown").astype(str).str.strip().replace("", "Unknown")
    counts = status.groupby(status, sort=False).size()
    counts = counts.sort_values(ascending=False, kind="stable")
    total = int(len(df))
    return [
        {"status": str(s), "count": int(c), "percentage": percentage(int(c), total)}
        for s, c in counts.items()
    ]


def payment_method_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    buckets = df["payment_method"].map(classify_payment_method)
    counts = buckets.value_counts().reindex(list(PAYMENT_BUCKETS), fill_value=0)
    counts = counts[counts > 0].sort_values(ascending=False, kind="stable")
    total = int(len(df))
    return [
        {"method": str(m), "count": int(c), "percentage": percentage(int(c), total)}
        for m, c in counts.items()
    ]


def fulfillment_partner_analysis(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    grouped = (
        df.assign(partner=df["fulfillment_partner"].astype(str).str.strip())
        .groupby("partner", sort=False)
        .agg(orders=("amount", "size"), revenue=("amount", "sum"))
        .reset_index()
        .sort_values("orders", ascending=False, kind="stable")
    )
    return [
        {"partner": str(r.partner), "orders": int(r.orders), "revenue": float(r.revenue)}
        for r in grouped.itertuples(index=False)
    ]


def price_bucket(amount: float) -> Optional[str]:
    for label, low, high in PRICE_BUCKETS:
        if low <= amount < high:
            return label
    return None


def price_range_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    labels = df["amount"].fillna(0).astype(float).map(price_bucket)
    counts = labels.value_counts()
    out: List[Dict[str, Any]] = []
    for label, low, high in PRICE_BUCKETS:
        count = int(counts.get(label, 0))
        if count:
            out.append({"label": label, "min": low, "max": None if math.isinf(high) else high, "count": count})
    return out
