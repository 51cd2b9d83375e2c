"""Good/bad pincode scoring per product.

A (product, pincode) pair is considered only when its actual orders
(total minus cancelled) exceed the product's median actual orders, which
drops low-volume pincodes without a fixed volume floor. Surviving pairs
with a delivery ratio above 60% are "good", below 20% are "bad"; the band
in between is reported as neither.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from order_core.data import percentage
from order_core.status import is_cancelled, is_delivered, status_mask


logger = logging.getLogger(__name__)

GOOD_RATIO = 60.0
BAD_RATIO = 20.0


def median_actual_orders(actual_orders: pd.Series) -> float:
    """Median over positive counts; the mean of the middle two for even sizes."""
    positive = sorted(int(v) for v in actual_orders if v > 0)
    if not positive:
        return 0.0
    mid = len(positive) // 2
    if len(positive) % 2 == 0:
        return (positive[mid - 1] + positive[mid]) / 2
    return float(positive[mid])


def pincode_stats(df: pd.DataFrame) -> pd.DataFrame:
    """Per (product, pincode) order counts and delivery ratio, in encounter order."""
    columns = ["product", "pincode", "total_orders", "cancelled_orders", "delivered_count", "actual_orders", "ratio"]
    if df.empty:
        return pd.DataFrame(columns=columns)
    stats = (
        df.assign(
            product=df["product"].fillna("Unknown").astype(str).str.strip(),
            pincode=df["pincode"].fillna("Unknown").astype(str).str.strip(),
            cancelled=status_mask(df["status"], is_cancelled).astype(int),
            delivered=status_mask(df["status"], is_delivered).astype(int),
        )
        .groupby(["product", "pincode"], sort=False)
        .agg(total_orders=("status", "size"), cancelled_orders=("cancelled", "sum"), delivered_count=("delivered", "sum"))
        .reset_index()
    )
    stats["actual_orders"] = stats["total_orders"] - stats["cancelled_orders"]
    stats["ratio"] = [percentage(d, a) for d, a in zip(stats["delivered_count"], stats["actual_orders"])]
    return stats[columns]


def good_bad_pincodes(df: pd.DataFrame, product: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
    if df.empty:
        return {"good": [], "bad": []}

    name = str(product or "").strip()
    if name and name != "All":
        df = df[df["product"].astype(str).str.strip() == name]

    stats = pincode_stats(df)
    if stats.empty:
        return {"good": [], "bad": []}

    medians = {p: median_actual_orders(g["actual_orders"]) for p, g in stats.groupby("product", sort=False)}
    stats["median"] = stats["product"].map(medians).astype(float)
    above = stats["actual_orders"] > stats["median"]
    zero_median = (stats["median"] == 0) & (stats["actual_orders"] > 0)
    kept = stats[above | zero_median]

    good = kept[kept["ratio"] > GOOD_RATIO].sort_values("ratio", ascending=False, kind="stable")
    bad = kept[kept["ratio"] < BAD_RATIO].sort_values("ratio", ascending=True, kind="stable")
    logger.debug(
        "good/bad pincodes: %d pairs, %d above median, %d good, %d bad",
        len(stats),
        len(kept),
        len(good),
        len(bad),
    )
    return {"good": _records(good), "bad": _records(bad)}


def _records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    return [
        {
            "product": str(r.product),
            "pincode": str(r.pincode),
            "total_orders": int(r.total_orders),
            "cancelled_orders": int(r.cancelled_orders),
            "delivered_count": int(r.delivered_count),
            "actual_orders": int(r.actual_orders),
            "ratio": float(r.ratio),
            "median": float(r.median),
        }
        for r in frame.itertuples(index=False)
    ]
