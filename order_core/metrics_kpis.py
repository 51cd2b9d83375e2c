from __future__ import annotations

import logging
from typing import Any, Dict, List

import pandas as pd

from order_core.data import percentage
from order_core.status import (
    is_counted_in_delivery_ratio,
    is_counted_in_total_orders,
    is_delivered,
    is_rto,
    is_rts,
    status_mask,
)


logger = logging.getLogger(__name__)

NO_PINCODE = {"pincode": "N/A", "ratio": 0.0, "delivered_count": 0, "total_orders": 0}


def top_pincode_by_delivery(df: pd.DataFrame) -> Dict[str, Any]:
    """Pincode with the most delivered orders among total-order statuses."""
    if df.empty:
        return dict(NO_PINCODE)
    counted = df[status_mask(df["status"], is_counted_in_total_orders)]
    if counted.empty:
        return dict(NO_PINCODE)
    grouped = (
        counted.assign(
            pincode=counted["pincode"].astype(str).str.strip(),
            delivered=status_mask(counted["status"], is_delivered).astype(int),
        )
        .groupby("pincode", sort=False)
        .agg(total_orders=("status", "size"), delivered_count=("delivered", "sum"))
        .reset_index()
        .sort_values(["delivered_count", "total_orders"], ascending=False, kind="stable")
    )
    top = grouped.iloc[0]
    return {
        "pincode": str(top["pincode"]),
        "ratio": percentage(int(top["delivered_count"]), int(top["total_orders"])),
        "delivered_count": int(top["delivered_count"]),
        "total_orders": int(top["total_orders"]),
    }


def compute_kpis(df: pd.DataFrame) -> Dict[str, Any]:
    if df.empty:
        return {
            "total_orders": 0,
            "total_revenue": 0.0,
            "avg_order_value": 0.0,
            "top_pincode": "N/A",
            "top_pincode_ratio": 0.0,
            "top_pincode_delivered_count": 0,
            "total_rto": 0,
            "total_rts": 0,
        }

    total_orders = int(status_mask(df["status"], is_counted_in_total_orders).sum())
    delivered = df[status_mask(df["status"], is_delivered)]
    total_revenue = float(delivered["amount"].sum())
    top = top_pincode_by_delivery(df)
    logger.debug(
        "kpis: %d rows, %d counted orders, %d delivered, revenue %.2f",
        len(df),
        total_orders,
        len(delivered),
        total_revenue,
    )
    return {
        "total_orders": total_orders,
        "total_revenue": total_revenue,
        "avg_order_value": total_revenue / total_orders if total_orders else 0.0,
        "top_pincode": top["pincode"],
        "top_pincode_ratio": top["ratio"],
        "top_pincode_delivered_count": top["delivered_count"],
        "total_rto": int(status_mask(df["status"], is_rto).sum()),
        "total_rts": int(status_mask(df["status"], is_rts).sum()),
    }


def delivery_ratio(df: pd.DataFrame) -> Dict[str, Any]:
    if df.empty:
        return {"ratio": 0.0, "delivered_count": 0, "total_orders": 0}
    counted = df[status_mask(df["status"], is_counted_in_delivery_ratio)]
    delivered_count = int(status_mask(counted["status"], is_delivered).sum())
    total = int(len(counted))
    return {"ratio": percentage(delivered_count, total), "delivered_count": delivered_count, "total_orders": total}


def delivery_ratio_by_partner(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    counted = df[status_mask(df["status"], is_counted_in_delivery_ratio)]
    if counted.empty:
        return []
    grouped = (
        counted.assign(
            partner=counted["fulfillment_partner"].astype(str).str.strip(),
            delivered=status_mask(counted["status"], is_delivered).astype(int),
        )
        .groupby("partner", sort=False)
        .agg(total_orders=("status", "size"), delivered_count=("delivered", "sum"))
        .reset_index()
    )
    grouped["ratio"] = [
        percentage(d, t) for d, t in zip(grouped["delivered_count"], grouped["total_orders"])
    ]
    grouped = grouped.sort_values("ratio", ascending=False, kind="stable")
    return [
        {
            "partner": str(r.partner),
            "total_orders": int(r.total_orders),
            "delivered_count": int(r.delivered_count),
            "ratio": float(r.ratio),
        }
        for r in grouped.itertuples(index=False)
    ]
