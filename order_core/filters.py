from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd


logger = logging.getLogger(__name__)

DATE_RANGES = ("Lifetime", "Last 7 Days", "Last 30 Days", "Yearly", "Custom")
LAST_N_DAYS = {"Last 7 Days": 7, "Last 30 Days": 30}
ALL = "All"


@dataclass(frozen=True)
class DashboardFilters:
    date_range: str = "Lifetime"
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None
    products: Tuple[str, ...] = field(default_factory=tuple)
    pincode: str = ALL
    top_n: int = 10
    ranking_metric: str = "orders"
    ranking_direction: str = "top"
    good_bad_product: Optional[str] = None


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    ts = pd.to_datetime(str(value), errors="coerce")
    return None if pd.isna(ts) else ts.date()


def _as_str_tuple(values: Optional[Iterable[object]]) -> Tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = values.split(",")
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s and s not in out:
            out.append(s)
    return tuple(out)


def normalize_filters(raw: dict) -> DashboardFilters:
    date_range = str(raw.get("date_range") or "Lifetime").strip()
    if date_range not in DATE_RANGES:
        date_range = "Lifetime"

    top_n = raw.get("top_n", 10)
    try:
        top_n = int(top_n)
    except (TypeError, ValueError):
        top_n = 10
    top_n = max(1, min(200, top_n))

    metric = str(raw.get("ranking_metric") or "orders").lower()
    direction = str(raw.get("ranking_direction") or "top").lower()
    pincode = str(raw.get("pincode") or ALL).strip() or ALL
    gb_product = str(raw.get("good_bad_product") or "").strip()

    return DashboardFilters(
        date_range=date_range,
        custom_start=_as_date(raw.get("custom_start")),
        custom_end=_as_date(raw.get("custom_end")),
        products=_as_str_tuple(raw.get("products")),
        pincode=pincode,
        top_n=top_n,
        ranking_metric=metric if metric in {"orders", "revenue"} else "orders",
        ranking_direction=direction if direction in {"top", "bottom"} else "top",
        good_bad_product=gb_product if gb_product and gb_product != ALL else None,
    )


def subtract_year(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year - 1, day=28)


def date_window(
    date_range: str,
    today: date,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> Optional[Tuple[date, date]]:
    """Inclusive (start, end) dates for a named range; None means no filtering."""
    if date_range in LAST_N_DAYS:
        return today - timedelta(days=LAST_N_DAYS[date_range] - 1), today
    if date_range == "Yearly":
        return subtract_year(today), today
    if date_range == "Custom":
        if custom_start is None or custom_end is None:
            logger.info("Custom date range without both bounds; not filtering by date")
            return None
        if custom_start > custom_end:
            custom_start, custom_end = custom_end, custom_start
        return custom_start, custom_end
    return None


def filter_by_date_range(
    df: pd.DataFrame,
    date_range: str,
    *,
    today: Optional[date] = None,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> pd.DataFrame:
    if df.empty or date_range == "Lifetime":
        return df
    window = date_window(date_range, today or date.today(), custom_start, custom_end)
    if window is None:
        return df
    start, end = (pd.Timestamp(d) for d in window)
    days = pd.to_datetime(df["order_date"], errors="coerce").dt.normalize()
    return df[days.notna() & (days >= start) & (days <= end)]


def filter_by_products(df: pd.DataFrame, products: Iterable[str]) -> pd.DataFrame:
    selected = {str(p).strip() for p in products if str(p).strip()}
    if df.empty or not selected or ALL in selected:
        return df
    return df[df["product"].astype(str).str.strip().isin(selected)]


def filter_by_pincode(df: pd.DataFrame, pincode: Optional[str]) -> pd.DataFrame:
    pin = str(pincode or "").strip()
    if df.empty or not pin or pin == ALL:
        return df
    return df[df["pincode"].astype(str).str.strip() == pin]


def apply_filters(df: pd.DataFrame, filters: DashboardFilters, *, today: Optional[date] = None) -> pd.DataFrame:
    out = filter_by_date_range(
        df,
        filters.date_range,
        today=today,
        custom_start=filters.custom_start,
        custom_end=filters.custom_end,
    )
    out = filter_by_products(out, filters.products)
    return filter_by_pincode(out, filters.pincode)


def _pincode_sort_key(value: str) -> Tuple[int, float, str]:
    try:
        return (0, float(value), value)
    except ValueError:
        return (1, 0.0, value)


def filter_options(df: pd.DataFrame) -> Dict[str, List[str]]:
    """Distinct products and pincodes for the filter widgets."""
    if df.empty:
        return {"products": [], "pincodes": []}

    def distinct(col: str) -> List[str]:
        values = df[col].dropna().astype(str).str.strip()
        return [v for v in values.unique().tolist() if v and v != "Unknown"]

    return {
        "products": sorted(distinct("product")),
        "pincodes": sorted(distinct("pincode"), key=_pincode_sort_key),
    }
