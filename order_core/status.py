"""Order-lifecycle status taxonomy.

Two "counted" sets exist on purpose: KPI totals use the narrow
`is_counted_in_total_orders` taxonomy while delivery ratios use the broader
`is_counted_in_delivery_ratio` one. Keep them separate.
"""

from __future__ import annotations

from typing import Callable

import pandas as pd


TOTAL_ORDER_STATUSES = frozenset({"rts", "rto", "delivered", "lost", "ndr", "dispatched"})
DELIVERY_RATIO_STATUSES = frozenset(
    {
        "booked",
        "delivered",
        "dispatched",
        "in transit",
        "in-transit",
        "intransit",
        "lost",
        "manifested",
        "ndr",
        "picked",
        "pickup pending",
        "pickup-pending",
        "pickuppending",
        "rto",
        "rts",
    }
)

PAYMENT_BUCKETS = ("COD", "PPD", "Other")


def _norm(status: object) -> str:
    if status is None or (not isinstance(status, str) and pd.isna(status)):
        return ""
    return str(status).strip().lower()


def is_delivered(status: object) -> bool:
    return _norm(status) == "delivered"


def is_cancelled(status: object) -> bool:
    return "cancel" in _norm(status)


def is_counted_in_total_orders(status: object) -> bool:
    s = _norm(status)
    if s in TOTAL_ORDER_STATUSES:
        return True
    if "rto-it" in s or "rto it" in s:
        return True
    # RTO-I, but RTO-IT is handled above
    if "rto-i" in s:
        return True
    if "rto-ii" in s or "rto ii" in s:
        return True
    if "rto-dispatched" in s or "rto dispatched" in s:
        return True
    return "rto pending" in s or "rto-pending" in s


def is_counted_in_delivery_ratio(status: object) -> bool:
    s = _norm(status)
    if s in DELIVERY_RATIO_STATUSES:
        return True
    if "rto-dispatched" in s or "rto dispatched" in s:
        return True
    if "rto-it" in s or "rto it" in s:
        return True
    return "rto pending" in s or "rto-pending" in s


def is_rto(status: object) -> bool:
    s = _norm(status)
    return "rto" in s or "return" in s


def is_rts(status: object) -> bool:
    return _norm(status) == "rts"


def is_ndr(status: object) -> bool:
    return _norm(status) == "ndr"


def classify_payment_method(value: object) -> str:
    s = _norm(value)
    if "cod" in s:
        return "COD"
    if "ppd" in s or "prepaid" in s:
        return "PPD"
    return "Other"


def status_mask(series: pd.Series, predicate: Callable[[object], bool]) -> pd.Series:
    """Apply a status predicate element-wise, returning a boolean Series."""
    if series.empty:
        return pd.Series(dtype=bool, index=series.index)
    return series.map(predicate).astype(bool)
