from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple


CANONICAL_FIELDS: Tuple[str, ...] = (
    "order_id",
    "order_date",
    "amount",
    "status",
    "payment_method",
    "city",
    "pincode",
    "product",
    "sku",
    "fulfillment_partner",
)

# Source spellings that resolve to a canonical field before any keyword rule.
# Order is priority: the first candidate present in a table wins ties.
FIELD_CANDIDATES: Dict[str, Tuple[str, ...]] = {
    "order_id": ("order_id", "order id", "orderid", "client order id", "order number"),
    "order_date": ("order_date", "order date", "orderdate"),
    "amount": ("amount", "order amount", "total amount", "order_value", "order value", "total_amount"),
    "status": ("status", "order_status", "order status", "orderstatus"),
    "payment_method": ("payment_method", "payment method", "mode"),
    "city": ("city", "ship city", "delivery city"),
    "pincode": ("pincode", "pin code", "pin"),
    "product": ("product", "product name", "product_name", "productname"),
    "sku": ("sku",),
    "fulfillment_partner": ("fulfillment_partner", "fulfilled by", "fulfilled_by", "fulfilledby", "fulfillmentpartner"),
}

_PRODUCT_EXCLUDES = ("quantity", "qty", "amount", "price", "cost", "value")
_PARTNER_KEYWORDS = ("fulfillment", "partner", "vendor", "carrier", "shipping partner", "fulfilled")


def normalize_column_name(header: object) -> object:
    """Map a raw header to its canonical field name, or return it unchanged."""
    if header is None:
        return header
    low = str(header).strip().lower()
    if not low:
        return header

    if ("order" in low and "id" in low) or any(k in low for k in ("orderid", "order number", "ordernumber")):
        return "order_id"
    if "date" in low:
        return "order_date"
    if any(k in low for k in ("amount", "price", "revenue", "value", "total")):
        return "amount"
    if "status" in low or "state" in low:
        return "status"
    if low == "mode" or any(k in low for k in ("payment", "cod", "ppd")):
        return "payment_method"
    if "city" in low:
        return "city"
    if any(k in low for k in ("pin", "zip", "postal")):
        return "pincode"
    if low == "product name" or ("product" in low and "name" in low) or "productname" in low:
        if not any(k in low for k in _PRODUCT_EXCLUDES):
            return "product"
    if "sku" in low:
        return "sku"
    if "fulfilled by" in low or "fulfilledby" in low:
        return "fulfillment_partner"
    if any(k in low for k in _PARTNER_KEYWORDS):
        return "fulfillment_partner"
    return header


def _exact_field(low: str) -> str | None:
    if low == "product name":
        return "product"
    if low in {"pincode", "pin code"}:
        return "pincode"
    for canonical, candidates in FIELD_CANDIDATES.items():
        if low in candidates:
            return canonical
    return None


@dataclass(frozen=True)
class ColumnResolution:
    """Per canonical field, the source headers to read in priority order."""

    sources: Dict[str, List[object]] = field(default_factory=dict)
    extras: List[object] = field(default_factory=list)

    def mapped(self) -> Dict[object, str]:
        return {h: canonical for canonical, headers in self.sources.items() for h in headers}


def resolve_columns(headers: Iterable[object]) -> ColumnResolution:
    exact: Dict[str, List[Tuple[int, object]]] = {f: [] for f in CANONICAL_FIELDS}
    fuzzy: Dict[str, List[object]] = {f: [] for f in CANONICAL_FIELDS}
    extras: List[object] = []

    for header in headers:
        low = str(header).strip().lower() if header is not None else ""
        canonical = _exact_field(low) if low else None
        if canonical is not None:
            candidates = FIELD_CANDIDATES[canonical]
            rank = candidates.index(low) if low in candidates else -1
            exact[canonical].append((rank, header))
            continue
        target = normalize_column_name(header)
        if isinstance(target, str) and target in fuzzy:
            fuzzy[target].append(header)
        else:
            extras.append(header)

    sources: Dict[str, List[object]] = {}
    for canonical in CANONICAL_FIELDS:
        ranked = [h for _, h in sorted(exact[canonical], key=lambda pair: pair[0])]
        ordered = ranked + fuzzy[canonical]
        if ordered:
            sources[canonical] = ordered
    return ColumnResolution(sources=sources, extras=extras)
