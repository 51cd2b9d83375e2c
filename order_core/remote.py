from __future__ import annotations

import logging
import re
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

import requests


logger = logging.getLogger(__name__)

# view name -> (path under the API base, expected type of the "data" member)
REMOTE_VIEWS: Dict[str, Tuple[str, Type]] = {
    "kpis": ("analytics/kpis", dict),
    "order_status": ("analytics/order-status", list),
    "payment_methods": ("analytics/payment-methods", list),
    "fulfillment_partners": ("analytics/fulfillment-partners", list),
    "top_products": ("analytics/top-products", list),
    "top_cities": ("analytics/top-cities", list),
    "daily_trend": ("analytics/trends", list),
    "partner_delivery_ratio": ("analytics/delivery-ratio", list),
    "good_bad_pincodes": ("analytics/good-bad-pincodes", dict),
    "top_ndr_pincodes": ("analytics/top-ndr-cities", list),
}

# raw order rows; the web client asks for everything in one page
ORDERS_PATH = "orders"
ORDERS_LIMIT = 1_000_000

KEY_ALIASES = {
    "average_order_value": "avg_order_value",
}

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(key: str) -> str:
    out = _CAMEL_RE.sub("_", key).lower()
    return KEY_ALIASES.get(out, out)


def snake_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {snake_case(str(k)): snake_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [snake_keys(v) for v in value]
    return value


class BackendState:
    """Lazily-checked "backend available" flag with explicit invalidation."""

    def __init__(self, check: Callable[[], bool]) -> None:
        self._check = check
        self._available: Optional[bool] = None
        self._lock = threading.Lock()

    def is_available(self, force_refresh: bool = False) -> bool:
        with self._lock:
            if self._available is None or force_refresh:
                self._available = bool(self._check())
            return self._available

    def invalidate(self) -> None:
        with self._lock:
            self._available = None


class RemoteAnalyticsClient:
    """Optional pre-aggregated analytics served by the order backend.

    Every failure is reported as None so callers can compute locally.
    """

    def __init__(self, base_url: str, *, timeout: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.state = BackendState(self.health)

    def _get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        response = self.session.get(f"{self.base_url}/{path}", params=params or None, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def health(self) -> bool:
        try:
            body = self._get("health")
        except (requests.RequestException, ValueError) as exc:
            logger.warning("analytics backend not reachable at %s: %s", self.base_url, exc)
            return False
        ok = isinstance(body, Mapping) and (body.get("success") is True or body.get("status") == "OK")
        if not ok:
            logger.warning("analytics backend health check returned unexpected body: %r", body)
        return ok

    def fetch(self, view: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Any]:
        if view not in REMOTE_VIEWS or not self.state.is_available():
            return None
        path, expected = REMOTE_VIEWS[view]
        try:
            body = self._get(path, params)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("remote %s failed, computing locally: %s", view, exc)
            return None
        if not isinstance(body, Mapping) or body.get("success") is not True or not isinstance(body.get("data"), expected):
            logger.warning("remote %s returned an unexpected shape, computing locally", view)
            return None
        data = snake_keys(body["data"])
        if view == "good_bad_pincodes" and not (isinstance(data.get("good"), list) and isinstance(data.get("bad"), list)):
            logger.warning("remote good/bad pincodes missing lists, computing locally")
            return None
        return data

    @property
    def orders_url(self) -> str:
        return f"{self.base_url}/{ORDERS_PATH}"

    def fetch_orders(self, limit: int = ORDERS_LIMIT) -> Optional[List[Dict[str, Any]]]:
        """Raw order rows from the backend, or None when they cannot be had."""
        if not self.state.is_available():
            return None
        try:
            body = self._get(ORDERS_PATH, {"limit": limit})
        except (requests.RequestException, ValueError) as exc:
            logger.warning("fetching orders failed, loading files instead: %s", exc)
            return None
        if not isinstance(body, Mapping) or body.get("success") is not True or not isinstance(body.get("data"), list):
            logger.warning("orders endpoint returned an unexpected shape, loading files instead")
            return None
        rows = [r for r in body["data"] if isinstance(r, Mapping)]
        if not rows:
            logger.info("backend holds no orders, loading files instead")
            return None
        return rows
