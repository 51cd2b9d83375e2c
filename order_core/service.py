from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, FrozenSet, List, Optional

import pandas as pd

from order_core.config import Settings, load_settings
from order_core.data import (
    OrderSnapshot,
    OrderStore,
    clear_load_cache,
    load_api_payload,
    load_dashboard_data,
    prepare_context,
)
from order_core.errors import OrderDataError
from order_core.filters import ALL, DashboardFilters, date_window, filter_options
from order_core.metrics_distribution import (
    fulfillment_partner_analysis,
    order_status_distribution,
    payment_method_distribution,
    price_range_distribution,
)
from order_core.metrics_kpis import compute_kpis, delivery_ratio, delivery_ratio_by_partner
from order_core.metrics_overview import compute_overview
from order_core.metrics_pincodes import good_bad_pincodes
from order_core.metrics_rankings import (
    daily_trend,
    top_cities,
    top_ndr_pincodes,
    top_products,
    top_products_by_pincode,
)
from order_core.remote import RemoteAnalyticsClient


logger = logging.getLogger(__name__)


# Filters each backend route applies on top of the date window. A view whose
# route cannot apply an active filter is computed locally instead.
ROUTE_FILTERS: Dict[str, FrozenSet[str]] = {
    "kpis": frozenset({"products", "pincode"}),
    "order_status": frozenset({"products", "pincode"}),
    "payment_methods": frozenset({"products", "pincode"}),
    "fulfillment_partners": frozenset({"products", "pincode"}),
    "daily_trend": frozenset({"products", "pincode"}),
    "partner_delivery_ratio": frozenset({"products", "pincode"}),
    "top_products": frozenset({"pincode", "by", "limit"}),
    "top_cities": frozenset({"by", "limit", "sort"}),
    "top_ndr_pincodes": frozenset({"products", "pincode", "limit"}),
    "good_bad_pincodes": frozenset({"products", "product"}),
}


def remote_params(view: str, filters: DashboardFilters, today: Optional[date] = None) -> Optional[Dict[str, str]]:
    """Query parameters for one analytics route, or None when it cannot honour the filters."""
    accepted = ROUTE_FILTERS.get(view)
    if accepted is None:
        return None

    wanted: Dict[str, str] = {}
    products = [p for p in filters.products if p != ALL]
    if products:
        wanted["products"] = ",".join(products)
    if filters.pincode and filters.pincode != ALL:
        wanted["pincode"] = filters.pincode
    if view in ("top_products", "top_cities"):
        wanted["by"] = filters.ranking_metric
        wanted["limit"] = str(filters.top_n)
        # the routes sort top-first unless told otherwise
        if filters.ranking_direction != "top":
            wanted["sort"] = filters.ranking_direction
    elif view == "top_ndr_pincodes":
        wanted["limit"] = str(filters.top_n)
    elif view == "good_bad_pincodes" and filters.good_bad_product:
        wanted["product"] = filters.good_bad_product

    unsupported = sorted(set(wanted) - accepted)
    if unsupported:
        logger.debug("%s: backend route ignores %s, computing locally", view, ", ".join(unsupported))
        return None

    params: Dict[str, str] = {}
    window = date_window(filters.date_range, today or date.today(), filters.custom_start, filters.custom_end)
    if window is not None:
        params["startDate"], params["endDate"] = (d.isoformat() for d in window)
    params.update(wanted)
    return params


class AnalyticsService:
    """Answers every dashboard view from the remote backend when it is up, else locally."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[OrderStore] = None,
        remote: Optional[RemoteAnalyticsClient] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.store = store or OrderStore()
        if remote is None and self.settings.remote_api_url:
            remote = RemoteAnalyticsClient(self.settings.remote_api_url, timeout=self.settings.remote_timeout)
        self.remote = remote

    @property
    def snapshot(self) -> OrderSnapshot:
        return self.store.snapshot

    def reload(self) -> OrderSnapshot:
        """Reload from the backend when it serves orders, else from the source files."""
        clear_load_cache()
        snapshot: Optional[OrderSnapshot] = None
        if self.remote is not None:
            self.remote.state.invalidate()
            snapshot = self._load_remote_orders()
        if snapshot is None:
            snapshot = load_dashboard_data(self.settings)
        self.store.replace(snapshot)
        return snapshot

    def _load_remote_orders(self) -> Optional[OrderSnapshot]:
        rows = self.remote.fetch_orders()
        if rows is None:
            return None
        try:
            return load_api_payload(rows, source=self.remote.orders_url)
        except OrderDataError as exc:
            logger.warning("backend orders unusable, loading files instead: %s", exc)
            return None

    def context(self, filters: DashboardFilters, today: Optional[date] = None) -> Dict[str, Any]:
        return prepare_context(filters, self.store.snapshot, today=today)

    def filtered(self, filters: DashboardFilters, today: Optional[date] = None) -> pd.DataFrame:
        return self.context(filters, today)["filtered_orders"]

    def _dispatch(
        self,
        view: str,
        filters: DashboardFilters,
        local: Callable[[pd.DataFrame], Any],
        today: Optional[date] = None,
    ) -> Any:
        params = remote_params(view, filters, today) if self.remote is not None else None
        if params is not None:
            data = self.remote.fetch(view, params)
            if data is not None:
                logger.debug("%s served by remote backend", view)
                return data
        return local(self.filtered(filters, today))

    def options(self) -> Dict[str, List[str]]:
        return filter_options(self.store.snapshot.frame)

    def kpis(self, filters: DashboardFilters, today: Optional[date] = None) -> Dict[str, Any]:
        return self._dispatch("kpis", filters, compute_kpis, today)

    def order_status(self, filters: DashboardFilters, today: Optional[date] = None) -> List[Dict[str, Any]]:
        return self._dispatch("order_status", filters, order_status_distribution, today)

    def payment_methods(self, filters: DashboardFilters, today: Optional[date] = None) -> List[Dict[str, Any]]:
        return self._dispatch("payment_methods", filters, payment_method_distribution, today)

    def fulfillment_partners(self, filters: DashboardFilters, today: Optional[date] = None) -> List[Dict[str, Any]]:
        return self._dispatch("fulfillment_partners", filters, fulfillment_partner_analysis, today)

    def delivery_ratio(self, filters: DashboardFilters, today: Optional[date] = None) -> Dict[str, Any]:
        # the backend only serves the per-partner breakdown
        return delivery_ratio(self.filtered(filters, today))

    def partner_delivery_ratio(self, filters: DashboardFilters, today: Optional[date] = None) -> List[Dict[str, Any]]:
        return self._dispatch("partner_delivery_ratio", filters, delivery_ratio_by_partner, today)

    def price_ranges(self, filters: DashboardFilters, today: Optional[date] = None) -> List[Dict[str, Any]]:
        return price_range_distribution(self.filtered(filters, today))

    def daily_trend(self, filters: DashboardFilters, today: Optional[date] = None) -> List[Dict[str, Any]]:
        return self._dispatch("daily_trend", filters, daily_trend, today)

    def top_products(self, filters: DashboardFilters, today: Optional[date] = None) -> List[Dict[str, Any]]:
        def local(df: pd.DataFrame) -> List[Dict[str, Any]]:
            return top_products(df, by=filters.ranking_metric, limit=filters.top_n, direction=filters.ranking_direction)

        return self._dispatch("top_products", filters, local, today)

    def top_cities(self, filters: DashboardFilters, today: Optional[date] = None) -> List[Dict[str, Any]]:
        def local(df: pd.DataFrame) -> List[Dict[str, Any]]:
            return top_cities(df, by=filters.ranking_metric, limit=filters.top_n, direction=filters.ranking_direction)

        return self._dispatch("top_cities", filters, local, today)

    def top_products_by_pincode(
        self, filters: DashboardFilters, pincode: str, today: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        return top_products_by_pincode(self.filtered(filters, today), pincode, limit=filters.top_n)

    def top_ndr_pincodes(self, filters: DashboardFilters, today: Optional[date] = None) -> List[Dict[str, Any]]:
        return self._dispatch("top_ndr_pincodes", filters, lambda df: top_ndr_pincodes(df, limit=filters.top_n), today)

    def good_bad_pincodes(self, filters: DashboardFilters, today: Optional[date] = None) -> Dict[str, List[Dict[str, Any]]]:
        return self._dispatch(
            "good_bad_pincodes", filters, lambda df: good_bad_pincodes(df, filters.good_bad_product), today
        )

    def overview(self, filters: DashboardFilters, today: Optional[date] = None) -> Dict[str, Any]:
        ctx = self.context(filters, today)
        payload = compute_overview(filters, ctx)
        payload["source"] = ctx["source"]
        payload["loaded_at"] = ctx["loaded_at"]
        return payload
