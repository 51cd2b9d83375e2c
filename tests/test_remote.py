from datetime import date

import requests

from order_core.data import OrderSnapshot, OrderStore
from order_core.filters import DashboardFilters
from order_core.remote import BackendState, RemoteAnalyticsClient, snake_case
from order_core.service import AnalyticsService, remote_params

BASE = "http://backend:5000/api"


class FakeResponse:
    def __init__(self, body, status=200):
        self.body = body
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class FakeSession:
    """Answers GETs from a path -> body table and records every call."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, params=None, timeout=None):
        path = url[len(BASE) + 1:]
        self.calls.append((path, params, timeout))
        body = self.routes.get(path)
        if isinstance(body, requests.RequestException):
            raise body
        if body is None:
            return FakeResponse({"error": "not found"}, status=404)
        return FakeResponse(body)


def client_for(routes, timeout=3.0):
    session = FakeSession(routes)
    return RemoteAnalyticsClient(BASE + "/", timeout=timeout, session=session), session


def test_snake_case():
    assert snake_case("totalOrders") == "total_orders"
    assert snake_case("totalRTO") == "total_rto"
    assert snake_case("averageOrderValue") == "avg_order_value"
    assert snake_case("topPincodeDeliveredCount") == "top_pincode_delivered_count"
    assert snake_case("count") == "count"


def test_backend_state_caches_until_invalidated():
    calls = []

    def check():
        calls.append(1)
        return True

    state = BackendState(check)
    assert state.is_available()
    assert state.is_available()
    assert len(calls) == 1
    state.invalidate()
    assert state.is_available()
    assert state.is_available(force_refresh=True)
    assert len(calls) == 3


def test_fetch_maps_camel_case_payloads():
    client, session = client_for(
        {
            "health": {"status": "OK"},
            "analytics/kpis": {"success": True, "data": {"totalOrders": 4, "totalRevenue": 600, "averageOrderValue": 150, "totalRTO": 1}},
        }
    )
    data = client.fetch("kpis", {"startDate": "2024-03-04"})
    assert data == {"total_orders": 4, "total_revenue": 600, "avg_order_value": 150, "total_rto": 1}
    assert session.calls[-1] == ("analytics/kpis", {"startDate": "2024-03-04"}, 3.0)


def test_fetch_returns_none_on_any_failure():
    client, _ = client_for(
        {
            "health": {"success": True},
            "analytics/order-status": {"success": False, "message": "db down"},
            "analytics/trends": {"success": True, "data": {"not": "a list"}},
            "analytics/top-products": requests.ConnectionError("refused"),
            "analytics/good-bad-pincodes": {"success": True, "data": {"good": []}},
        }
    )
    assert client.fetch("order_status") is None
    assert client.fetch("daily_trend") is None
    assert client.fetch("top_products") is None
    assert client.fetch("good_bad_pincodes") is None
    # 404 from the fake session
    assert client.fetch("top_cities") is None
    assert client.fetch("price_ranges") is None


def test_unreachable_backend_is_not_queried():
    client, session = client_for({"health": requests.ConnectionError("refused")})
    assert client.fetch("kpis") is None
    assert [c[0] for c in session.calls] == ["health"]


def test_invalid_json_health_is_unavailable():
    client, _ = client_for({"health": ValueError("bad json")})
    assert client.health() is False


def test_remote_params_per_view():
    f = DashboardFilters(date_range="Last 7 Days", products=("Widget", "All", "Gadget"), good_bad_product="Widget")
    today = date(2024, 3, 10)
    window = {"startDate": "2024-03-04", "endDate": "2024-03-10"}

    assert remote_params("kpis", f, today) == dict(window, products="Widget,Gadget")
    assert remote_params("good_bad_pincodes", f, today) == dict(window, products="Widget,Gadget", product="Widget")
    assert remote_params("top_ndr_pincodes", f, today) == dict(window, products="Widget,Gadget", limit="10")
    # neither ranking route reads the product filter
    assert remote_params("top_products", f, today) is None
    assert remote_params("top_cities", f, today) is None
    assert remote_params("price_ranges", f, today) is None

    ranked = DashboardFilters(pincode="110001", ranking_metric="revenue", top_n=3)
    assert remote_params("top_products", ranked) == {"pincode": "110001", "by": "revenue", "limit": "3"}
    assert remote_params("top_cities", ranked) is None
    assert remote_params("good_bad_pincodes", ranked) is None
    assert remote_params("kpis", DashboardFilters()) == {}


def test_service_sends_each_route_only_what_it_reads(sample_orders):
    ok = {"success": True, "data": []}
    client, session = client_for(
        {
            "health": {"success": True},
            "analytics/kpis": {"success": True, "data": {"totalOrders": 1}},
            "analytics/top-cities": ok,
            "analytics/top-products": ok,
            "analytics/top-ndr-cities": ok,
            "analytics/good-bad-pincodes": {"success": True, "data": {"good": [], "bad": []}},
        }
    )
    service = AnalyticsService(store=OrderStore(OrderSnapshot(frame=sample_orders, origin="spreadsheet")), remote=client)
    filters = DashboardFilters(ranking_metric="revenue", ranking_direction="bottom", top_n=3, good_bad_product="Widget")

    service.top_cities(filters)
    service.kpis(filters)
    # the top-products route cannot sort ascending, so this one stays local
    assert service.top_products(filters) == [
        {"product": "Widget", "orders": 2, "revenue": 300.0},
        {"product": "Gadget", "orders": 2, "revenue": 700.0},
        {"product": "Gizmo", "orders": 2, "revenue": 1100.0},
    ]
    service.top_ndr_pincodes(filters)
    service.good_bad_pincodes(filters)

    assert session.calls == [
        ("health", None, 3.0),
        ("analytics/top-cities", {"by": "revenue", "limit": "3", "sort": "bottom"}, 3.0),
        ("analytics/kpis", None, 3.0),
        ("analytics/top-ndr-cities", {"limit": "3"}, 3.0),
        ("analytics/good-bad-pincodes", {"product": "Widget"}, 3.0),
    ]


def test_fetch_orders():
    rows = [{"order_id": "B1", "order_value": "250.00"}]
    client, session = client_for({"health": {"success": True}, "orders": {"success": True, "data": rows, "pagination": {"total": 1}}})
    assert client.fetch_orders() == rows
    assert session.calls[-1] == ("orders", {"limit": 1_000_000}, 3.0)
    assert client.orders_url == BASE + "/orders"


def test_fetch_orders_returns_none_on_any_failure():
    assert client_for({"health": {"success": True}, "orders": {"success": True, "data": []}})[0].fetch_orders() is None
    assert client_for({"health": {"success": True}, "orders": {"success": False, "error": "db"}})[0].fetch_orders() is None
    assert client_for({"health": {"success": True}, "orders": requests.Timeout("slow")})[0].fetch_orders() is None
    assert client_for({"health": {"success": True}})[0].fetch_orders() is None
    client, session = client_for({"health": requests.ConnectionError("refused")})
    assert client.fetch_orders() is None
    assert [c[0] for c in session.calls] == ["health"]


def test_service_prefers_remote_and_falls_back_locally(sample_orders):
    client, session = client_for(
        {
            "health": {"success": True},
            "analytics/top-cities": {"success": True, "data": [{"city": "Remote City", "orders": 99, "revenue": 1.0}]},
        }
    )
    store = OrderStore(OrderSnapshot(frame=sample_orders, origin="spreadsheet"))
    service = AnalyticsService(store=store, remote=client)
    filters = DashboardFilters()

    assert service.top_cities(filters) == [{"city": "Remote City", "orders": 99, "revenue": 1.0}]
    # order-status is not routed by the fake backend, so it is computed here
    assert service.order_status(filters)[0] == {"status": "Delivered", "count": 3, "percentage": 50.0}
    # price ranges are always local
    service.price_ranges(filters)
    assert "analytics/price-ranges" not in [c[0] for c in session.calls]
