from datetime import date

from order_core.config import Settings
from order_core.filters import DashboardFilters
from order_core.service import AnalyticsService


class CountingRemote:
    """Stands in for RemoteAnalyticsClient; never has data."""

    def __init__(self):
        self.invalidated = 0
        self.fetched = []
        self.state = self

    def invalidate(self):
        self.invalidated += 1

    def fetch(self, view, params=None):
        self.fetched.append((view, params))
        return None

    def fetch_orders(self):
        self.fetched.append(("orders", None))
        return None


def test_reload_replaces_snapshot_and_invalidates_backend(tmp_path):
    (tmp_path / "orders.csv").write_text("Order ID,Status,Amount\nA1,Delivered,100\n", encoding="utf-8")
    remote = CountingRemote()
    service = AnalyticsService(settings=Settings(data_dir=tmp_path, file_glob="*.csv"), remote=remote)
    assert service.snapshot.row_count == 0

    first = service.reload()
    assert first.row_count == 1
    assert remote.invalidated == 1

    (tmp_path / "more.csv").write_text("Order ID,Status,Amount\nB1,RTO,50\n", encoding="utf-8")
    service.reload()
    assert service.snapshot.row_count == 2
    assert remote.invalidated == 2
    assert service.kpis(DashboardFilters())["total_orders"] == 2
    assert remote.fetched == [("orders", None), ("orders", None), ("kpis", {})]


def test_views_follow_filters(sample_store):
    service = AnalyticsService(settings=Settings(), store=sample_store)
    today = date(2024, 3, 5)
    recent = DashboardFilters(date_range="Last 7 Days")
    older = DashboardFilters(date_range="Custom", custom_start=date(2023, 1, 1), custom_end=date(2023, 12, 31))

    assert len(service.filtered(recent, today)) == 6
    assert service.filtered(older, today).empty
    assert service.kpis(older, today)["total_orders"] == 0
    assert service.good_bad_pincodes(older, today) == {"good": [], "bad": []}
    assert service.top_products(DashboardFilters(top_n=1), today) == [{"product": "Widget", "orders": 2, "revenue": 300.0}]

    overview = service.overview(older, today)
    assert overview["row_count"] == 0
    assert overview["tables"] == {}
    assert overview["options"]["products"] == ["Gadget", "Gizmo", "Widget"]


class OrdersRemote(CountingRemote):
    """Serves raw order rows the way the backend's orders endpoint does."""

    orders_url = "http://backend:5000/api/orders"

    def __init__(self, rows):
        super().__init__()
        self.rows = rows

    def fetch_orders(self):
        self.fetched.append(("orders", None))
        return self.rows


def test_reload_prefers_backend_orders(tmp_path):
    (tmp_path / "orders.csv").write_text("Order ID,Status,Amount\nA1,Delivered,100\n", encoding="utf-8")
    remote = OrdersRemote(
        [
            {"order_id": "B1", "order_date": "2024-03-01T00:00:00.000Z", "order_status": "Delivered", "order_value": "250.00", "product_name": "Widget", "pincode": "110001"},
            {"order_id": "B2", "order_date": "2024-03-02T00:00:00.000Z", "order_status": "RTO", "order_value": "50.00", "product_name": "Gadget", "pincode": "400001"},
        ]
    )
    service = AnalyticsService(settings=Settings(data_dir=tmp_path, file_glob="*.csv"), remote=remote)

    snapshot = service.reload()
    assert snapshot.origin == "api"
    assert snapshot.source == "http://backend:5000/api/orders"
    assert snapshot.frame["order_id"].tolist() == ["B1", "B2"]
    assert snapshot.frame["amount"].tolist() == [250.0, 50.0]
    assert snapshot.frame["product"].tolist() == ["Widget", "Gadget"]
    assert remote.invalidated == 1


def test_reload_falls_back_to_files_when_backend_orders_unusable(tmp_path):
    (tmp_path / "orders.csv").write_text("Order ID,Status,Amount\nA1,Delivered,100\n", encoding="utf-8")
    settings = Settings(data_dir=tmp_path, file_glob="*.csv")

    for remote in (CountingRemote(), OrdersRemote([{"order_id": None, "status": ""}])):
        snapshot = AnalyticsService(settings=settings, remote=remote).reload()
        assert snapshot.origin == "csv"
        assert snapshot.frame["order_id"].tolist() == ["A1"]
        assert remote.fetched[0] == ("orders", None)


def test_overview_rankings_follow_direction(sample_store):
    service = AnalyticsService(settings=Settings(), store=sample_store)
    today = date(2024, 3, 5)

    bottom = service.overview(DashboardFilters(ranking_metric="revenue", ranking_direction="bottom", top_n=1), today)
    assert bottom["tables"]["top_products"] == [{"product": "Widget", "orders": 2, "revenue": 300.0}]
    assert bottom["tables"]["top_cities"] == [{"city": "Delhi", "orders": 2, "revenue": 300.0}]

    top = service.overview(DashboardFilters(ranking_metric="revenue", top_n=1), today)
    assert top["tables"]["top_products"] == [{"product": "Gizmo", "orders": 2, "revenue": 1100.0}]
