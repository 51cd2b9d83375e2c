from __future__ import annotations

from datetime import date, datetime
import logging
import math
from typing import Any, Callable, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from order_api.schemas import DashboardFiltersModel, ReloadResponse
from order_core.config import configure_logging, load_settings
from order_core.errors import OrderDataError
from order_core.filters import DashboardFilters, normalize_filters
from order_core.service import AnalyticsService


settings = load_settings()
configure_logging(settings)

app = FastAPI(title="Order Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_service: Optional[AnalyticsService] = None


def get_service() -> AnalyticsService:
    """Process-wide service; the record set is read on first use."""
    global _service
    if _service is None:
        service = AnalyticsService(settings)
        service.reload()
        _service = service
    return _service


def _filters_from_model(model: DashboardFiltersModel) -> DashboardFilters:
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                type(pd.NaT): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
                datetime: lambda dt: dt.isoformat(),
                date: lambda d: d.isoformat(),
            },
        )
    )


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _respond(name: str, compute: Callable[[], Any]) -> JSONResponse:
    try:
        return _json(compute())
    except OrderDataError as exc:
        logger.warning("%s rejected: %s", name, exc)
        return _error(422, exc)
    except Exception as exc:
        logger.exception("%s failed", name)
        return _error(500, exc)


@app.get("/meta/products")
def meta_products():
    return _respond("meta_products", lambda: {"products": get_service().options()["products"]})


@app.get("/meta/pincodes")
def meta_pincodes():
    return _respond("meta_pincodes", lambda: {"pincodes": get_service().options()["pincodes"]})


@app.post("/kpis")
def kpis(filters: DashboardFiltersModel):
    return _respond("kpis", lambda: get_service().kpis(_filters_from_model(filters)))


@app.post("/order-status")
def order_status(filters: DashboardFiltersModel):
    return _respond("order_status", lambda: get_service().order_status(_filters_from_model(filters)))


@app.post("/payment-methods")
def payment_methods(filters: DashboardFiltersModel):
    return _respond("payment_methods", lambda: get_service().payment_methods(_filters_from_model(filters)))


@app.post("/fulfillment-partners")
def fulfillment_partners(filters: DashboardFiltersModel):
    return _respond("fulfillment_partners", lambda: get_service().fulfillment_partners(_filters_from_model(filters)))


@app.post("/delivery-ratio")
def delivery_ratio(filters: DashboardFiltersModel):
    return _respond("delivery_ratio", lambda: get_service().delivery_ratio(_filters_from_model(filters)))


@app.post("/delivery-ratio/partners")
def partner_delivery_ratio(filters: DashboardFiltersModel):
    return _respond("partner_delivery_ratio", lambda: get_service().partner_delivery_ratio(_filters_from_model(filters)))


@app.post("/price-ranges")
def price_ranges(filters: DashboardFiltersModel):
    return _respond("price_ranges", lambda: get_service().price_ranges(_filters_from_model(filters)))


@app.post("/trends")
def trends(filters: DashboardFiltersModel):
    return _respond("trends", lambda: get_service().daily_trend(_filters_from_model(filters)))


@app.post("/top-products")
def top_products(filters: DashboardFiltersModel):
    return _respond("top_products", lambda: get_service().top_products(_filters_from_model(filters)))


@app.post("/top-cities")
def top_cities(filters: DashboardFiltersModel):
    return _respond("top_cities", lambda: get_service().top_cities(_filters_from_model(filters)))


@app.post("/top-products/by-pincode")
def top_products_by_pincode(filters: DashboardFiltersModel, pincode: str = Query(...)):
    return _respond(
        "top_products_by_pincode",
        lambda: get_service().top_products_by_pincode(_filters_from_model(filters), pincode),
    )


@app.post("/top-ndr-pincodes")
def top_ndr_pincodes(filters: DashboardFiltersModel):
    return _respond("top_ndr_pincodes", lambda: get_service().top_ndr_pincodes(_filters_from_model(filters)))


@app.post("/good-bad-pincodes")
def good_bad_pincodes(filters: DashboardFiltersModel):
    return _respond("good_bad_pincodes", lambda: get_service().good_bad_pincodes(_filters_from_model(filters)))


@app.post("/overview")
def overview(filters: DashboardFiltersModel):
    return _respond("overview", lambda: get_service().overview(_filters_from_model(filters)))


@app.post("/reload")
def reload():
    def _reload() -> dict:
        snapshot = get_service().reload()
        return ReloadResponse(row_count=snapshot.row_count, origin=snapshot.origin, source=snapshot.source).model_dump()

    return _respond("reload", _reload)


EXPORT_TABLES = {
    "order-status": "order_status",
    "payment-methods": "payment_methods",
    "fulfillment-partners": "fulfillment_partners",
    "delivery-ratio": "partner_delivery_ratio",
    "price-ranges": "price_ranges",
    "trends": "daily_trend",
    "top-products": "top_products",
    "top-cities": "top_cities",
    "top-ndr-pincodes": "top_ndr_pincodes",
}


@app.post("/export/{view}")
def export_view(view: str, filters: DashboardFiltersModel):
    service = get_service()
    f = _filters_from_model(filters)

    filename = f"{view}.csv"
    if view in {"orders", "overview"}:
        export_df = service.filtered(f)
        filename = "orders.csv"
    elif view in EXPORT_TABLES:
        export_df = pd.DataFrame(getattr(service, EXPORT_TABLES[view])(f))
    elif view == "good-bad-pincodes":
        split = service.good_bad_pincodes(f)
        export_df = pd.concat(
            [pd.DataFrame(split["good"]).assign(group="good"), pd.DataFrame(split["bad"]).assign(group="bad")],
            ignore_index=True,
        )
    else:
        export_df = pd.DataFrame()

    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
