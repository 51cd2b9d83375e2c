from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import altair as alt
import pandas as pd

from order_core.charts import bar_spec, donut_spec, to_vega_spec
from order_core.filters import DashboardFilters, filter_options
from order_core.metrics_distribution import (
    fulfillment_partner_analysis,
    order_status_distribution,
    payment_method_distribution,
    price_range_distribution,
)
from order_core.metrics_kpis import compute_kpis, delivery_ratio, delivery_ratio_by_partner
from order_core.metrics_pincodes import good_bad_pincodes
from order_core.metrics_rankings import daily_trend, top_cities, top_ndr_pincodes, top_products


def _trend_chart(trend: list) -> Dict[str, Any]:
    data = pd.DataFrame(trend)
    hover = alt.selection_point(fields=["date"], on="mouseover", nearest=True)
    line = (
        alt.Chart(data)
        .mark_line(point={"filled": True, "size": 50})
        .encode(
            x=alt.X("date:T", title="Order Date", axis=alt.Axis(grid=False)),
            y=alt.Y("orders:Q", title="Orders", axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False)),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[
                alt.Tooltip("date:T", title="Date"),
                alt.Tooltip("orders:Q", title="Orders", format=","),
                alt.Tooltip("revenue:Q", title="Revenue", format=",.2f"),
            ],
        )
        .add_params(hover)
        .properties(height=260)
    )
    return to_vega_spec(line)


def compute_overview(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_orders", pd.DataFrame())
    orders: pd.DataFrame = ctx.get("orders", pd.DataFrame())
    options = filter_options(orders) if not orders.empty else {"products": [], "pincodes": []}
    if df.empty:
        return {
            "filters": asdict(filters),
            "row_count": 0,
            "options": options,
            "kpis": compute_kpis(df),
            "delivery_ratio": delivery_ratio(df),
            "tables": {},
            "charts": {},
        }

    tables = {
        "order_status": order_status_distribution(df),
        "payment_methods": payment_method_distribution(df),
        "fulfillment_partners": fulfillment_partner_analysis(df),
        "partner_delivery_ratio": delivery_ratio_by_partner(df),
        "price_ranges": price_range_distribution(df),
        "daily_trend": daily_trend(df),
        "top_products": top_products(df, by=filters.ranking_metric, limit=filters.top_n, direction=filters.ranking_direction),
        "top_cities": top_cities(df, by=filters.ranking_metric, limit=filters.top_n, direction=filters.ranking_direction),
        "top_ndr_pincodes": top_ndr_pincodes(df, limit=filters.top_n),
        "good_bad_pincodes": good_bad_pincodes(df, filters.good_bad_product),
    }

    charts: Dict[str, Any] = {
        "order_status": donut_spec(tables["order_status"], "status", "count", title="Order Status"),
        "payment_methods": donut_spec(tables["payment_methods"], "method", "count", title="Payment Methods"),
        "price_ranges": bar_spec(tables["price_ranges"], "label", "count", title="Price Ranges"),
    }
    if tables["fulfillment_partners"]:
        charts["fulfillment_partners"] = bar_spec(
            tables["fulfillment_partners"], "partner", "orders", title="Fulfillment Partners", horizontal=True
        )
    if tables["top_products"]:
        charts["top_products"] = bar_spec(
            tables["top_products"], "product", filters.ranking_metric, title="Top Products", horizontal=True
        )
    if tables["top_cities"]:
        charts["top_cities"] = bar_spec(tables["top_cities"], "city", filters.ranking_metric, title="Cities", horizontal=True)
    if tables["daily_trend"]:
        charts["daily_trend"] = _trend_chart(tables["daily_trend"])

    return {
        "filters": asdict(filters),
        "row_count": int(len(df)),
        "options": options,
        "kpis": compute_kpis(df),
        "delivery_ratio": delivery_ratio(df),
        "tables": tables,
        "charts": charts,
    }
