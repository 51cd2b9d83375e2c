from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    date_range: Literal["Lifetime", "Last 7 Days", "Last 30 Days", "Yearly", "Custom"] = "Lifetime"
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None
    products: List[str] = Field(default_factory=list)
    pincode: str = "All"
    top_n: int = Field(default=10, ge=1, le=200)
    ranking_metric: Literal["orders", "revenue"] = "orders"
    ranking_direction: Literal["top", "bottom"] = "top"
    good_bad_product: Optional[str] = None


class ReloadResponse(BaseModel):
    row_count: int
    origin: str
    source: str
