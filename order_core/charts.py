from __future__ import annotations

from typing import Any, Dict, List

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def bar_spec(rows: List[Dict[str, Any]], x: str, y: str, *, title: str, horizontal: bool = False) -> Dict[str, Any]:
    data = pd.DataFrame(rows)
    if horizontal:
        enc = {"x": alt.X(f"{y}:Q", title=y.replace("_", " ").title()), "y": alt.Y(f"{x}:N", sort=None, title=None)}
    else:
        enc = {"x": alt.X(f"{x}:N", sort=None, title=None), "y": alt.Y(f"{y}:Q", title=y.replace("_", " ").title())}
    chart = alt.Chart(data).mark_bar().encode(tooltip=list(data.columns), **enc).properties(title=title)
    return to_vega_spec(chart)


def donut_spec(rows: List[Dict[str, Any]], category: str, value: str, *, title: str) -> Dict[str, Any]:
    data = pd.DataFrame(rows)
    chart = (
        alt.Chart(data)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta(f"{value}:Q"),
            color=alt.Color(f"{category}:N", title=None),
            tooltip=list(data.columns),
        )
        .properties(title=title)
    )
    return to_vega_spec(chart)
