"""Bar chart renderer: counts or percentages per category, optionally grouped."""

from __future__ import annotations

from typing import Any, Dict, Hashable, List

from ..data import DataTable
from ..errors import ConfigurationError
from ..models import ChartPayload, ResolvedIntent
from .base import Renderer, binned_key, category_key, order_categories, tally, to_percent, validate_breaks

_BAR_TYPES = ("count", "percent")


class BarRenderer(Renderer):
    kind = "bar"
    required = ("x_var",)
    options = frozenset(
        {
            "x_var",
            "group_var",
            "subtitle",
            "x_label",
            "y_label",
            "horizontal",
            "bar_type",
            "color_palette",
            "group_order",
            "x_order",
            "order",
            "bin_breaks",
            "bin_labels",
            "include_na",
            "na_label",
        }
    )
    list_options = frozenset({"x_order", "group_order", "order", "bin_breaks", "bin_labels", "color_palette"})
    example = 'add_viz(type="bar", x_var="education")'

    def columns(self, intent: ResolvedIntent) -> List[str]:
        names = super().columns(intent)
        group_var = intent.get("group_var")
        if group_var:
            names.append(group_var)
        return names

    def render(self, intent: ResolvedIntent, table: DataTable) -> ChartPayload:
        self.validate(intent)
        table.require_columns(self.columns(intent))
        bar_type = intent.get("bar_type", "count")
        if bar_type not in _BAR_TYPES:
            raise ConfigurationError(f"bar_type must be 'count' or 'percent', got '{bar_type}'")
        x_var = intent.get("x_var")
        group_var = intent.get("group_var")
        weight_var = intent.get("weight_var")
        include_na = bool(intent.get("include_na", False))
        na_label = intent.get("na_label", "(Missing)")

        breaks = intent.get("bin_breaks")
        if breaks:
            numeric, labels = validate_breaks(breaks, intent.get("bin_labels"), kind=self.kind)
            x_key = binned_key(x_var, numeric, labels, include_na=include_na, na_label=na_label)
            x_order = labels
        else:
            x_key = category_key(x_var, include_na=include_na, na_label=na_label)
            x_order = intent.get("x_order") or intent.get("order")

        if not group_var:
            totals = tally(table.rows, x_key, weight_var=weight_var)
            values = to_percent(totals) if bar_type == "percent" else totals
            categories = order_categories(totals, x_order)
            series = [{"name": bar_type, "data": _points(categories, values)}]
        else:
            g_key = category_key(group_var, include_na=include_na, na_label=na_label)
            series = []
            groups = order_categories(
                tally(table.rows, g_key, weight_var=weight_var), intent.get("group_order")
            )
            categories = order_categories(tally(table.rows, x_key, weight_var=weight_var), x_order)
            for group in groups:
                rows = [row for row in table.rows if g_key(row) == group]
                totals = tally(rows, x_key, weight_var=weight_var)
                values = to_percent(totals) if bar_type == "percent" else totals
                series.append({"name": str(group), "data": _points(categories, values)})

        return self.payload(
            intent,
            series,
            categories=[str(category) for category in categories],
            horizontal=bool(intent.get("horizontal", False)),
            bar_type=bar_type,
        )


def _points(categories: List[Hashable], values: Dict[Hashable, float]) -> List[Dict[str, Any]]:
    return [{"x": str(category), "y": values.get(category, 0.0)} for category in categories]


__all__ = ["BarRenderer"]
