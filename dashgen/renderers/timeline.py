"""Timeline renderer: response shares or means tracked across a time column."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Hashable, List, Optional, Tuple

from ..data import DataTable, is_missing
from ..errors import ConfigurationError, DataBindingError
from ..models import ChartPayload, ResolvedIntent
from .base import Renderer, order_categories, row_weight

_CHART_TYPES = ("line", "stacked_area", "stacked_bar", "diverging_bar")


class TimelineRenderer(Renderer):
    kind = "timeline"
    required = ("time_var", "y_var")
    options = frozenset(
        {
            "time_var",
            "y_var",
            "response_var",
            "group_var",
            "chart_type",
            "percentage",
            "subtitle",
            "x_label",
            "y_label",
            "legend_title",
            "response_levels",
            "color_palette",
            "smooth_lines",
            "show_points",
        }
    )
    list_options = frozenset({"response_levels", "color_palette"})
    example = 'add_viz(type="timeline", time_var="wave", y_var="trust")'

    def columns(self, intent: ResolvedIntent) -> List[str]:
        names = super().columns(_with_response_alias(intent))
        group_var = intent.get("group_var")
        if group_var:
            names.append(group_var)
        return names

    def render(self, intent: ResolvedIntent, table: DataTable) -> ChartPayload:
        intent = _with_response_alias(intent)
        self.validate(intent)
        table.require_columns(self.columns(intent))
        group_var = intent.get("group_var")
        chart_type = intent.get("chart_type", "line")
        if chart_type not in _CHART_TYPES:
            raise ConfigurationError(
                f"timeline chart_type must be one of {', '.join(_CHART_TYPES)}, got '{chart_type}'"
            )
        time_var = intent.get("time_var")
        y_var = intent.get("y_var")
        weight_var = intent.get("weight_var")

        times = order_categories(
            row.get(time_var) for row in table.rows if not is_missing(row.get(time_var))
        )
        if group_var:
            series = self._group_means(table, time_var, y_var, group_var, weight_var, times)
        else:
            series = self._response_shares(
                table,
                time_var,
                y_var,
                weight_var,
                times,
                percentage=bool(intent.get("percentage", True)),
                levels=intent.get("response_levels"),
            )
        return self.payload(
            intent,
            series,
            categories=[str(time) for time in times],
            chart_type=chart_type,
            smooth_lines=bool(intent.get("smooth_lines", False)),
            show_points=bool(intent.get("show_points", True)),
        )

    @staticmethod
    def _response_shares(table, time_var, y_var, weight_var, times, *, percentage, levels):
        cells: Dict[Tuple[Hashable, Hashable], float] = {}
        totals: Dict[Hashable, float] = {time: 0.0 for time in times}
        for row in table.rows:
            time, response = row.get(time_var), row.get(y_var)
            if is_missing(time) or is_missing(response):
                continue
            weight = row_weight(row, weight_var)
            cells[(time, response)] = cells.get((time, response), 0.0) + weight
            totals[time] += weight
        responses = order_categories((response for _, response in cells), levels)
        series = []
        for response in responses:
            points = []
            for time in times:
                value = cells.get((time, response), 0.0)
                if percentage:
                    value = round(value * 100.0 / totals[time], 4) if totals[time] else 0.0
                points.append({"x": str(time), "y": value})
            series.append({"name": str(response), "data": points})
        return series

    @staticmethod
    def _group_means(table, time_var, y_var, group_var, weight_var, times):
        sums: Dict[Tuple[Hashable, Hashable], float] = {}
        weights: Dict[Tuple[Hashable, Hashable], float] = {}
        for row in table.rows:
            time, group, value = row.get(time_var), row.get(group_var), row.get(y_var)
            if is_missing(time) or is_missing(group) or is_missing(value):
                continue
            try:
                number = float(value)
            except (TypeError, ValueError) as exc:
                raise DataBindingError(
                    f"Column '{y_var}' must be numeric for grouped timeline charts"
                ) from exc
            weight = row_weight(row, weight_var)
            sums[(time, group)] = sums.get((time, group), 0.0) + number * weight
            weights[(time, group)] = weights.get((time, group), 0.0) + weight
        groups = order_categories(group for _, group in sums)
        series = []
        for group in groups:
            points: List[Dict[str, Optional[float]]] = []
            for time in times:
                total = weights.get((time, group))
                mean = round(sums[(time, group)] / total, 4) if total else None
                points.append({"x": str(time), "y": mean})
            series.append({"name": str(group), "data": points})
        return series


def _with_response_alias(intent: ResolvedIntent) -> ResolvedIntent:
    if intent.get("y_var") is not None or intent.get("response_var") is None:
        return intent
    params = dict(intent.params)
    params["y_var"] = params["response_var"]
    return replace(intent, params=params)


__all__ = ["TimelineRenderer"]
