"""Histogram renderer: numeric values bucketed into equal-width or explicit bins."""

from __future__ import annotations

from typing import List

from ..data import DataTable, is_missing
from ..errors import ConfigurationError, DataBindingError
from ..models import ChartPayload, ResolvedIntent
from .base import Renderer, bin_labels_for, binned_key, equal_width_breaks, tally, to_percent, validate_breaks

_DEFAULT_BINS = 10
_HISTOGRAM_TYPES = ("count", "percent")


class HistogramRenderer(Renderer):
    kind = "histogram"
    required = ("x_var",)
    options = frozenset(
        {
            "x_var",
            "subtitle",
            "x_label",
            "y_label",
            "histogram_type",
            "bins",
            "bin_breaks",
            "bin_labels",
            "include_na",
            "na_label",
            "color",
            "color_palette",
        }
    )
    list_options = frozenset({"bin_breaks", "bin_labels", "color_palette"})
    example = 'add_viz(type="histogram", x_var="age", bins=20)'

    def render(self, intent: ResolvedIntent, table: DataTable) -> ChartPayload:
        self.validate(intent)
        table.require_columns(self.columns(intent))
        histogram_type = intent.get("histogram_type", "count")
        if histogram_type not in _HISTOGRAM_TYPES:
            raise ConfigurationError(
                f"histogram_type must be 'count' or 'percent', got '{histogram_type}'"
            )
        x_var = intent.get("x_var")
        values = [row.get(x_var) for row in table.rows if not is_missing(row.get(x_var))]
        breaks, labels = self._breaks(intent, values)

        na_label = intent.get("na_label", "(Missing)")
        include_na = bool(intent.get("include_na", False))

        key = binned_key(x_var, breaks, labels, include_na=include_na, na_label=na_label)
        totals = tally(table.rows, key, weight_var=intent.get("weight_var"))
        shaped = to_percent(totals) if histogram_type == "percent" else totals
        order = list(labels) + ([na_label] if include_na and na_label in totals else [])
        data = [{"x": label, "y": shaped.get(label, 0.0)} for label in order]
        return self.payload(
            intent,
            [{"name": histogram_type, "data": data}],
            categories=order,
            breaks=breaks,
            histogram_type=histogram_type,
        )

    def _breaks(self, intent: ResolvedIntent, values: List[object]):
        explicit = intent.get("bin_breaks")
        if explicit:
            return validate_breaks(explicit, intent.get("bin_labels"), kind=self.kind)
        bins = intent.get("bins", _DEFAULT_BINS)
        if not isinstance(bins, int) or isinstance(bins, bool):
            raise ConfigurationError(f"histogram: bins must be an integer, got {bins!r}")
        if not values:
            return [0.0, 1.0], bin_labels_for([0.0, 1.0])
        try:
            numeric = [float(value) for value in values]
        except (TypeError, ValueError) as exc:
            raise DataBindingError(
                f"Column '{intent.get('x_var')}' must be numeric for histogram charts"
            ) from exc
        breaks = equal_width_breaks(numeric, bins)
        return breaks, bin_labels_for(breaks)


__all__ = ["HistogramRenderer"]
