"""Stacked bar renderer.

Two shapes are supported: one categorical ``x_var`` crossed with a
``stack_var``, or several question columns (``x_vars``) pivoted from wide to
long so each column becomes a bar and its answers become the stacks.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, List, Mapping, Sequence, Tuple

from ..data import DataTable, is_missing
from ..errors import ConfigurationError, RequiredParameterMissing
from ..models import ChartPayload, ResolvedIntent
from .base import Renderer, order_categories, row_weight

_STACKED_TYPES = ("counts", "percent")


class StackedBarRenderer(Renderer):
    kind = "stackedbar"
    required = ("x_var", "stack_var")
    options = frozenset(
        {
            "x_var",
            "x_vars",
            "x_var_labels",
            "stack_var",
            "subtitle",
            "x_label",
            "y_label",
            "stack_label",
            "stacked_type",
            "color_palette",
            "stack_order",
            "x_order",
            "include_na",
            "na_label",
            "horizontal",
        }
    )
    list_options = frozenset({"x_vars", "x_order", "stack_order", "color_palette"})
    example = 'add_viz(type="stackedbar", x_var="age_group", stack_var="response")'

    def validate(self, intent: ResolvedIntent) -> None:
        x_vars = intent.get("x_vars")
        if x_vars:
            if not isinstance(x_vars, (list, tuple)) or not all(isinstance(v, str) for v in x_vars):
                raise ConfigurationError("stackedbar: x_vars must be a list of column names")
            return
        if is_missing(intent.get("x_var")):
            raise RequiredParameterMissing(
                "x_var",
                self.kind,
                path=intent.path,
                example=f'{self.example} or add_viz(type="stackedbar", x_vars=["q1", "q2"])',
            )
        super().validate(intent)

    def columns(self, intent: ResolvedIntent) -> List[str]:
        x_vars = intent.get("x_vars")
        if x_vars:
            names = list(x_vars)
            weight = intent.get("weight_var")
            if weight:
                names.append(weight)
            return names
        return super().columns(intent)

    def render(self, intent: ResolvedIntent, table: DataTable) -> ChartPayload:
        self.validate(intent)
        table.require_columns(self.columns(intent))
        stacked_type = intent.get("stacked_type", "counts")
        if stacked_type not in _STACKED_TYPES:
            raise ConfigurationError(
                f"stacked_type must be 'counts' or 'percent', got '{stacked_type}'"
            )
        include_na = bool(intent.get("include_na", False))
        na_label = intent.get("na_label", "(Missing)")
        pairs = list(self._long_pairs(intent, table))

        cells: Dict[Tuple[Hashable, Hashable], float] = {}
        for x_value, stack_value, weight in pairs:
            if is_missing(x_value) or is_missing(stack_value):
                if not include_na:
                    continue
                x_value = na_label if is_missing(x_value) else x_value
                stack_value = na_label if is_missing(stack_value) else stack_value
            cells[(x_value, stack_value)] = cells.get((x_value, stack_value), 0.0) + weight

        x_order = intent.get("x_order")
        if intent.get("x_vars") and not x_order:
            x_order = list(intent.get("x_vars"))
        categories = order_categories((x for x, _ in cells), x_order)
        stacks = order_categories((s for _, s in cells), intent.get("stack_order"))
        if stacked_type == "percent":
            cells = _percent_within(cells, categories)

        labels: Mapping[str, str] = intent.get("x_var_labels") or {}
        series = [
            {
                "name": str(stack),
                "data": [
                    {"x": labels.get(str(x), str(x)), "y": cells.get((x, stack), 0.0)}
                    for x in categories
                ],
            }
            for stack in stacks
        ]
        return self.payload(
            intent,
            series,
            categories=[labels.get(str(x), str(x)) for x in categories],
            stacked_type=stacked_type,
            horizontal=bool(intent.get("horizontal", False)),
        )

    @staticmethod
    def _long_pairs(intent: ResolvedIntent, table: DataTable):
        weight_var = intent.get("weight_var")
        x_vars: Sequence[str] = intent.get("x_vars") or ()
        for row in table.rows:
            weight = row_weight(row, weight_var)
            if x_vars:
                for column in x_vars:
                    yield column, row.get(column), weight
            else:
                yield row.get(intent.get("x_var")), row.get(intent.get("stack_var")), weight


def _percent_within(
    cells: Dict[Tuple[Hashable, Hashable], float], categories: List[Hashable]
) -> Dict[Tuple[Hashable, Hashable], float]:
    totals: Dict[Hashable, float] = {x: 0.0 for x in categories}
    for (x, _), value in cells.items():
        totals[x] += value
    return {
        (x, stack): round(value * 100.0 / totals[x], 4) if totals[x] else 0.0
        for (x, stack), value in cells.items()
    }


__all__ = ["StackedBarRenderer"]
