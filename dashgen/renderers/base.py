"""Base class and shared data-shaping helpers for chart renderers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, FrozenSet, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..data import DataTable, is_missing
from ..errors import ConfigurationError, DataBindingError, RequiredParameterMissing
from ..models import ChartPayload, ResolvedIntent

_NUMBER = (int, float)


class Renderer(ABC):
    """Contract for chart recipes that turn a resolved intent into a payload."""

    kind: str = ""
    required: Tuple[str, ...] = ()
    options: FrozenSet[str] = frozenset()
    # Options taking a whole list; vectorized intents broadcast them unchanged.
    list_options: FrozenSet[str] = frozenset()
    example: Optional[str] = None

    def validate(self, intent: ResolvedIntent) -> None:
        """Raise ``RequiredParameterMissing`` for the first unset required option."""
        for param in self.required:
            if is_missing(intent.get(param)):
                raise RequiredParameterMissing(
                    param, self.kind, path=intent.path, example=self.example
                )

    def columns(self, intent: ResolvedIntent) -> List[str]:
        """Columns this intent reads; used for NA dropping and binding checks."""
        names = [intent.get(param) for param in self.required]
        weight = intent.get("weight_var")
        if weight:
            names.append(weight)
        return [name for name in names if isinstance(name, str)]

    @abstractmethod
    def render(self, intent: ResolvedIntent, table: DataTable) -> ChartPayload:
        """Shape ``table`` (already filtered for ``intent``) into a chart payload."""

    def payload(self, intent: ResolvedIntent, series: list, **options: Any) -> ChartPayload:
        base = {
            name: intent.get(name)
            for name in ("subtitle", "x_label", "y_label", "color_palette", "height", "icon")
            if intent.get(name) is not None
        }
        base.update(options)
        return ChartPayload(kind=self.kind, title=intent.title, series=series, options=base)


def row_weight(row: Mapping[str, Any], weight_var: Optional[str]) -> float:
    if not weight_var:
        return 1.0
    value = row.get(weight_var)
    if is_missing(value):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise DataBindingError(
            f"Weight column '{weight_var}' holds a non-numeric value {value!r}"
        ) from exc


def tally(
    rows: Iterable[Mapping[str, Any]],
    key: Callable[[Mapping[str, Any]], Optional[Hashable]],
    *,
    weight_var: Optional[str] = None,
) -> Dict[Hashable, float]:
    """Sum row weights per key in first-seen order; ``None`` keys are skipped."""
    totals: Dict[Hashable, float] = {}
    for row in rows:
        bucket = key(row)
        if bucket is None:
            continue
        totals[bucket] = totals.get(bucket, 0.0) + row_weight(row, weight_var)
    return totals


def category_key(
    column: str, *, include_na: bool = False, na_label: str = "(Missing)"
) -> Callable[[Mapping[str, Any]], Optional[Hashable]]:
    def _key(row: Mapping[str, Any]) -> Optional[Hashable]:
        value = row.get(column)
        if is_missing(value):
            return na_label if include_na else None
        return value

    return _key


def binned_key(
    column: str,
    breaks: Sequence[float],
    labels: Sequence[str],
    *,
    include_na: bool = False,
    na_label: str = "(Missing)",
) -> Callable[[Mapping[str, Any]], Optional[Hashable]]:
    def _key(row: Mapping[str, Any]) -> Optional[Hashable]:
        value = row.get(column)
        if is_missing(value):
            return na_label if include_na else None
        return bin_value(value, breaks, labels)

    return _key


def order_categories(values: Iterable[Hashable], order: Optional[Sequence[Any]] = None) -> List[Hashable]:
    """Explicit ``order`` first, then numbers ascending or labels as first seen."""
    if order is not None and (isinstance(order, (str, bytes)) or not isinstance(order, Sequence)):
        raise ConfigurationError(f"Category order must be a list of values, got {order!r}")
    seen: List[Hashable] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    if not order and seen and all(isinstance(value, _NUMBER) for value in seen):
        seen.sort()
    if not order:
        return seen
    leading = [value for value in order if value in seen]
    return leading + [value for value in seen if value not in leading]


def to_percent(totals: Mapping[Hashable, float]) -> Dict[Hashable, float]:
    grand = sum(totals.values())
    if not grand:
        return {key: 0.0 for key in totals}
    return {key: round(value * 100.0 / grand, 4) for key, value in totals.items()}


def equal_width_breaks(values: Sequence[float], bins: int) -> List[float]:
    if bins < 1:
        raise ConfigurationError(f"bins must be a positive integer, got {bins}")
    low, high = min(values), max(values)
    if low == high:
        return [low, high + 1]
    step = (high - low) / bins
    return [low + step * index for index in range(bins)] + [high]


def bin_labels_for(breaks: Sequence[float]) -> List[str]:
    return [f"{_fmt(breaks[i])}-{_fmt(breaks[i + 1])}" for i in range(len(breaks) - 1)]


def bin_value(value: Any, breaks: Sequence[float], labels: Sequence[str]) -> Optional[str]:
    """Place ``value`` in a right-closed interval; the first interval includes its lower bound."""
    if is_missing(value):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise DataBindingError(f"Cannot bin non-numeric value {value!r}") from exc
    if number < breaks[0] or number > breaks[-1]:
        return None
    for index in range(len(breaks) - 1):
        if number <= breaks[index + 1]:
            return labels[index]
    return None


def validate_breaks(
    breaks: Sequence[Any], labels: Optional[Sequence[Any]], *, kind: str
) -> Tuple[List[float], List[str]]:
    try:
        numeric = sorted(float(value) for value in breaks)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{kind}: bin breaks must be numeric") from exc
    if len(numeric) < 2:
        raise ConfigurationError(f"{kind}: at least two bin breaks are required")
    if labels is None:
        return numeric, bin_labels_for(numeric)
    if len(labels) != len(numeric) - 1:
        raise ConfigurationError(
            f"{kind}: expected {len(numeric) - 1} bin labels for {len(numeric)} breaks, got {len(labels)}"
        )
    return numeric, [str(label) for label in labels]


def _fmt(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else f"{number:g}"


__all__ = [
    "Renderer",
    "bin_labels_for",
    "bin_value",
    "binned_key",
    "category_key",
    "equal_width_breaks",
    "order_categories",
    "row_weight",
    "tally",
    "to_percent",
    "validate_breaks",
]
