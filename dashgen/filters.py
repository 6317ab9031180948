"""Row filter predicates evaluated lazily against named data sources.

A filter is written as a Python-style boolean expression over column names,
for example ``"wave == 1 and age >= 18"`` or ``"region in ['north', 'east']"``.
The expression is parsed once into an ``ast`` tree and interpreted per row by a
small evaluator that only understands comparisons, boolean logic, arithmetic,
literals and the ``isna`` / ``notna`` helpers. Nothing is ever passed to ``eval``.
"""

from __future__ import annotations

import ast
import operator
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional

from .data import DEFAULT_SOURCE, DataTable, is_missing
from .errors import ConfigurationError, DataBindingError

_COMPARE_OPS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_BINARY_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.BitAnd: lambda left, right: bool(left) and bool(right),
    ast.BitOr: lambda left, right: bool(left) or bool(right),
}

_FUNCTIONS: Dict[str, Callable[[Any], bool]] = {
    "isna": is_missing,
    "notna": lambda value: not is_missing(value),
}

_ALLOWED_NODES = (
    ast.Expression,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.Compare,
    ast.BinOp,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.List,
    ast.Tuple,
    ast.Set,
    ast.Call,
    *_COMPARE_OPS,
    *_BINARY_OPS,
)


def parse_expression(expression: str) -> ast.Expression:
    """Parse and validate a predicate expression."""
    if not isinstance(expression, str) or not expression.strip():
        raise ConfigurationError("Filter expression must be a non-empty string")
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise ConfigurationError(f"Invalid filter expression '{expression}': {exc.msg}") from exc
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise ConfigurationError(
                f"Unsupported syntax '{type(node).__name__}' in filter expression '{expression}'"
            )
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS:
                raise ConfigurationError(
                    f"Only {', '.join(sorted(_FUNCTIONS))} may be called in filter expression '{expression}'"
                )
            if len(node.args) != 1 or node.keywords:
                raise ConfigurationError(f"{node.func.id}() takes exactly one argument")
    return tree


def _referenced_names(tree: ast.Expression) -> FrozenSet[str]:
    called = {
        id(node.func) for node in ast.walk(tree) if isinstance(node, ast.Call)
    }
    return frozenset(
        node.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Name) and id(node) not in called
    )


@dataclass(frozen=True)
class FilterPredicate:
    """Generation-time row filter bound to a named data source."""

    expression: str
    source: Optional[str] = None
    _tree: ast.Expression = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "expression", self.expression.strip())
        object.__setattr__(self, "_tree", parse_expression(self.expression))

    @property
    def columns(self) -> FrozenSet[str]:
        return _referenced_names(self._tree)

    def bind(self, source: Optional[str]) -> "FilterPredicate":
        """Return a predicate bound to ``source`` unless already bound."""
        if self.source is not None or source is None:
            return self
        return replace(self, source=source)

    def resolve_table(self, tables: Mapping[str, DataTable]) -> DataTable:
        name = self.source or DEFAULT_SOURCE
        table = tables.get(name)
        if table is None:
            available = ", ".join(sorted(tables)) or "none"
            raise DataBindingError(
                f"Data source '{name}' not found (available: {available})",
                expression=self.expression,
            )
        return table

    def mask(self, table: DataTable) -> List[bool]:
        """Evaluate the predicate against every row of ``table``."""
        table.require_columns(sorted(self.columns), context=self.expression)
        body = self._tree.body
        return [bool(_evaluate(body, row)) for row in table.rows]

    def apply(self, tables: Mapping[str, DataTable]) -> DataTable:
        table = self.resolve_table(tables)
        return table.select(self.mask(table))

    def to_dict(self) -> Dict[str, Any]:
        return {"expression": self.expression, "source": self.source}

    def __str__(self) -> str:
        return self.expression


@dataclass(frozen=True)
class ShowWhen:
    """Client-side visibility condition over input controls.

    Unlike ``FilterPredicate`` it is never evaluated during generation; the
    expression text is emitted into the page for the rendered artifact to use.
    """

    expression: str
    _tree: ast.Expression = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "expression", self.expression.strip())
        object.__setattr__(self, "_tree", parse_expression(self.expression))

    @property
    def inputs(self) -> FrozenSet[str]:
        return _referenced_names(self._tree)

    def to_dict(self) -> Dict[str, Any]:
        return {"show_when": self.expression}

    def __str__(self) -> str:
        return self.expression


def coerce_filter(value: Any) -> Optional[FilterPredicate]:
    if value is None or isinstance(value, FilterPredicate):
        return value
    if isinstance(value, str):
        return FilterPredicate(value)
    raise ConfigurationError(
        "filter must be an expression string (e.g. \"wave == 1\") or a FilterPredicate"
    )


def coerce_show_when(value: Any) -> Optional[ShowWhen]:
    if value is None or isinstance(value, ShowWhen):
        return value
    if isinstance(value, str):
        return ShowWhen(value)
    raise ConfigurationError("show_when must be an expression string or a ShowWhen")


def _evaluate(node: ast.AST, row: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.Name):
        return row.get(node.id)
    if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
        return [_evaluate(element, row) for element in node.elts]
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            return all(_evaluate(value, row) for value in node.values)
        return any(_evaluate(value, row) for value in node.values)
    if isinstance(node, ast.UnaryOp):
        operand = _evaluate(node.operand, row)
        if isinstance(node.op, ast.Not):
            return not operand
        if operand is None:
            return None
        return -operand if isinstance(node.op, ast.USub) else +operand
    if isinstance(node, ast.Call):
        return _FUNCTIONS[node.func.id](_evaluate(node.args[0], row))  # type: ignore[attr-defined]
    if isinstance(node, ast.BinOp):
        left = _evaluate(node.left, row)
        right = _evaluate(node.right, row)
        try:
            return _BINARY_OPS[type(node.op)](left, right)
        except (TypeError, ZeroDivisionError):
            return None
    if isinstance(node, ast.Compare):
        left = _evaluate(node.left, row)
        for op, comparator in zip(node.ops, node.comparators):
            right = _evaluate(comparator, row)
            try:
                outcome = _COMPARE_OPS[type(op)](left, right)
            except TypeError:
                # Missing values never satisfy an ordering comparison.
                return False
            if not outcome:
                return False
            left = right
        return True
    raise ConfigurationError(f"Unsupported expression node {type(node).__name__}")


__all__ = [
    "FilterPredicate",
    "ShowWhen",
    "coerce_filter",
    "coerce_show_when",
    "parse_expression",
]
