"""Error taxonomy shared by the compiler core, renderers and generator."""

from __future__ import annotations

import difflib
from typing import Iterable, Optional, Sequence


class DashgenError(Exception):
    """Base class for all dashgen errors."""


class ConfigurationError(DashgenError, ValueError):
    """Raised when an intent or pass is configured inconsistently.

    Covers vector arity mismatches, unknown renderer types, template
    placeholders that name missing parameters and malformed tabgroups.
    """


class RequiredParameterMissing(DashgenError):
    """Raised by a renderer when a parameter essential to its kind is unset."""

    def __init__(
        self,
        param: str,
        kind: str,
        *,
        path: Sequence[str] = (),
        example: str | None = None,
    ) -> None:
        self.param = param
        self.kind = kind
        self.path = tuple(path)
        self.example = example
        location = "/".join(self.path) or "(root)"
        message = f"'{param}' parameter is required for {kind} charts (at {location})"
        if example:
            message += f"\nℹ Example: {example}"
        super().__init__(message)


class DataBindingError(DashgenError, LookupError):
    """Raised when a filter or renderer references a missing data source or column."""

    def __init__(self, message: str, *, expression: str | None = None) -> None:
        self.expression = expression
        if expression:
            message = f"{message} (in expression: {expression})"
        super().__init__(message)


class CacheIOError(DashgenError, OSError):
    """Raised when the build manifest cannot be read or written."""


class BackendError(DashgenError, RuntimeError):
    """Raised when the document backend fails for one output unit."""


def suggest_alternative(value: str, options: Iterable[str]) -> Optional[str]:
    """Return the closest option to ``value`` when it looks like a typo."""
    candidates = list(options)
    if not value or not candidates:
        return None
    lowered = {option.lower(): option for option in candidates}
    matches = difflib.get_close_matches(value.lower(), list(lowered), n=1, cutoff=0.75)
    if not matches:
        return None
    return lowered[matches[0]]


def unknown_option_message(param: str, value: str, options: Sequence[str]) -> str:
    """Format an "unknown value" message with a suggestion and the available values."""
    message = f"Unknown {param} '{value}'"
    suggestion = suggest_alternative(value, options)
    if suggestion is not None:
        message += f"\nℹ Did you mean '{suggestion}'?"
    shown = ", ".join(options[:6])
    if len(options) > 6:
        shown += ", ..."
    message += f"\nℹ Available {param}s: {shown}"
    return message


__all__ = [
    "BackendError",
    "CacheIOError",
    "ConfigurationError",
    "DashgenError",
    "DataBindingError",
    "RequiredParameterMissing",
    "suggest_alternative",
    "unknown_option_message",
]
