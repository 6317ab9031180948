"""Fail-safe stubs emitted in place of content that could not be generated."""

from __future__ import annotations

from typing import Optional

from .models import ResolvedIntent
from .tree import describe_intent

_REASON_LIMIT = 200


def build_intent_stub(intent: Optional[ResolvedIntent], reason: str) -> str:
    """Return a warning callout standing in for one failed item."""
    cleaned = _format_reason(reason) or "unknown error"
    heading = describe_intent(intent) if intent is not None else "Content item"
    return (
        f'::: {{.callout-warning title="{_escape_attr(heading)} could not be generated"}}\n'
        f"{cleaned}\n\n"
        "_Run `dashgen -v generate` for diagnostics; the page is regenerated on the next run._\n"
        ":::"
    )


def build_skipped_stub(origin: int, reason: str, title: Optional[str] = None) -> str:
    """Return a callout for a raw item that never resolved into an intent."""
    label = f"Item {origin + 1}"
    if title:
        label += f" ({title})"
    cleaned = _format_reason(reason) or "invalid configuration"
    return (
        f'::: {{.callout-warning title="{_escape_attr(label)} was skipped"}}\n'
        f"{cleaned}\n"
        ":::"
    )


def _escape_attr(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _format_reason(reason: str | None) -> str | None:
    if not reason:
        return None
    cleaned = " ".join(reason.strip().split())
    if not cleaned:
        return None
    return cleaned[:_REASON_LIMIT] + ("…" if len(cleaned) > _REASON_LIMIT else "")


__all__ = ["build_intent_stub", "build_skipped_stub"]
