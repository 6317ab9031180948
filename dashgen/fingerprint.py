"""Content fingerprints for incremental generation."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Sequence

from .filters import FilterPredicate, ShowWhen
from .models import ResolvedIntent

_FINGERPRINT_VERSION = 1

NONDETERMINISTIC_FIELDS: FrozenSet[str] = frozenset(
    {"generated_at", "timestamp", "build_id", "chart_id", "random_seed_id"}
)


def canonicalize(value: Any, exclude: FrozenSet[str] = NONDETERMINISTIC_FIELDS) -> Any:
    """Convert ``value`` into plain JSON types, dropping excluded keys at any depth."""
    if isinstance(value, (FilterPredicate, ShowWhen)):
        return canonicalize(value.to_dict(), exclude)
    if isinstance(value, ResolvedIntent):
        return serialize_intent(value, exclude)
    if isinstance(value, Mapping):
        return {
            str(key): canonicalize(item, exclude)
            for key, item in value.items()
            if str(key) not in exclude
        }
    if isinstance(value, (list, tuple)):
        return [canonicalize(item, exclude) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((canonicalize(item, exclude) for item in value), key=repr)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def serialize_intent(
    intent: ResolvedIntent, exclude: FrozenSet[str] = NONDETERMINISTIC_FIELDS
) -> Dict[str, Any]:
    return {
        "kind": intent.kind,
        "path": list(intent.path),
        "params": canonicalize(intent.params, exclude),
        "filter": canonicalize(intent.filter, exclude) if intent.filter is not None else None,
    }


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_fingerprint(
    data_signatures: Mapping[str, str],
    items: Sequence[ResolvedIntent],
    styling: Optional[Mapping[str, Any]] = None,
    *,
    exclude: Iterable[str] = (),
) -> str:
    """Return the SHA-256 hex digest of a unit's canonical content.

    ``data_signatures`` maps each data source name to its content signature;
    ``styling`` carries any page-level presentation values (theme, labels,
    intro text) that change the emitted artifact.
    """
    excluded = NONDETERMINISTIC_FIELDS | frozenset(exclude)
    payload = {
        "version": _FINGERPRINT_VERSION,
        "data": {name: data_signatures[name] for name in sorted(data_signatures)},
        "items": [serialize_intent(intent, excluded) for intent in items],
        "styling": canonicalize(dict(styling or {}), excluded),
    }
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


__all__ = [
    "NONDETERMINISTIC_FIELDS",
    "canonical_json",
    "canonicalize",
    "compute_fingerprint",
    "serialize_intent",
]
