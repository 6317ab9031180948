"""Persistent build manifest for incremental generation."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..errors import CacheIOError

_MANIFEST_VERSION = 1

MANIFEST_DIRNAME = ".dashgen"
MANIFEST_FILENAME = "manifest.json"


def default_manifest_path(output_dir: Path) -> Path:
    return output_dir / MANIFEST_DIRNAME / MANIFEST_FILENAME


@dataclass(frozen=True)
class ManifestEntry:
    """Fingerprint and artifact recorded for one output unit."""

    fingerprint: str
    artifact: str
    updated_at: str = ""


class BuildManifest:
    """Unit fingerprints keyed by unit id, persisted as JSON.

    Every mutation rewrites the file atomically (temporary file plus
    ``os.replace``) while holding a lock, so worker threads can record units
    as they finish.
    """

    def __init__(self, path: Path, entries: Optional[Dict[str, ManifestEntry]] = None) -> None:
        self._path = path
        self._entries: Dict[str, ManifestEntry] = dict(entries or {})
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Path) -> "BuildManifest":
        """Read ``path``; a missing file yields an empty manifest.

        Raises ``CacheIOError`` when the file exists but cannot be read or is
        not a valid manifest.
        """
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return cls(path)
        except OSError as exc:
            raise CacheIOError(f"Unable to read build manifest {path}: {exc}") from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CacheIOError(f"Build manifest {path} is corrupt: {exc}") from exc
        if not isinstance(data, dict) or data.get("version") != _MANIFEST_VERSION:
            raise CacheIOError(f"Build manifest {path} has an unsupported format")
        units = data.get("units")
        if not isinstance(units, dict):
            raise CacheIOError(f"Build manifest {path} has no 'units' mapping")
        entries: Dict[str, ManifestEntry] = {}
        for unit_id, payload in units.items():
            if (
                not isinstance(payload, dict)
                or not isinstance(payload.get("fingerprint"), str)
                or not isinstance(payload.get("artifact"), str)
            ):
                raise CacheIOError(f"Build manifest {path} has a malformed entry for '{unit_id}'")
            entries[unit_id] = ManifestEntry(
                fingerprint=payload["fingerprint"],
                artifact=payload["artifact"],
                updated_at=str(payload.get("updated_at", "")),
            )
        return cls(path, entries)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def units(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, unit_id: str) -> Optional[ManifestEntry]:
        return self._entries.get(unit_id)

    def is_fresh(self, unit_id: str, fingerprint: str, root: Path) -> bool:
        """True when ``unit_id`` was recorded with ``fingerprint`` and its artifact exists."""
        entry = self._entries.get(unit_id)
        if entry is None or entry.fingerprint != fingerprint:
            return False
        return (root / entry.artifact).exists()

    def upsert(self, unit_id: str, *, fingerprint: str, artifact: str) -> ManifestEntry:
        entry = ManifestEntry(
            fingerprint=fingerprint,
            artifact=artifact,
            updated_at=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        )
        with self._lock:
            self._entries[unit_id] = entry
            self._write()
        return entry

    def prune(self, keep: Iterable[str]) -> Dict[str, ManifestEntry]:
        """Drop entries not in ``keep`` and return them by unit id."""
        wanted = set(keep)
        with self._lock:
            removed = [unit_id for unit_id in self._entries if unit_id not in wanted]
            if not removed:
                return {}
            dropped = {unit_id: self._entries.pop(unit_id) for unit_id in removed}
            self._write()
        return dropped

    def to_dict(self) -> Dict[str, object]:
        return {
            "version": _MANIFEST_VERSION,
            "units": {unit_id: asdict(entry) for unit_id, entry in self._entries.items()},
        }

    # ------------------------------------------------------------------
    # Internal helpers

    def _write(self) -> None:
        payload = json.dumps(self.to_dict(), indent=2, sort_keys=True)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                handle.write(payload)
                temp_name = handle.name
            os.replace(temp_name, self._path)
        except OSError as exc:
            raise CacheIOError(f"Unable to write build manifest {self._path}: {exc}") from exc


__all__ = ["BuildManifest", "ManifestEntry", "default_manifest_path"]
