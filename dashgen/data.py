"""Row-oriented data tables consumed by filters and renderers."""

from __future__ import annotations

import csv
import hashlib
import json
import math
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

from .errors import DataBindingError

DEFAULT_SOURCE = "data"


@dataclass(frozen=True)
class DataTable:
    """Immutable table of rows keyed by column name."""

    rows: Tuple[Mapping[str, Any], ...]
    columns: Tuple[str, ...] = ()
    name: str = DEFAULT_SOURCE

    @classmethod
    def from_records(
        cls, records: Iterable[Mapping[str, Any]], *, name: str = DEFAULT_SOURCE
    ) -> "DataTable":
        rows = tuple(dict(record) for record in records)
        columns: List[str] = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)
        return cls(rows=rows, columns=tuple(columns), name=name)

    @classmethod
    def from_csv(cls, path: Path, *, name: str | None = None) -> "DataTable":
        with path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle)
            records = [{key: _coerce_cell(value) for key, value in row.items()} for row in reader]
            columns = tuple(reader.fieldnames or ())
        table = cls.from_records(records, name=name or path.stem)
        if columns:
            return cls(rows=table.rows, columns=columns, name=table.name)
        return table

    @classmethod
    def from_json(cls, path: Path, *, name: str | None = None) -> "DataTable":
        payload = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(payload, list):
            raise ValueError(f"{path.name} must contain a list of records")
        return cls.from_records(payload, name=name or path.stem)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        return iter(self.rows)

    def has_column(self, column: str) -> bool:
        return column in self.columns

    def require_columns(self, columns: Iterable[str], *, context: str | None = None) -> None:
        """Raise ``DataBindingError`` for the first column this table lacks."""
        for column in columns:
            if column not in self.columns:
                raise DataBindingError(
                    f"Column '{column}' not found in data source '{self.name}'",
                    expression=context,
                )

    def column(self, column: str) -> List[Any]:
        self.require_columns([column])
        return [row.get(column) for row in self.rows]

    def select(self, mask: Sequence[bool]) -> "DataTable":
        if len(mask) != len(self.rows):
            raise ValueError("Row mask length does not match table length")
        kept = tuple(row for row, keep in zip(self.rows, mask) if keep)
        return DataTable(rows=kept, columns=self.columns, name=self.name)

    def drop_missing(self, columns: Iterable[str]) -> "DataTable":
        """Return a table without rows that are missing any of ``columns``."""
        wanted = [column for column in columns if column]
        self.require_columns(wanted)
        mask = [all(not is_missing(row.get(column)) for column in wanted) for row in self.rows]
        return self.select(mask)

    @cached_property
    def signature(self) -> str:
        """Stable content digest of the table (columns and rows)."""
        digest = hashlib.sha256()
        digest.update(json.dumps(list(self.columns)).encode("utf-8"))
        for row in self.rows:
            digest.update(b"\0")
            digest.update(json.dumps(row, sort_keys=True, default=str).encode("utf-8"))
        return digest.hexdigest()


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip() in {"", "NA"}:
        return True
    return False


def _coerce_cell(value: str | None) -> Any:
    if value is None:
        return None
    stripped = value.strip()
    if stripped in {"", "NA"}:
        return None
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        return float(stripped)
    except ValueError:
        return value


def load_table(path: Path, *, name: str | None = None) -> DataTable:
    """Load a CSV or JSON records file into a ``DataTable``."""
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return DataTable.from_csv(path, name=name)
    if suffix == ".json":
        return DataTable.from_json(path, name=name)
    raise ValueError(f"Unsupported data file type: {path.name}")


def as_tables(data: Mapping[str, Any] | DataTable | None) -> Dict[str, DataTable]:
    """Normalize a page's data argument into named tables."""
    if data is None:
        return {}
    if isinstance(data, DataTable):
        return {DEFAULT_SOURCE: data}
    tables: Dict[str, DataTable] = {}
    for name, value in data.items():
        if isinstance(value, DataTable):
            tables[name] = DataTable(rows=value.rows, columns=value.columns, name=name)
        elif isinstance(value, (str, Path)):
            tables[name] = load_table(Path(value), name=name)
        else:
            tables[name] = DataTable.from_records(value, name=name)
    return tables


__all__ = ["DEFAULT_SOURCE", "DataTable", "as_tables", "is_missing", "load_table"]
