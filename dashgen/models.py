"""Core data models shared across dashgen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .filters import FilterPredicate

KIND_VIZ = "viz"
KIND_TEXT = "text"
KIND_LAYOUT = "layout"
KIND_INPUT = "input"

ITEM_KINDS = (KIND_VIZ, KIND_TEXT, KIND_LAYOUT, KIND_INPUT)

# Options every chart type understands, on top of its renderer-specific ones.
COMMON_VIZ_OPTIONS = frozenset(
    {
        "type",
        "tabgroup",
        "title",
        "title_tabset",
        "filter",
        "data",
        "drop_na_vars",
        "weight_var",
        "text",
        "text_position",
        "icon",
        "height",
        "show_when",
    }
)


def freeze(params: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return a read-only view over a private copy of ``params``."""
    return MappingProxyType(dict(params))


@dataclass(frozen=True)
class RawIntent:
    """One builder call's worth of input, captured with its defaults stack."""

    kind: str
    params: Mapping[str, Any]
    frames: Tuple[Mapping[str, Any], ...] = ()
    vectorized: bool = False
    tabgroup_template: Optional[str] = None
    title_template: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in ITEM_KINDS:
            raise ValueError(f"Unknown item kind '{self.kind}'")
        object.__setattr__(self, "params", freeze(self.params))
        object.__setattr__(self, "frames", tuple(freeze(frame) for frame in self.frames))

    @property
    def tabgroup(self) -> Any:
        return self.params.get("tabgroup")

    def with_outer_frames(self, frames: Tuple[Mapping[str, Any], ...]) -> "RawIntent":
        """Return a copy whose stack is prefixed by ``frames`` (outermost first)."""
        if not frames:
            return self
        return RawIntent(
            kind=self.kind,
            params=self.params,
            frames=tuple(frames) + self.frames,
            vectorized=self.vectorized,
            tabgroup_template=self.tabgroup_template,
            title_template=self.title_template,
        )


@dataclass(frozen=True)
class ResolvedIntent:
    """A fully resolved, scalar intent ready for tree building and rendering."""

    kind: str
    params: Mapping[str, Any]
    path: Tuple[str, ...] = ()
    filter: Optional[FilterPredicate] = None
    index: int = 0
    origin: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", freeze(self.params))
        object.__setattr__(self, "path", tuple(self.path))

    @property
    def type(self) -> Optional[str]:
        return self.params.get("type")

    @property
    def title(self) -> Optional[str]:
        return self.params.get("title")

    @property
    def data_source(self) -> Optional[str]:
        if self.filter is not None and self.filter.source:
            return self.filter.source
        return self.params.get("data")

    def get(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)


@dataclass
class ChartPayload:
    """Renderer output: shaped data plus the options needed to draw it."""

    kind: str
    title: Optional[str]
    series: list
    options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "series": self.series,
            "options": self.options,
        }


__all__ = [
    "COMMON_VIZ_OPTIONS",
    "ChartPayload",
    "ITEM_KINDS",
    "KIND_INPUT",
    "KIND_LAYOUT",
    "KIND_TEXT",
    "KIND_VIZ",
    "RawIntent",
    "ResolvedIntent",
    "freeze",
]
