"""Chart renderer plugins and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

from ..errors import ConfigurationError, unknown_option_message
from .bar import BarRenderer
from .base import Renderer
from .histogram import HistogramRenderer
from .stackedbar import StackedBarRenderer
from .timeline import TimelineRenderer

_ENTRY_POINT_GROUP = "dashgen.renderers"

_BUILTIN_FACTORIES: Dict[str, Callable[[], Renderer]] = {
    "bar": BarRenderer,
    "histogram": HistogramRenderer,
    "stackedbar": StackedBarRenderer,
    "timeline": TimelineRenderer,
}


class RendererRegistry:
    """Maps chart type names to renderer instances."""

    def __init__(self, renderers: Iterable[Renderer] = ()) -> None:
        self._renderers: Dict[str, Renderer] = {}
        for renderer in renderers:
            self.register(renderer)

    def register(self, renderer: Renderer) -> None:
        if not isinstance(renderer, Renderer):
            raise TypeError(f"Expected a Renderer instance, got {type(renderer).__name__}")
        if not renderer.kind:
            raise ValueError(f"{type(renderer).__name__} does not declare a kind")
        self._renderers[renderer.kind.lower()] = renderer

    @property
    def kinds(self) -> List[str]:
        return list(self._renderers)

    def __contains__(self, kind: object) -> bool:
        return isinstance(kind, str) and kind.lower() in self._renderers

    def get(self, kind: str) -> Renderer:
        renderer = self._renderers.get(str(kind).lower())
        if renderer is None:
            raise ConfigurationError(unknown_option_message("visualization type", str(kind), self.kinds))
        return renderer

    def options_for(self, kind: str) -> FrozenSet[str]:
        """Recognized options for ``kind``; raises ``ConfigurationError`` if unknown."""
        return self.get(kind).options

    def list_options_for(self, kind: str) -> FrozenSet[str]:
        """Options of ``kind`` that take a whole list value."""
        return self.get(kind).list_options


def discover_renderers(enabled: Sequence[str] | None = None) -> RendererRegistry:
    """Return a registry of built-in and entry-point renderers."""

    enabled_set: Optional[Set[str]] = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}

    registry = RendererRegistry()

    def _add(name: str, factory: Callable[[], Renderer]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in registry:
            return
        instance = factory()
        if not isinstance(instance, Renderer):
            raise TypeError(f"Renderer factory for '{name}' did not return a Renderer instance")
        registry.register(instance)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        name = entry.name
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - plugin import failure
            raise RuntimeError(f"Failed to load renderer entry point '{name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Renderer:
            return _coerce_renderer(obj)

        _add(name, _factory)

    if enabled_set:
        missing = enabled_set - {kind.lower() for kind in registry.kinds}
        if missing:
            raise ValueError(f"Unknown renderers requested: {', '.join(sorted(missing))}")

    return registry


def _coerce_renderer(obj: object) -> Renderer:
    if isinstance(obj, Renderer):
        return obj
    if isinstance(obj, type) and issubclass(obj, Renderer):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Renderer):
            return instance
    raise TypeError("Renderer entry point must be a Renderer subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "BarRenderer",
    "HistogramRenderer",
    "Renderer",
    "RendererRegistry",
    "StackedBarRenderer",
    "TimelineRenderer",
    "discover_renderers",
]
