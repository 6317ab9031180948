"""Immutable content collections and the fluent builder API."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import reduce
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Collection,
    Dict,
    FrozenSet,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .data import DEFAULT_SOURCE
from .errors import ConfigurationError, DashgenError
from .filters import coerce_filter, coerce_show_when
from .models import (
    COMMON_VIZ_OPTIONS,
    KIND_INPUT,
    KIND_LAYOUT,
    KIND_TEXT,
    KIND_VIZ,
    RawIntent,
    ResolvedIntent,
)
from .spec.expander import expand_params
from .spec.paths import parse_tabgroup
from .spec.resolver import DefaultsFrame, resolve_params, warn_unrecognized
from .tree import TreeNode, build_tree, render_tree_text

OptionsLookup = Callable[[str], Collection[str]]

CALLOUT_TYPES = ("note", "tip", "warning", "caution", "important")
INPUT_TYPES = ("select", "checkbox", "radio", "slider", "switch", "text")
BADGE_COLORS = ("primary", "secondary", "success", "info", "warning", "danger")
DEFAULT_VALUE_BOX_COLOR = "#2c3e50"
_VALUE_BOX_KEYS = (
    "title",
    "value",
    "logo_url",
    "logo_text",
    "bg_color",
    "description",
    "description_title",
)


@dataclass(frozen=True)
class IntentError:
    """A resolution failure for one raw intent; the intent is skipped."""

    origin: int
    kind: str
    error: DashgenError
    title: Optional[str] = None

    @property
    def message(self) -> str:
        return str(self.error)

    def __str__(self) -> str:
        label = f"item {self.origin + 1}"
        if self.title:
            label += f" ('{self.title}')"
        return f"{label}: {self.message}"


@dataclass(frozen=True)
class ContentCollection:
    """An ordered, immutable list of raw intents plus builder state.

    Every builder method returns a new collection. ``defaults`` and the
    ``with_defaults`` scopes are captured by each visualization when it is
    added, so later changes never reach items already in the collection.
    """

    items: Tuple[RawIntent, ...] = ()
    defaults: Mapping[str, Any] = field(default_factory=dict)
    scopes: Tuple[DefaultsFrame, ...] = ()
    labels: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "defaults", MappingProxyType(dict(self.defaults)))
        object.__setattr__(
            self, "scopes", tuple(MappingProxyType(dict(scope)) for scope in self.scopes)
        )
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))

    # ------------------------------------------------------------------
    # Container protocol

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[RawIntent]:
        return iter(self.items)

    def __add__(self, other: "ContentCollection") -> "ContentCollection":
        if not isinstance(other, ContentCollection):
            return NotImplemented
        return ContentCollection(
            items=self.items + other.items,
            defaults={**self.defaults, **other.defaults},
            scopes=self.scopes + other.scopes,
            labels={**self.labels, **other.labels},
        )

    def __repr__(self) -> str:
        kinds: Dict[str, int] = {}
        for item in self.items:
            kinds[item.kind] = kinds.get(item.kind, 0) + 1
        summary = ", ".join(f"{count} {kind}" for kind, count in kinds.items()) or "empty"
        return f"ContentCollection({summary})"

    # ------------------------------------------------------------------
    # Builders

    def add_viz(self, type: Optional[str] = None, **params: Any) -> "ContentCollection":
        """Append one visualization. ``tabgroup`` may be a path string or segments."""
        if type is not None:
            params["type"] = type
        if "filter" in params:
            params["filter"] = coerce_filter(params["filter"])
        if "show_when" in params:
            params["show_when"] = coerce_show_when(params["show_when"])
        return self._append(RawIntent(kind=KIND_VIZ, params=params, frames=self._frames()))

    def add_vizzes(
        self,
        type: Optional[str] = None,
        *,
        tabgroup_template: Optional[str] = None,
        title_template: Optional[str] = None,
        **params: Any,
    ) -> "ContentCollection":
        """Append a vectorized visualization.

        Any list-valued parameter is zipped across N visualizations; scalars are
        shared. Arity is checked when the collection is resolved.
        """
        if type is not None:
            params["type"] = type
        if "filter" in params:
            params["filter"] = _map_vector(params["filter"], coerce_filter)
        if "show_when" in params:
            params["show_when"] = _map_vector(params["show_when"], coerce_show_when)
        intent = RawIntent(
            kind=KIND_VIZ,
            params=params,
            frames=self._frames(),
            vectorized=True,
            tabgroup_template=tabgroup_template,
            title_template=title_template,
        )
        return self._append(intent)

    def add_text(self, text: str, *, tabgroup: Any = None, **params: Any) -> "ContentCollection":
        params.update(text=text, tabgroup=tabgroup)
        return self._append_block(KIND_TEXT, params)

    def add_callout(
        self,
        text: str,
        *,
        type: str = "note",
        title: Optional[str] = None,
        tabgroup: Any = None,
        **params: Any,
    ) -> "ContentCollection":
        if type not in CALLOUT_TYPES:
            raise ConfigurationError(
                f"Unknown callout type '{type}' (expected one of: {', '.join(CALLOUT_TYPES)})"
            )
        params.update(text=text, type=type, title=title, tabgroup=tabgroup)
        return self._append_block(KIND_TEXT, params)

    def add_divider(self, *, tabgroup: Any = None) -> "ContentCollection":
        return self._append_block(KIND_LAYOUT, {"type": "divider", "tabgroup": tabgroup})

    def add_card(
        self,
        text: str,
        *,
        title: Optional[str] = None,
        image: Optional[str] = None,
        tabgroup: Any = None,
        **params: Any,
    ) -> "ContentCollection":
        params.update(type="card", text=text, title=title, image=image, tabgroup=tabgroup)
        return self._append_block(KIND_LAYOUT, params)

    def add_image(
        self,
        src: str,
        *,
        alt: Optional[str] = None,
        caption: Optional[str] = None,
        width: Optional[str] = None,
        tabgroup: Any = None,
    ) -> "ContentCollection":
        params = {
            "type": "image",
            "src": src,
            "alt": alt,
            "caption": caption,
            "width": width,
            "tabgroup": tabgroup,
        }
        return self._append_block(KIND_LAYOUT, params)

    def add_input(
        self,
        input_id: str,
        *,
        filter_var: str,
        options: Sequence[Any] = (),
        label: Optional[str] = None,
        type: str = "select",
        default: Any = None,
        tabgroup: Any = None,
        **params: Any,
    ) -> "ContentCollection":
        """Append an interactive control filtering rendered charts client side."""
        if not input_id or not str(input_id).isidentifier():
            raise ConfigurationError(f"Input id '{input_id}' must be a valid identifier")
        if type not in INPUT_TYPES:
            raise ConfigurationError(
                f"Unknown input type '{type}' (expected one of: {', '.join(INPUT_TYPES)})"
            )
        params.update(
            type=type,
            input_id=input_id,
            filter_var=filter_var,
            options=list(options),
            label=label or input_id,
            default=default,
            tabgroup=tabgroup,
        )
        return self._append_block(KIND_INPUT, params)

    def add_code(
        self,
        code: str,
        *,
        language: str = "python",
        caption: Optional[str] = None,
        filename: Optional[str] = None,
        tabgroup: Any = None,
    ) -> "ContentCollection":
        params = {
            "type": "code",
            "code": code,
            "language": language,
            "caption": caption,
            "filename": filename,
            "tabgroup": tabgroup,
        }
        return self._append_block(KIND_TEXT, params)

    def add_html(self, html: str, *, tabgroup: Any = None) -> "ContentCollection":
        """Append raw HTML passed through to the page unchanged."""
        return self._append_block(KIND_TEXT, {"type": "html", "html": html, "tabgroup": tabgroup})

    def add_quote(
        self,
        quote: str,
        *,
        attribution: Optional[str] = None,
        cite: Optional[str] = None,
        tabgroup: Any = None,
    ) -> "ContentCollection":
        params = {
            "type": "quote",
            "text": quote,
            "attribution": attribution,
            "cite": cite,
            "tabgroup": tabgroup,
        }
        return self._append_block(KIND_TEXT, params)

    def add_spacer(self, height: str = "2rem", *, tabgroup: Any = None) -> "ContentCollection":
        return self._append_block(KIND_LAYOUT, {"type": "spacer", "height": height, "tabgroup": tabgroup})

    def add_video(
        self,
        src: str,
        *,
        caption: Optional[str] = None,
        width: Optional[str] = None,
        height: Optional[str] = None,
        tabgroup: Any = None,
    ) -> "ContentCollection":
        """Append a video; YouTube and Vimeo links become Quarto video shortcodes."""
        params = {
            "type": "video",
            "src": src,
            "caption": caption,
            "width": width,
            "height": height,
            "tabgroup": tabgroup,
        }
        return self._append_block(KIND_LAYOUT, params)

    def add_iframe(
        self,
        src: str,
        *,
        height: str = "500px",
        width: str = "100%",
        tabgroup: Any = None,
    ) -> "ContentCollection":
        params = {"type": "iframe", "src": src, "height": height, "width": width, "tabgroup": tabgroup}
        return self._append_block(KIND_LAYOUT, params)

    def add_accordion(
        self, title: str, text: str, *, open: bool = False, tabgroup: Any = None
    ) -> "ContentCollection":
        params = {"type": "accordion", "title": title, "text": text, "open": bool(open), "tabgroup": tabgroup}
        return self._append_block(KIND_LAYOUT, params)

    def add_badge(self, text: str, *, color: str = "primary", tabgroup: Any = None) -> "ContentCollection":
        if color not in BADGE_COLORS:
            raise ConfigurationError(
                f"Unknown badge color '{color}' (expected one of: {', '.join(BADGE_COLORS)})"
            )
        return self._append_block(
            KIND_LAYOUT, {"type": "badge", "text": text, "color": color, "tabgroup": tabgroup}
        )

    def add_metric(
        self,
        value: Any,
        title: str,
        *,
        icon: Optional[str] = None,
        color: Optional[str] = None,
        subtitle: Optional[str] = None,
        tabgroup: Any = None,
    ) -> "ContentCollection":
        params = {
            "type": "metric",
            "value": value,
            "title": title,
            "icon": icon,
            "color": color,
            "subtitle": subtitle,
            "tabgroup": tabgroup,
        }
        return self._append_block(KIND_LAYOUT, params)

    def add_value_box(
        self,
        title: str,
        value: Any,
        *,
        logo_url: Optional[str] = None,
        logo_text: Optional[str] = None,
        bg_color: str = DEFAULT_VALUE_BOX_COLOR,
        description: Optional[str] = None,
        description_title: str = "About this source",
        tabgroup: Any = None,
    ) -> "ContentCollection":
        box = _value_box(
            {
                "title": title,
                "value": value,
                "logo_url": logo_url,
                "logo_text": logo_text,
                "bg_color": bg_color,
                "description": description,
                "description_title": description_title,
            }
        )
        return self._append_block(KIND_LAYOUT, {"type": "value_box", **box, "tabgroup": tabgroup})

    def add_value_box_row(
        self, *boxes: Mapping[str, Any], tabgroup: Any = None
    ) -> "ContentCollection":
        """Append value boxes laid out side by side.

        Each box is a mapping with ``title`` and ``value`` plus the optional
        keyword arguments of ``add_value_box``.
        """
        if not boxes:
            raise ConfigurationError("add_value_box_row() needs at least one box")
        row = [_value_box(box) for box in boxes]
        return self._append_block(KIND_LAYOUT, {"type": "value_box_row", "boxes": row, "tabgroup": tabgroup})

    def with_defaults(self, **params: Any) -> "ContentCollection":
        """Return a collection whose later visualizations inherit ``params``."""
        return ContentCollection(
            items=self.items,
            defaults=self.defaults,
            scopes=self.scopes + (params,),
            labels=self.labels,
        )

    def set_tabgroup_labels(
        self, labels: Optional[Mapping[str, str]] = None, **named: str
    ) -> "ContentCollection":
        """Attach display labels keyed by path segment or full path."""
        merged = dict(self.labels)
        merged.update(labels or {})
        merged.update(named)
        return ContentCollection(
            items=self.items, defaults=self.defaults, scopes=self.scopes, labels=merged
        )

    # ------------------------------------------------------------------
    # Resolution

    def resolve(
        self,
        outer_frames: Sequence[DefaultsFrame] = (),
        *,
        options_for: Optional[OptionsLookup] = None,
        list_options_for: Optional[OptionsLookup] = None,
    ) -> Tuple[List[ResolvedIntent], List[IntentError]]:
        """Resolve every raw intent, collecting per-intent errors.

        ``outer_frames`` are page and dashboard defaults, outermost first.
        ``options_for`` maps a chart type to its recognized options and raises
        ``ConfigurationError`` for unknown types. ``list_options_for`` names the
        options of a chart type that vectorized items broadcast whole.
        """
        frames = tuple(frame for frame in outer_frames if frame)
        resolved: List[ResolvedIntent] = []
        errors: List[IntentError] = []
        for origin, raw in enumerate(self.items):
            raw = raw.with_outer_frames(frames)
            try:
                produced = _resolve_raw(
                    raw, origin, len(resolved), options_for, list_options_for
                )
            except DashgenError as exc:
                title = raw.params.get("title")
                errors.append(
                    IntentError(
                        origin=origin,
                        kind=raw.kind,
                        error=exc,
                        title=title if isinstance(title, str) else None,
                    )
                )
                continue
            resolved.extend(produced)
        return resolved, errors

    def build_tree(
        self,
        outer_frames: Sequence[DefaultsFrame] = (),
        *,
        options_for: Optional[OptionsLookup] = None,
        list_options_for: Optional[OptionsLookup] = None,
    ) -> Tuple[TreeNode, List[IntentError]]:
        resolved, errors = self.resolve(
            outer_frames, options_for=options_for, list_options_for=list_options_for
        )
        return build_tree(resolved), errors

    def tree_text(self) -> str:
        root, errors = self.build_tree()
        text = render_tree_text(root, self.labels)
        if errors:
            text += "\n" + "\n".join(f"✖ {error}" for error in errors)
        return text

    # ------------------------------------------------------------------
    # Internal helpers

    def _frames(self) -> Tuple[DefaultsFrame, ...]:
        frames: Tuple[DefaultsFrame, ...] = ()
        if self.defaults:
            frames += (self.defaults,)
        return frames + tuple(scope for scope in self.scopes if scope)

    def _append(self, intent: RawIntent) -> "ContentCollection":
        return ContentCollection(
            items=self.items + (intent,),
            defaults=self.defaults,
            scopes=self.scopes,
            labels=self.labels,
        )

    def _append_block(self, kind: str, params: Dict[str, Any]) -> "ContentCollection":
        if "show_when" in params:
            params["show_when"] = coerce_show_when(params["show_when"])
        cleaned = {name: value for name, value in params.items() if value is not None}
        return self._append(RawIntent(kind=kind, params=cleaned))


def resolve_intent(
    intent: Union[RawIntent, ResolvedIntent],
    *,
    origin: int = 0,
    options_for: Optional[OptionsLookup] = None,
    list_options_for: Optional[OptionsLookup] = None,
) -> List[ResolvedIntent]:
    """Resolve a single intent; an already resolved intent is returned as is."""
    if isinstance(intent, ResolvedIntent):
        return [intent]
    return _resolve_raw(intent, origin, 0, options_for, list_options_for)


def _resolve_raw(
    raw: RawIntent,
    origin: int,
    start: int,
    options_for: Optional[OptionsLookup],
    list_options_for: Optional[OptionsLookup] = None,
) -> List[ResolvedIntent]:
    if raw.kind != KIND_VIZ:
        params = dict(raw.params)
        path = parse_tabgroup(params.pop("tabgroup", None))
        return [ResolvedIntent(kind=raw.kind, params=params, path=path, index=start, origin=origin)]

    merged = resolve_params(raw.frames, raw.params)
    chart_type = merged.get("type")
    if not chart_type:
        raise ConfigurationError(
            "Visualization has no 'type'; set it on the item or via collection defaults"
        )
    if raw.vectorized:
        atomic: FrozenSet[str] = frozenset()
        if list_options_for is not None and isinstance(chart_type, str):
            atomic = frozenset(list_options_for(chart_type))
        slices = expand_params(
            merged,
            atomic=atomic,
            tabgroup_template=raw.tabgroup_template,
            title_template=raw.title_template,
        )
    else:
        slices = [merged]

    if options_for is not None:
        checked = set()
        for params in slices:
            slice_type = params.get("type")
            if not isinstance(slice_type, str) or not slice_type:
                raise ConfigurationError(f"Visualization 'type' must be a string, got {slice_type!r}")
            if slice_type in checked:
                continue
            checked.add(slice_type)
            known = set(options_for(slice_type)) | COMMON_VIZ_OPTIONS
            warn_unrecognized(slice_type, params, known)

    resolved: List[ResolvedIntent] = []
    for offset, params in enumerate(slices):
        path = parse_tabgroup(params.pop("tabgroup", None))
        predicate = coerce_filter(params.pop("filter", None))
        if predicate is not None:
            predicate = predicate.bind(params.get("data", DEFAULT_SOURCE))
        if "show_when" in params:
            params["show_when"] = coerce_show_when(params["show_when"])
        resolved.append(
            ResolvedIntent(
                kind=KIND_VIZ,
                params=params,
                path=path,
                filter=predicate,
                index=start + offset,
                origin=origin,
            )
        )
    return resolved


def _value_box(box: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(box) - set(_VALUE_BOX_KEYS))
    if unknown:
        raise ConfigurationError(f"Unknown value box field(s): {', '.join(unknown)}")
    for required in ("title", "value"):
        if box.get(required) is None:
            raise ConfigurationError(f"Value box is missing '{required}'")
    cleaned = {"bg_color": DEFAULT_VALUE_BOX_COLOR, "description_title": "About this source"}
    cleaned.update((key, value) for key, value in box.items() if value is not None)
    return cleaned


def _map_vector(value: Any, coerce: Callable[[Any], Any]) -> Any:
    if isinstance(value, (list, tuple)):
        return [coerce(element) for element in value]
    return coerce(value)


def create_content(
    *, tabgroup_labels: Optional[Mapping[str, str]] = None, **defaults: Any
) -> ContentCollection:
    """Start a collection whose visualizations inherit ``defaults``."""
    if "filter" in defaults:
        defaults["filter"] = coerce_filter(defaults["filter"])
    return ContentCollection(defaults=defaults, labels=tabgroup_labels or {})


create_viz = create_content


def combine_content(*collections: ContentCollection) -> ContentCollection:
    """Concatenate collections left to right."""
    for collection in collections:
        if not isinstance(collection, ContentCollection):
            raise ConfigurationError(
                f"combine_content() expects ContentCollection values, got {type(collection).__name__}"
            )
    return reduce(lambda left, right: left + right, collections, ContentCollection())


__all__ = [
    "BADGE_COLORS",
    "CALLOUT_TYPES",
    "ContentCollection",
    "INPUT_TYPES",
    "IntentError",
    "combine_content",
    "create_content",
    "create_viz",
    "resolve_intent",
]
