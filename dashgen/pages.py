"""Pages (output units) and the dashboards that order them."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from .collection import ContentCollection, IntentError, OptionsLookup
from .data import DataTable, as_tables
from .errors import ConfigurationError, unknown_option_message
from .models import ResolvedIntent
from .spec.resolver import DefaultsFrame

LANDING_FILENAME = "index"


def page_slug(name: str) -> str:
    """Lowercase file stem for a page name (``"Sales Q1"`` -> ``"sales_q1"``)."""
    return re.sub(r"[^a-z0-9]", "_", name.lower())


@dataclass(frozen=True)
class Page:
    """One output unit: a named collection with its data and page defaults."""

    name: str
    content: ContentCollection = field(default_factory=ContentCollection)
    data: Mapping[str, DataTable] = field(default_factory=dict)
    defaults: Mapping[str, Any] = field(default_factory=dict)
    styling: Mapping[str, Any] = field(default_factory=dict)
    icon: Optional[str] = None
    text: Optional[str] = None
    is_landing: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("Page 'name' is required and must be a non-empty string")
        if not isinstance(self.content, ContentCollection):
            raise ConfigurationError(
                f"Page '{self.name}' content must be a ContentCollection, got {type(self.content).__name__}"
            )
        tables = self.data if _is_table_mapping(self.data) else as_tables(self.data)
        object.__setattr__(self, "data", MappingProxyType(dict(tables)))
        object.__setattr__(self, "defaults", MappingProxyType(dict(self.defaults)))
        object.__setattr__(self, "styling", MappingProxyType(dict(self.styling)))

    @property
    def slug(self) -> str:
        return LANDING_FILENAME if self.is_landing else page_slug(self.name)

    @property
    def filename(self) -> str:
        return f"{self.slug}.qmd"

    @property
    def labels(self) -> Mapping[str, str]:
        return self.content.labels

    def add_content(self, *collections: ContentCollection) -> "Page":
        combined = self.content
        for collection in collections:
            combined = combined + collection
        return replace(self, content=combined)

    def resolve(
        self,
        outer_frames: Sequence[DefaultsFrame] = (),
        *,
        options_for: Optional[OptionsLookup] = None,
        list_options_for: Optional[OptionsLookup] = None,
    ) -> Tuple[List[ResolvedIntent], List[IntentError]]:
        """Resolve the page content under dashboard frames then page defaults."""
        frames = tuple(outer_frames) + (self.defaults,)
        return self.content.resolve(
            frames, options_for=options_for, list_options_for=list_options_for
        )


def create_page(
    name: str,
    content: Optional[ContentCollection] = None,
    *,
    data: Any = None,
    styling: Optional[Mapping[str, Any]] = None,
    icon: Optional[str] = None,
    text: Optional[str] = None,
    is_landing: bool = False,
    **defaults: Any,
) -> Page:
    """Build a page; extra keyword arguments become visualization defaults."""
    return Page(
        name=name,
        content=content if content is not None else ContentCollection(),
        data=as_tables(data),
        defaults=defaults,
        styling=styling or {},
        icon=icon,
        text=text,
        is_landing=is_landing,
    )


@dataclass(frozen=True)
class Dashboard:
    """Ordered pages plus site-wide defaults, labels and styling."""

    title: str
    output_dir: Path = Path("dashboard")
    pages: Tuple[Page, ...] = ()
    defaults: Mapping[str, Any] = field(default_factory=dict)
    styling: Mapping[str, Any] = field(default_factory=dict)
    labels: Mapping[str, str] = field(default_factory=dict)
    author: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.title, str) or not self.title.strip():
            raise ConfigurationError("Dashboard 'title' is required")
        object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "pages", tuple(self.pages))
        object.__setattr__(self, "defaults", MappingProxyType(dict(self.defaults)))
        object.__setattr__(self, "styling", MappingProxyType(dict(self.styling)))
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))
        _check_pages(self.pages)

    def add_page(self, page: Union[Page, str], *args: Any, **kwargs: Any) -> "Dashboard":
        """Return a dashboard with ``page`` appended.

        ``page`` is either a ``Page`` or a name forwarded with the remaining
        arguments to ``create_page``.
        """
        if isinstance(page, str):
            page = create_page(page, *args, **kwargs)
        elif args or kwargs:
            raise ConfigurationError("add_page() takes extra arguments only with a page name")
        return replace(self, pages=self.pages + (page,))

    def add_pages(self, *pages: Page) -> "Dashboard":
        dashboard = self
        for page in pages:
            dashboard = dashboard.add_page(page)
        return dashboard

    def with_output_dir(self, output_dir: Union[str, Path]) -> "Dashboard":
        return replace(self, output_dir=Path(output_dir))

    @property
    def page_names(self) -> List[str]:
        return [page.name for page in self.pages]

    @property
    def landing_page(self) -> Optional[Page]:
        for page in self.pages:
            if page.is_landing:
                return page
        return None

    def page(self, name: str) -> Page:
        """Look a page up by name, case-insensitively."""
        lowered = name.strip().lower()
        for page in self.pages:
            if page.name.lower() == lowered or page.slug == lowered:
                return page
        raise ConfigurationError(unknown_option_message("page", name, self.page_names))

    def select_pages(self, names: Sequence[str]) -> List[Page]:
        """Return the pages matching ``names`` in dashboard order."""
        wanted = {self.page(name).name for name in names}
        return [page for page in self.pages if page.name in wanted]

    def frames(self) -> Tuple[DefaultsFrame, ...]:
        return (self.defaults,) if self.defaults else ()

    def labels_for(self, page: Page) -> Mapping[str, str]:
        return {**self.labels, **page.labels}


def _is_table_mapping(value: Any) -> bool:
    return isinstance(value, Mapping) and all(
        isinstance(table, DataTable) and table.name == name for name, table in value.items()
    )


def _check_pages(pages: Sequence[Page]) -> None:
    seen = {}
    landing = []
    for page in pages:
        if not isinstance(page, Page):
            raise ConfigurationError(f"Dashboard pages must be Page values, got {type(page).__name__}")
        key = page.slug
        if key in seen:
            raise ConfigurationError(
                f"Page '{page.name}' collides with page '{seen[key]}' (both write {page.filename})"
            )
        seen[key] = page.name
        if page.is_landing:
            landing.append(page.name)
    if len(landing) > 1:
        raise ConfigurationError(f"Only one landing page is allowed, got: {', '.join(landing)}")


__all__ = ["Dashboard", "LANDING_FILENAME", "Page", "create_page", "page_slug"]
