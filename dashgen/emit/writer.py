"""Markup emission: Quarto pages, preview reports and the site config."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from jinja2 import Environment, FileSystemLoader

from ..collection import CALLOUT_TYPES
from ..models import KIND_INPUT, KIND_LAYOUT, KIND_VIZ, ChartPayload, ResolvedIntent
from ..pages import Dashboard, Page
from ..tree import TreeNode, describe_intent, display_label, render_tree_text

SITE_CONFIG_FILENAME = "_quarto.yml"
PREVIEW_DIRNAME = "_preview"
DEFAULT_THEME = "cosmo"

_BLOCK_TEMPLATES = {
    KIND_VIZ: "blocks/viz.j2",
    KIND_LAYOUT: "blocks/layout.j2",
    KIND_INPUT: "blocks/input.j2",
}
_SUBTYPE_TEMPLATES = {
    "badge": "blocks/metric.j2",
    "metric": "blocks/metric.j2",
    "value_box": "blocks/metric.j2",
    "value_box_row": "blocks/metric.j2",
}

_YOUTUBE_RE = re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/)([^&?/]+)")
_VIMEO_RE = re.compile(r"vimeo\.com/(\d+)")


class DocumentWriter:
    """Renders pages through Jinja2 templates and writes them to disk."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self._env = self._create_env(templates_dir)

    def render_block(self, intent: ResolvedIntent, payload: Optional[ChartPayload] = None) -> str:
        """Render one leaf as a markup block."""
        name = None
        if intent.kind != KIND_VIZ:
            name = _SUBTYPE_TEMPLATES.get(str(intent.get("type")))
        if name is None:
            name = _BLOCK_TEMPLATES.get(intent.kind, "blocks/text.j2")
        template = self._env.get_template(name)
        context: Dict[str, Any] = dict(intent.params)
        context["block"] = dict(intent.params)
        context["payload"] = payload
        if "show_when" in context and context["show_when"] is not None:
            context["show_when"] = str(context["show_when"])
        context["callout_types"] = CALLOUT_TYPES
        return template.render(**context).strip()

    def render_page(
        self,
        page: Page,
        tree: TreeNode,
        blocks: Mapping[int, str],
        *,
        labels: Optional[Mapping[str, str]] = None,
        skipped: Sequence[str] = (),
    ) -> str:
        template = self._env.get_template("page.qmd.j2")
        rendered = template.render(
            title=page.name,
            icon=page.icon,
            intro=page.text,
            tree=tree,
            blocks=blocks,
            skipped=list(skipped),
            label_for=lambda path: display_label(tuple(path), labels),
        )
        return _squeeze_blank_lines(rendered)

    def write_page(self, output_dir: Path, page: Page, markup: str) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        target = output_dir / page.filename
        target.write_text(markup, encoding="utf-8")
        return target

    def render_preview(
        self,
        page: Page,
        tree: TreeNode,
        payloads: Mapping[int, ChartPayload],
        *,
        labels: Optional[Mapping[str, str]] = None,
        errors: Sequence[str] = (),
    ) -> str:
        charts: List[Dict[str, str]] = []
        for intent in tree.iter_leaves():
            payload = payloads.get(intent.index)
            if payload is None:
                continue
            location = "/".join(intent.path) or "(root)"
            charts.append(
                {
                    "label": f"{describe_intent(intent)} @ {location}",
                    "payload": json.dumps(payload.to_dict(), indent=2, default=str),
                }
            )
        template = self._env.get_template("preview.md.j2")
        return template.render(
            title=page.name,
            unit_id=page.name,
            leaf_count=tree.leaf_count,
            tree_text=render_tree_text(tree, labels) or "(empty)",
            charts=charts,
            errors=list(errors),
        )

    def write_preview(self, output_dir: Path, page: Page, markup: str) -> Path:
        preview_dir = output_dir / PREVIEW_DIRNAME
        preview_dir.mkdir(parents=True, exist_ok=True)
        target = preview_dir / f"{page.slug}.md"
        target.write_text(markup, encoding="utf-8")
        return target

    def write_site_config(self, dashboard: Dashboard, output_dir: Path) -> Path:
        """Write ``_quarto.yml`` describing the site and its navbar."""
        output_dir.mkdir(parents=True, exist_ok=True)
        target = output_dir / SITE_CONFIG_FILENAME
        target.write_text(
            yaml.safe_dump(build_site_config(dashboard), sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
        return target

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories = []
        if templates_dir:
            directories.append(str(templates_dir))
        directories.append(str(Path(__file__).with_name("templates")))
        env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        env.filters["video_embed"] = video_embed_url
        return env


def build_site_config(dashboard: Dashboard) -> Dict[str, Any]:
    styling = dict(dashboard.styling)
    navbar: List[Dict[str, Any]] = []
    for page in dashboard.pages:
        entry: Dict[str, Any] = {"href": page.filename, "text": page.name}
        if page.icon:
            entry["icon"] = page.icon
        if page.is_landing:
            navbar.insert(0, entry)
        else:
            navbar.append(entry)

    website: Dict[str, Any] = {"title": dashboard.title, "navbar": {"left": navbar}}
    if dashboard.description:
        website["description"] = dashboard.description
    if dashboard.author:
        website["page-footer"] = {"left": dashboard.author}

    html: Dict[str, Any] = {"theme": styling.pop("theme", DEFAULT_THEME)}
    for key in ("css", "toc", "code-fold", "mainfont"):
        if key in styling:
            html[key] = styling.pop(key)

    config: Dict[str, Any] = {
        "project": {"type": "website", "output-dir": styling.pop("output_subdir", "_site")},
        "website": website,
        "format": {"html": html},
    }
    if styling:
        config["dashgen"] = {"styling": styling}
    return config


def video_embed_url(src: str) -> str:
    """Embed URL for YouTube and Vimeo links; empty for anything else."""
    match = _YOUTUBE_RE.search(src)
    if match:
        return f"https://www.youtube.com/embed/{match.group(1)}"
    match = _VIMEO_RE.search(src)
    if match:
        return f"https://vimeo.com/{match.group(1)}"
    return ""


def _squeeze_blank_lines(text: str) -> str:
    lines = text.splitlines()
    squeezed: List[str] = []
    for line in lines:
        if not line.strip() and squeezed and not squeezed[-1].strip():
            continue
        squeezed.append(line.rstrip())
    return "\n".join(squeezed).strip() + "\n"


__all__ = [
    "DEFAULT_THEME",
    "DocumentWriter",
    "PREVIEW_DIRNAME",
    "SITE_CONFIG_FILENAME",
    "build_site_config",
    "video_embed_url",
]
