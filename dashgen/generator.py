"""The generation pass: resolve, fingerprint and regenerate stale pages."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .collection import IntentError
from .config import DashgenConfig
from .data import DEFAULT_SOURCE, DataTable
from .emit import DocumentWriter, QuartoBackend
from .errors import CacheIOError, ConfigurationError, DataBindingError
from .failsafe import build_intent_stub, build_skipped_stub
from .fingerprint import compute_fingerprint
from .logging import get_logger
from .models import KIND_VIZ, ChartPayload, ResolvedIntent
from .pages import Dashboard, Page
from .renderers import RendererRegistry, discover_renderers
from .stores import BuildManifest, default_manifest_path
from .tree import TreeNode, build_tree, describe_intent, render_tree_text


class UnitState(str, Enum):
    """Lifecycle of one output unit within a pass."""

    UNKNOWN = "unknown"
    STALE = "stale"
    FRESH = "fresh"
    RENDERED = "rendered"


@dataclass(frozen=True)
class UnitError:
    """One failure attributed to an output unit."""

    unit: str
    message: str
    error_type: str
    item: Optional[str] = None
    path: Tuple[str, ...] = ()

    @classmethod
    def from_exception(
        cls, unit: str, exc: BaseException, intent: Optional[ResolvedIntent] = None
    ) -> "UnitError":
        return cls(
            unit=unit,
            message=str(exc),
            error_type=type(exc).__name__,
            item=describe_intent(intent) if intent is not None else None,
            path=intent.path if intent is not None else (),
        )

    @classmethod
    def from_intent_error(cls, unit: str, error: IntentError) -> "UnitError":
        return cls(
            unit=unit,
            message=error.message,
            error_type=type(error.error).__name__,
            item=f"item {error.origin + 1}" + (f" ('{error.title}')" if error.title else ""),
        )

    def __str__(self) -> str:
        where = self.item or "page"
        if self.path:
            where += f" @ {'/'.join(self.path)}"
        first_line = self.message.splitlines()[0] if self.message else ""
        return f"{where}: {self.error_type}: {first_line}"


@dataclass
class GenerationReport:
    """Outcome of a generation pass, in dashboard page order."""

    regenerated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, List[UnitError]] = field(default_factory=dict)
    previewed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    states: Dict[str, UnitState] = field(default_factory=dict)
    artifacts: Dict[str, Path] = field(default_factory=dict)
    pruned: List[str] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        counts = [
            f"{len(self.regenerated)} regenerated",
            f"{len(self.skipped)} skipped",
            f"{len(self.failed)} failed",
        ]
        if self.previewed:
            counts.append(f"{len(self.previewed)} previewed")
        lines = [f"Generation summary: {', '.join(counts)} ({self.elapsed:.2f}s)"]
        if self.regenerated:
            lines.append(f"  ✔ regenerated: {', '.join(self.regenerated)}")
        if self.skipped:
            lines.append(f"  ↷ unchanged: {', '.join(self.skipped)}")
        if self.previewed:
            lines.append(f"  ◎ previewed: {', '.join(self.previewed)}")
        if self.pruned:
            lines.append(f"  ✂ removed: {', '.join(self.pruned)}")
        for unit, errors in self.failed.items():
            lines.append(f"  ✖ {unit}")
            lines.extend(f"      - {error}" for error in errors)
        lines.extend(f"  ⚠ {warning}" for warning in self.warnings)
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, object]:
        return {
            "regenerated": list(self.regenerated),
            "skipped": list(self.skipped),
            "failed": {
                unit: [
                    {"message": error.message, "type": error.error_type, "item": error.item,
                     "path": list(error.path)}
                    for error in errors
                ]
                for unit, errors in self.failed.items()
            },
            "previewed": list(self.previewed),
            "warnings": list(self.warnings),
            "pruned": list(self.pruned),
            "summary": self.summary(),
        }


@dataclass
class _UnitPlan:
    page: Page
    resolved: List[ResolvedIntent]
    intent_errors: List[IntentError]
    tree: TreeNode
    labels: Mapping[str, str]
    fingerprint: str = ""
    state: UnitState = UnitState.UNKNOWN


@dataclass
class _UnitOutcome:
    unit: str
    artifact: Path
    errors: List[UnitError]


class Generator:
    """Runs generation passes over a ``Dashboard``."""

    def __init__(
        self,
        registry: RendererRegistry | None = None,
        writer: DocumentWriter | None = None,
        backend: QuartoBackend | None = None,
        *,
        exclude_fields: Sequence[str] = (),
    ) -> None:
        self.registry = registry or discover_renderers()
        self.writer = writer or DocumentWriter()
        self.backend = backend or QuartoBackend()
        self.exclude_fields = tuple(exclude_fields)
        self.logger = get_logger("generator")

    @classmethod
    def from_config(cls, config: DashgenConfig) -> "Generator":
        """Build a generator wired to the renderers and backend named in ``config``."""
        return cls(
            registry=discover_renderers(config.renderers),
            writer=DocumentWriter(config.backend.templates_dir),
            backend=QuartoBackend(
                executable=config.backend.executable,
                extra_args=config.backend.extra_args,
            ),
            exclude_fields=config.cache.exclude_fields,
        )

    # ------------------------------------------------------------------
    # Public API

    def generate(
        self,
        dashboard: Dashboard,
        *,
        incremental: bool = True,
        preview: Optional[Sequence[str]] = None,
        render: bool = False,
        workers: int = 1,
        output_dir: Path | None = None,
    ) -> GenerationReport:
        """Generate ``dashboard``; only stale pages are rebuilt when ``incremental``."""
        if not isinstance(dashboard, Dashboard):
            raise ConfigurationError(
                f"Expected a Dashboard, got {type(dashboard).__name__}"
            )
        if workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {workers}")
        if output_dir is not None:
            dashboard = dashboard.with_output_dir(output_dir)

        started = time.perf_counter()
        if preview is not None:
            report = self._preview(dashboard, preview)
        else:
            report = self._build(dashboard, incremental=incremental, render=render, workers=workers)
        report.elapsed = time.perf_counter() - started
        self.logger.debug(report.summary())
        return report

    def tree_text(self, dashboard: Dashboard) -> Dict[str, str]:
        """Return the rendered tabgroup tree of every page, keyed by page name."""
        trees: Dict[str, str] = {}
        for page in dashboard.pages:
            plan = self._plan(dashboard, page)
            text = render_tree_text(plan.tree, plan.labels) or "(empty)"
            if plan.intent_errors:
                text += "\n" + "\n".join(f"✖ {error}" for error in plan.intent_errors)
            trees[page.name] = text
        return trees

    def render_intent(self, intent: ResolvedIntent, tables: Mapping[str, DataTable]) -> ChartPayload:
        """Bind an intent to its data and run its renderer."""
        renderer = self.registry.get(str(intent.type))
        renderer.validate(intent)
        if intent.filter is not None:
            table = intent.filter.apply(tables)
        else:
            source = intent.data_source or DEFAULT_SOURCE
            table = tables.get(source)
            if table is None:
                available = ", ".join(sorted(tables)) or "none"
                raise DataBindingError(f"Data source '{source}' not found (available: {available})")
        drop_na = intent.get("drop_na_vars")
        if drop_na:
            columns = list(drop_na) if isinstance(drop_na, (list, tuple)) else renderer.columns(intent)
            table = table.drop_missing(columns)
        return renderer.render(intent, table)

    # ------------------------------------------------------------------
    # Passes

    def _preview(self, dashboard: Dashboard, names: Sequence[str]) -> GenerationReport:
        report = GenerationReport()
        pages = dashboard.select_pages(names)
        self.logger.info("Previewing %d page(s): %s", len(pages), ", ".join(p.name for p in pages))
        for page in pages:
            plan = self._plan(dashboard, page)
            payloads: Dict[int, ChartPayload] = {}
            errors = [UnitError.from_intent_error(page.name, e) for e in plan.intent_errors]
            for intent in plan.resolved:
                if intent.kind != KIND_VIZ:
                    continue
                try:
                    payloads[intent.index] = self.render_intent(intent, page.data)
                except Exception as exc:
                    errors.append(UnitError.from_exception(page.name, exc, intent))
            markup = self.writer.render_preview(
                page, plan.tree, payloads, labels=plan.labels, errors=[str(e) for e in errors]
            )
            report.artifacts[page.name] = self.writer.write_preview(dashboard.output_dir, page, markup)
            report.previewed.append(page.name)
            if errors:
                report.failed[page.name] = errors
        return report

    def _build(
        self, dashboard: Dashboard, *, incremental: bool, render: bool, workers: int
    ) -> GenerationReport:
        report = GenerationReport()
        output_dir = dashboard.output_dir
        manifest = self._load_manifest(output_dir, report)
        self.writer.write_site_config(dashboard, output_dir)

        plans: List[_UnitPlan] = []
        for page in dashboard.pages:
            plan = self._plan(dashboard, page)
            plan.fingerprint = self._fingerprint(dashboard, plan)
            plan.state = self._initial_state(plan, manifest, output_dir, incremental)
            report.states[page.name] = plan.state
            plans.append(plan)

        stale = [plan for plan in plans if plan.state is UnitState.STALE]
        self.logger.debug("%d of %d page(s) stale", len(stale), len(plans))
        outcomes: Dict[str, _UnitOutcome] = {}

        def _finish(plan: _UnitPlan, outcome: _UnitOutcome) -> None:
            outcomes[plan.page.name] = outcome
            if outcome.errors:
                return
            try:
                manifest.upsert(
                    plan.page.name,
                    fingerprint=plan.fingerprint,
                    artifact=outcome.artifact.relative_to(output_dir).as_posix(),
                )
            except CacheIOError as exc:
                self._warn(report, f"Could not record '{plan.page.name}' in the manifest: {exc}")
            plan.state = UnitState.RENDERED

        if workers > 1 and len(stale) > 1:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dashgen-unit") as pool:
                futures = {pool.submit(self._build_unit, dashboard, plan, render): plan for plan in stale}
                for future in as_completed(futures):
                    _finish(futures[future], future.result())
        else:
            for plan in stale:
                _finish(plan, self._build_unit(dashboard, plan, render))

        for plan in plans:
            name = plan.page.name
            report.states[name] = plan.state
            if plan.state is UnitState.FRESH:
                report.skipped.append(name)
                continue
            outcome = outcomes[name]
            report.artifacts[name] = outcome.artifact
            if outcome.errors:
                report.failed[name] = outcome.errors
            else:
                report.regenerated.append(name)

        if incremental:
            self._prune(manifest, [plan.page.name for plan in plans], output_dir, report)
        return report

    # ------------------------------------------------------------------
    # Internal helpers

    def _plan(self, dashboard: Dashboard, page: Page) -> _UnitPlan:
        resolved, errors = page.resolve(
            dashboard.frames(),
            options_for=self.registry.options_for,
            list_options_for=self.registry.list_options_for,
        )
        for error in errors:
            self.logger.warning("Skipping %s on page '%s'", error, page.name)
        return _UnitPlan(
            page=page,
            resolved=resolved,
            intent_errors=errors,
            tree=build_tree(resolved),
            labels=dashboard.labels_for(page),
        )

    def _fingerprint(self, dashboard: Dashboard, plan: _UnitPlan) -> str:
        page = plan.page
        styling = {
            "name": page.name,
            "filename": page.filename,
            "icon": page.icon,
            "text": page.text,
            "page": dict(page.styling),
            "site": dict(dashboard.styling),
            "labels": dict(plan.labels),
            "skipped": [error.message for error in plan.intent_errors],
        }
        signatures = {name: table.signature for name, table in page.data.items()}
        return compute_fingerprint(signatures, plan.resolved, styling, exclude=self.exclude_fields)

    def _initial_state(
        self, plan: _UnitPlan, manifest: BuildManifest, output_dir: Path, incremental: bool
    ) -> UnitState:
        name = plan.page.name
        if not incremental:
            return UnitState.STALE
        if manifest.get(name) is None:
            self.logger.debug("Page '%s' has no manifest entry", name)
            return UnitState.STALE
        if manifest.is_fresh(name, plan.fingerprint, output_dir):
            return UnitState.FRESH
        return UnitState.STALE

    def _build_unit(self, dashboard: Dashboard, plan: _UnitPlan, render: bool) -> _UnitOutcome:
        page = plan.page
        output_dir = dashboard.output_dir
        self.logger.info("Generating page '%s'", page.name)
        errors = [UnitError.from_intent_error(page.name, e) for e in plan.intent_errors]
        blocks: Dict[int, str] = {}
        for intent in plan.resolved:
            if intent.kind != KIND_VIZ:
                blocks[intent.index] = self.writer.render_block(intent)
                continue
            try:
                payload = self.render_intent(intent, page.data)
            except Exception as exc:
                self._log_exception(f"Failed to render {describe_intent(intent)} on '{page.name}'", exc)
                errors.append(UnitError.from_exception(page.name, exc, intent))
                blocks[intent.index] = build_intent_stub(intent, str(exc))
                continue
            blocks[intent.index] = self.writer.render_block(intent, payload)

        skipped = [build_skipped_stub(e.origin, e.message, e.title) for e in plan.intent_errors]
        markup = self.writer.render_page(page, plan.tree, blocks, labels=plan.labels, skipped=skipped)
        artifact = output_dir / page.filename
        try:
            artifact = self.writer.write_page(output_dir, page, markup)
        except OSError as exc:
            errors.append(UnitError.from_exception(page.name, exc))
            return _UnitOutcome(unit=page.name, artifact=artifact, errors=errors)
        if render:
            try:
                self.backend.render(output_dir, artifact)
            except Exception as exc:
                self._log_exception(f"Backend failed for '{page.name}'", exc)
                errors.append(UnitError.from_exception(page.name, exc))
        return _UnitOutcome(unit=page.name, artifact=artifact, errors=errors)

    def _load_manifest(self, output_dir: Path, report: GenerationReport) -> BuildManifest:
        path = default_manifest_path(output_dir)
        try:
            return BuildManifest.load(path)
        except CacheIOError as exc:
            self._warn(report, f"{exc}; treating every page as stale")
            return BuildManifest(path)

    def _prune(
        self,
        manifest: BuildManifest,
        keep: Sequence[str],
        output_dir: Path,
        report: GenerationReport,
    ) -> None:
        try:
            removed = manifest.prune(keep)
        except CacheIOError as exc:
            self._warn(report, f"Could not prune the manifest: {exc}")
            return
        root = output_dir.resolve()
        for unit, entry in removed.items():
            artifact = (output_dir / entry.artifact).resolve()
            if root in artifact.parents and artifact.exists():
                artifact.unlink()
            self.logger.info("Removed deleted page '%s' (%s)", unit, entry.artifact)
            report.pruned.append(unit)

    def _warn(self, report: GenerationReport, message: str) -> None:
        self.logger.warning(message)
        report.warnings.append(message)

    def _log_exception(self, message: str, exc: Exception) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.exception("%s: %s", message, exc)
        else:
            self.logger.error("%s: %s", message, exc)


__all__ = ["GenerationReport", "Generator", "UnitError", "UnitState"]
