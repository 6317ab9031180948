from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import pytest

from dashgen.collection import ContentCollection, create_content
from dashgen.data import DataTable
from dashgen.errors import ConfigurationError
from dashgen.generator import Generator, UnitState
from dashgen.pages import Dashboard, create_page
from dashgen.renderers import discover_renderers
from dashgen.stores import BuildManifest, default_manifest_path
from tests._fixtures.recording import RecordingBackend, RecordingRenderer, recording_registry


def _content(*titles: str) -> ContentCollection:
    content = create_content(type="bar", x_var="gender")
    for title in titles:
        content = content.add_viz(title=title)
    return content


def _dashboard(output_dir: Path, survey: DataTable, pages: Optional[dict] = None) -> Dashboard:
    pages = pages if pages is not None else {"Demo": ("Gender",), "Trends": ("Waves",)}
    dashboard = Dashboard(title="Survey", output_dir=output_dir)
    for name, titles in pages.items():
        dashboard = dashboard.add_page(name, _content(*titles), data=survey)
    return dashboard


def _manifest(output_dir: Path) -> BuildManifest:
    return BuildManifest.load(default_manifest_path(output_dir))


def test_first_pass_generates_every_page(
    generator: Generator, survey: DataTable, output_dir: Path, recording_renderer: RecordingRenderer
) -> None:
    report = generator.generate(_dashboard(output_dir, survey))

    assert report.ok
    assert report.regenerated == ["Demo", "Trends"]
    assert report.skipped == []
    assert report.states == {"Demo": UnitState.RENDERED, "Trends": UnitState.RENDERED}
    assert (output_dir / "demo.qmd").exists()
    assert (output_dir / "_quarto.yml").exists()
    assert _manifest(output_dir).units == ["Demo", "Trends"]
    assert _manifest(output_dir).get("Demo").artifact == "demo.qmd"
    assert recording_renderer.calls == [("Gender", 5), ("Waves", 5)]


def test_unchanged_pages_are_skipped(
    generator: Generator, survey: DataTable, output_dir: Path, recording_renderer: RecordingRenderer
) -> None:
    generator.generate(_dashboard(output_dir, survey))
    recording_renderer.calls.clear()

    report = generator.generate(_dashboard(output_dir, survey))

    assert report.regenerated == []
    assert report.skipped == ["Demo", "Trends"]
    assert report.states["Demo"] is UnitState.FRESH
    assert recording_renderer.calls == []


def test_only_changed_pages_regenerate(
    generator: Generator, survey: DataTable, output_dir: Path, recording_renderer: RecordingRenderer
) -> None:
    generator.generate(_dashboard(output_dir, survey))
    recording_renderer.calls.clear()

    changed = _dashboard(output_dir, survey, {"Demo": ("Gender", "Extra"), "Trends": ("Waves",)})
    report = generator.generate(changed)

    assert report.regenerated == ["Demo"]
    assert report.skipped == ["Trends"]
    assert recording_renderer.calls == [("Gender", 5), ("Extra", 5)]


def test_data_changes_mark_pages_stale(generator: Generator, survey: DataTable, output_dir: Path) -> None:
    generator.generate(_dashboard(output_dir, survey))
    edited = DataTable.from_records([*survey.rows, {"age": 70, "gender": "m", "wave": 3}])

    report = generator.generate(_dashboard(output_dir, edited))

    assert report.regenerated == ["Demo", "Trends"]


def test_missing_artifact_is_regenerated(generator: Generator, survey: DataTable, output_dir: Path) -> None:
    generator.generate(_dashboard(output_dir, survey))
    (output_dir / "trends.qmd").unlink()

    report = generator.generate(_dashboard(output_dir, survey))

    assert report.regenerated == ["Trends"]
    assert (output_dir / "trends.qmd").exists()


def test_full_pass_regenerates_and_records(
    generator: Generator, survey: DataTable, output_dir: Path, recording_renderer: RecordingRenderer
) -> None:
    generator.generate(_dashboard(output_dir, survey))
    before = _manifest(output_dir).get("Demo")
    recording_renderer.calls.clear()

    report = generator.generate(_dashboard(output_dir, survey), incremental=False)

    assert report.regenerated == ["Demo", "Trends"]
    assert recording_renderer.calls == [("Gender", 5), ("Waves", 5)]
    after = _manifest(output_dir).get("Demo")
    assert after.fingerprint == before.fingerprint
    assert after.updated_at >= before.updated_at


def test_corrupt_manifest_falls_back_to_full_pass(
    generator: Generator, survey: DataTable, output_dir: Path
) -> None:
    path = default_manifest_path(output_dir)
    path.parent.mkdir(parents=True)
    path.write_text("{broken", encoding="utf-8")

    report = generator.generate(_dashboard(output_dir, survey))

    assert report.regenerated == ["Demo", "Trends"]
    assert any("treating every page as stale" in warning for warning in report.warnings)
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_preview_writes_report_only(
    generator: Generator, survey: DataTable, output_dir: Path, recording_renderer: RecordingRenderer
) -> None:
    report = generator.generate(_dashboard(output_dir, survey), preview=["trends"])

    assert report.previewed == ["Trends"]
    assert report.regenerated == []
    preview = output_dir / "_preview" / "trends.md"
    assert report.artifacts["Trends"] == preview
    assert "BAR: Waves" in preview.read_text(encoding="utf-8")
    assert not default_manifest_path(output_dir).exists()
    assert not (output_dir / "trends.qmd").exists()
    assert recording_renderer.calls == [("Waves", 5)]


def test_preview_of_unknown_page_raises(generator: Generator, survey: DataTable, output_dir: Path) -> None:
    with pytest.raises(ConfigurationError, match="Unknown page 'Trend'"):
        generator.generate(_dashboard(output_dir, survey), preview=["Trend"])


def test_failed_unit_keeps_previous_manifest_entry(survey: DataTable, output_dir: Path) -> None:
    generator = Generator(
        registry=recording_registry(RecordingRenderer(fail_titles=["Broken"])),
        backend=RecordingBackend(),  # type: ignore[arg-type]
    )
    generator.generate(_dashboard(output_dir, survey))
    before = _manifest(output_dir).get("Demo")

    report = generator.generate(
        _dashboard(output_dir, survey, {"Demo": ("Gender", "Broken"), "Trends": ("Waves",)})
    )

    assert not report.ok
    assert list(report.failed) == ["Demo"]
    assert report.failed["Demo"][0].error_type == "DataBindingError"
    assert report.failed["Demo"][0].item == "BAR: Broken"
    assert report.states["Demo"] is UnitState.STALE
    assert _manifest(output_dir).get("Demo") == before
    markup = (output_dir / "demo.qmd").read_text(encoding="utf-8")
    assert "BAR: Broken could not be generated" in markup
    assert 'data-kind="bar"' in markup


def test_failed_unit_is_retried_next_pass(survey: DataTable, output_dir: Path) -> None:
    renderer = RecordingRenderer(fail_titles=["Broken"])
    generator = Generator(registry=recording_registry(renderer), backend=RecordingBackend())  # type: ignore[arg-type]
    dashboard = _dashboard(output_dir, survey, {"Demo": ("Broken",)})

    generator.generate(dashboard)
    report = generator.generate(dashboard)

    assert "Demo" in report.failed
    assert [title for title, _ in renderer.calls] == ["Broken", "Broken"]


def test_backend_failure_fails_unit(survey: DataTable, output_dir: Path) -> None:
    backend = RecordingBackend(fail_files=["trends.qmd"])
    generator = Generator(registry=recording_registry(), backend=backend)  # type: ignore[arg-type]

    report = generator.generate(_dashboard(output_dir, survey), render=True)

    assert report.regenerated == ["Demo"]
    assert report.failed["Trends"][0].error_type == "BackendError"
    assert backend.rendered == ["demo.qmd"]
    assert _manifest(output_dir).units == ["Demo"]


def test_deleted_pages_are_pruned(generator: Generator, survey: DataTable, output_dir: Path) -> None:
    generator.generate(_dashboard(output_dir, survey))

    report = generator.generate(_dashboard(output_dir, survey, {"Demo": ("Gender",)}))

    assert report.pruned == ["Trends"]
    assert report.skipped == ["Demo"]
    assert not (output_dir / "trends.qmd").exists()
    assert _manifest(output_dir).units == ["Demo"]


def test_parallel_workers_match_serial_results(
    survey: DataTable, tmp_path: Path
) -> None:
    pages = {f"Page {index}": (f"Chart {index}",) for index in range(6)}

    serial = Generator(registry=recording_registry(), backend=RecordingBackend())  # type: ignore[arg-type]
    parallel = Generator(registry=recording_registry(), backend=RecordingBackend())  # type: ignore[arg-type]
    serial_report = serial.generate(_dashboard(tmp_path / "serial", survey, pages))
    parallel_report = parallel.generate(_dashboard(tmp_path / "parallel", survey, pages), workers=4)

    assert parallel_report.regenerated == serial_report.regenerated == list(pages)
    for name in ("page_0.qmd", "page_5.qmd"):
        assert (tmp_path / "serial" / name).read_text(encoding="utf-8") == (
            tmp_path / "parallel" / name
        ).read_text(encoding="utf-8")
    assert sorted(_manifest(tmp_path / "parallel").units) == sorted(_manifest(tmp_path / "serial").units)
    assert len(_manifest(tmp_path / "parallel")) == 6


def test_filters_and_missing_values_shape_rendered_rows(
    generator: Generator, survey: DataTable, output_dir: Path, recording_renderer: RecordingRenderer
) -> None:
    panel = [{"gender": "f"}, {"gender": "m"}]
    content = (
        create_content(type="bar", x_var="gender")
        .add_viz(title="Older", filter="age > 40")
        .add_viz(title="Answered", x_var="q1", drop_na_vars=True)
        .add_viz(title="Both", drop_na_vars=["q1", "q2"])
        .add_viz(title="Panel", data="panel")
    )
    dashboard = Dashboard(title="Survey", output_dir=output_dir).add_page(
        "Demo", content, data={"data": survey, "panel": panel}
    )

    report = generator.generate(dashboard)

    assert report.ok
    assert recording_renderer.calls == [("Older", 3), ("Answered", 4), ("Both", 3), ("Panel", 2)]


def test_unresolvable_items_are_skipped_with_stub(
    generator: Generator, survey: DataTable, output_dir: Path
) -> None:
    content = _content("Gender").add_viz(type="pie", title="Pie").add_viz(title="Bad source", data="nope")
    dashboard = Dashboard(title="Survey", output_dir=output_dir).add_page("Demo", content, data=survey)

    report = generator.generate(dashboard)

    errors = report.failed["Demo"]
    assert [error.error_type for error in errors] == ["ConfigurationError", "DataBindingError"]
    assert errors[0].item == "item 2 ('Pie')"
    markup = (output_dir / "demo.qmd").read_text(encoding="utf-8")
    assert "Item 2 (Pie) was skipped" in markup
    assert "BAR: Bad source could not be generated" in markup
    assert not default_manifest_path(output_dir).exists()


def test_dashboard_defaults_and_page_defaults_reach_renderers(
    generator: Generator, survey: DataTable, output_dir: Path
) -> None:
    content = create_content(type="bar", bins=30).add_viz(x_var="age", title="Default").add_viz(
        x_var="age", title="Override", bins=10
    )
    dashboard = Dashboard(title="Survey", output_dir=output_dir, defaults={"height": 250}).add_page(
        "Demo", content, data=survey, bins=99
    )

    resolved, _ = dashboard.pages[0].resolve(dashboard.frames())
    report = generator.generate(dashboard)
    markup = (output_dir / "demo.qmd").read_text(encoding="utf-8")

    assert report.ok
    assert [intent.params["bins"] for intent in resolved] == [30, 10]
    assert markup.count('style="height: 250px"') == 2


def test_tree_text_lists_each_page(generator: Generator, survey: DataTable, output_dir: Path) -> None:
    content = (
        create_content(type="bar", x_var="gender")
        .add_viz(title="Deep", tabgroup="x/y/z")
        .add_viz(type="pie", title="Pie")
    )
    dashboard = Dashboard(title="Survey", output_dir=output_dir).add_page("Demo", content, data=survey)

    trees = generator.tree_text(dashboard)

    assert list(trees) == ["Demo"]
    assert trees["Demo"].splitlines()[:4] == ["└─ x", "   └─ y", "      └─ z", "         └─ BAR: Deep"]
    assert "✖ item 2 ('Pie')" in trees["Demo"]


def test_summary_and_dict(generator: Generator, survey: DataTable, output_dir: Path) -> None:
    report = generator.generate(_dashboard(output_dir, survey))

    assert report.summary().splitlines()[0].startswith(
        "Generation summary: 2 regenerated, 0 skipped, 0 failed"
    )
    payload = report.to_dict()
    assert payload["regenerated"] == ["Demo", "Trends"]
    assert payload["failed"] == {}


def test_invalid_arguments(generator: Generator, survey: DataTable, output_dir: Path) -> None:
    with pytest.raises(ConfigurationError):
        generator.generate("dashboard")  # type: ignore[arg-type]
    with pytest.raises(ConfigurationError, match="workers"):
        generator.generate(_dashboard(output_dir, survey), workers=0)


def test_output_dir_override(generator: Generator, survey: DataTable, tmp_path: Path) -> None:
    report = generator.generate(_dashboard(tmp_path / "ignored", survey), output_dir=tmp_path / "other")

    assert report.artifacts["Demo"] == tmp_path / "other" / "demo.qmd"
    assert not (tmp_path / "ignored").exists()


def test_unexpected_renderer_errors_stay_with_their_page(survey: DataTable, output_dir: Path) -> None:
    renderer = RecordingRenderer(crash_titles=["Crash"])
    generator = Generator(registry=recording_registry(renderer), backend=RecordingBackend())  # type: ignore[arg-type]
    dashboard = _dashboard(output_dir, survey, {"Bad": ("Crash", "Gender"), "Good": ("Waves",)})

    report = generator.generate(dashboard)

    assert report.regenerated == ["Good"]
    assert report.failed["Bad"][0].error_type == "TypeError"
    assert report.failed["Bad"][0].item == "BAR: Crash"
    assert _manifest(output_dir).units == ["Good"]
    markup = (output_dir / "bad.qmd").read_text(encoding="utf-8")
    assert "BAR: Crash could not be generated" in markup
    assert 'data-kind="bar"' in markup

    preview = generator.generate(dashboard, preview=["Bad", "Good"])

    assert preview.previewed == ["Bad", "Good"]
    assert preview.failed["Bad"][0].error_type == "TypeError"


def test_malformed_category_order_fails_only_that_chart(survey: DataTable, output_dir: Path) -> None:
    generator = Generator(registry=discover_renderers(["bar"]), backend=RecordingBackend())  # type: ignore[arg-type]
    bad = create_content(type="bar").add_viz(title="Bad", x_var="q1", x_order=5)
    good = create_content(type="bar").add_vizzes(
        title=["Q1", "Q2"], x_var=["q1", "q2"], x_order=["disagree", "agree"]
    )
    dashboard = (
        Dashboard(title="Survey", output_dir=output_dir)
        .add_page("Bad", bad, data=survey)
        .add_page("Good", good, data=survey)
    )

    report = generator.generate(dashboard)

    assert report.regenerated == ["Good"]
    assert report.failed["Bad"][0].error_type == "ConfigurationError"
    assert "must be a list" in report.failed["Bad"][0].message
    markup = (output_dir / "good.qmd").read_text(encoding="utf-8")
    assert markup.count('"categories": ["disagree", "agree"]') == 2
