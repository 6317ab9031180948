from __future__ import annotations

import json
from pathlib import Path

import yaml

from dashgen.collection import create_content
from dashgen.emit.writer import DocumentWriter, build_site_config, video_embed_url
from dashgen.models import ChartPayload, KIND_LAYOUT, KIND_TEXT, ResolvedIntent
from dashgen.pages import Dashboard, create_page
from dashgen.tree import build_tree


def _payload(title: str = "Age") -> ChartPayload:
    return ChartPayload(kind="bar", title=title, series=[{"name": "count", "data": []}])


def test_viz_block_embeds_payload() -> None:
    intent = ResolvedIntent(
        kind="viz",
        params={"type": "bar", "title": "It's", "height": 320, "text": "Note", "text_position": "below"},
    )

    block = DocumentWriter().render_block(intent, _payload("It's"))

    assert 'data-kind="bar"' in block
    assert 'style="height: 320px"' in block
    encoded = block.split("data-payload='", 1)[1].split("'", 1)[0]
    assert json.loads(encoded)["title"] == "It's"
    assert block.rstrip().endswith("Note")


def test_viz_block_wraps_conditional_content() -> None:
    content = create_content(type="bar", x_var="age").add_viz(show_when="region == 'N'")
    (intent,), _ = content.resolve()

    block = DocumentWriter().render_block(intent, _payload())

    assert block.startswith("::: {.dashgen-conditional data-show-when=")
    assert block.endswith(":::")


def test_text_and_callout_blocks() -> None:
    writer = DocumentWriter()
    plain = ResolvedIntent(kind=KIND_TEXT, params={"text": "Hello **world**"})
    callout = ResolvedIntent(kind=KIND_TEXT, params={"text": "Careful", "type": "warning", "title": "Heads up"})

    assert writer.render_block(plain) == "Hello **world**"
    assert writer.render_block(callout) == '::: {.callout-warning title="Heads up"}\nCareful\n:::'


def test_layout_and_input_blocks() -> None:
    writer = DocumentWriter()
    divider = ResolvedIntent(kind=KIND_LAYOUT, params={"type": "divider"})
    image = ResolvedIntent(kind=KIND_LAYOUT, params={"type": "image", "src": "logo.png", "alt": "Logo"})
    control = ResolvedIntent(
        kind="input",
        params={
            "type": "select",
            "input_id": "region",
            "filter_var": "region",
            "options": ["N", "S"],
            "label": "Region",
            "default": "S",
        },
    )

    assert writer.render_block(divider) == "***"
    assert writer.render_block(image) == '![](logo.png){fig-alt="Logo"}'
    rendered = writer.render_block(control)
    assert 'data-filter-var="region"' in rendered
    assert '<option value="S" selected>S</option>' in rendered


def test_render_page_nests_tabsets_in_tree_order() -> None:
    content = (
        create_content(type="bar", x_var="age")
        .add_text("Overview")
        .add_viz(title="Age", tabgroup="demo/age")
        .add_viz(title="Gender", tabgroup="demo")
    )
    page = create_page("Demo", content, icon="people", text="Welcome")
    resolved, _ = page.resolve()
    blocks = {intent.index: f"<block {intent.index}>" for intent in resolved}

    markup = DocumentWriter().render_page(
        page, build_tree(resolved), blocks, labels={"demo": "Demographics"}, skipped=["STUB"]
    )

    assert markup.startswith('---\ntitle: "Demo"\nicon: "people"\n')
    order = [
        markup.index("Welcome"),
        markup.index("<block 0>"),
        markup.index("::: {.panel-tabset}"),
        markup.index("## Demographics"),
        markup.index("<block 2>"),
        markup.index("### age"),
        markup.index("<block 1>"),
        markup.index("STUB"),
    ]
    assert order == sorted(order)
    assert markup.count("::: {.panel-tabset}") == 2
    assert "\n\n\n" not in markup


def test_preview_lists_structure_and_payloads() -> None:
    content = create_content(type="bar", x_var="age").add_viz(title="Age", tabgroup="demo")
    page = create_page("Demo", content)
    resolved, _ = page.resolve()

    report = DocumentWriter().render_preview(
        page, build_tree(resolved), {0: _payload()}, errors=["item 2: broken"]
    )

    assert report.startswith("# Preview: Demo")
    assert "└─ demo" in report
    assert "### BAR: Age @ demo" in report
    assert '"kind": "bar"' in report
    assert "- item 2: broken" in report


def test_write_preview_and_page(tmp_path: Path) -> None:
    writer = DocumentWriter()
    page = create_page("Sales Q1")

    assert writer.write_page(tmp_path, page, "x\n") == tmp_path / "sales_q1.qmd"
    assert writer.write_preview(tmp_path, page, "y\n") == tmp_path / "_preview" / "sales_q1.md"


def test_custom_templates_override_builtins(tmp_path: Path) -> None:
    (tmp_path / "blocks").mkdir()
    (tmp_path / "blocks" / "text.j2").write_text("CUSTOM {{ text }}", encoding="utf-8")

    block = DocumentWriter(tmp_path).render_block(ResolvedIntent(kind=KIND_TEXT, params={"text": "hi"}))

    assert block == "CUSTOM hi"


def test_site_config_lists_landing_page_first(tmp_path: Path) -> None:
    dashboard = Dashboard(
        title="Survey",
        styling={"theme": "flatly", "toc": True, "accent": "teal"},
        author="Research team",
    ).add_pages(create_page("Trends", icon="graph-up"), create_page("Home", is_landing=True))

    config = build_site_config(dashboard)
    path = DocumentWriter().write_site_config(dashboard, tmp_path)

    assert [entry["href"] for entry in config["website"]["navbar"]["left"]] == ["index.qmd", "trends.qmd"]
    assert config["format"]["html"] == {"theme": "flatly", "toc": True}
    assert config["dashgen"] == {"styling": {"accent": "teal"}}
    assert config["website"]["page-footer"] == {"left": "Research team"}
    assert yaml.safe_load(path.read_text(encoding="utf-8")) == config
    assert build_site_config(Dashboard(title="Bare"))["format"]["html"]["theme"] == "cosmo"


def _blocks(content) -> list:
    resolved, errors = content.resolve()
    assert errors == []
    return resolved


def test_code_html_and_quote_blocks() -> None:
    writer = DocumentWriter()
    code, html, quote, cited = _blocks(
        create_content()
        .add_code("print(1)", language="python", caption="Example")
        .add_html("<b>hi</b>")
        .add_quote("Data beats opinion.", attribution="Anon")
        .add_quote("Measure twice.", attribution="Carpenter", cite="https://example.org/q")
    )

    assert writer.render_block(code) == "```python\nprint(1)\n```\n\n*Example*"
    assert writer.render_block(html) == "```{=html}\n<b>hi</b>\n```"
    assert writer.render_block(quote) == "> Data beats opinion.\n>\n> -- Anon"
    assert writer.render_block(cited).endswith("> -- [Carpenter](https://example.org/q)")


def test_media_and_disclosure_blocks() -> None:
    writer = DocumentWriter()
    spacer, youtube, clip, frame, accordion = _blocks(
        create_content()
        .add_spacer("3rem")
        .add_video("https://youtu.be/abc123", caption="Intro")
        .add_video("media/clip.mp4")
        .add_iframe("https://example.org")
        .add_accordion("Method", "Sampled weekly.", open=True)
    )

    assert 'style="height: 3rem;"' in writer.render_block(spacer)
    assert writer.render_block(youtube) == "{{< video https://www.youtube.com/embed/abc123 >}}\n\n*Intro*"
    assert '<video controls src="media/clip.mp4" width="100%"></video>' in writer.render_block(clip)
    assert '<iframe src="https://example.org" width="100%" height="500px"' in writer.render_block(frame)
    disclosure = writer.render_block(accordion)
    assert "<details open>\n<summary>Method</summary>" in disclosure
    assert "\nSampled weekly.\n" in disclosure
    assert disclosure.endswith("</details>\n```")


def test_badge_metric_and_value_boxes() -> None:
    writer = DocumentWriter()
    badge, metric, box, row = _blocks(
        create_content()
        .add_badge("Live", color="success")
        .add_metric(1234, "Respondents", subtitle="wave 3")
        .add_value_box("Sources", 12, logo_text="DB")
        .add_value_box_row({"title": "A", "value": 1}, {"title": "B", "value": 2, "bg_color": "#fff"})
    )

    assert writer.render_block(badge) == '```{=html}\n<span class="badge bg-success">Live</span>\n```'
    rendered_metric = writer.render_block(metric)
    assert '<h2 class="card-title mb-1">1234</h2>' in rendered_metric
    assert '<p class="text-muted small">wave 3</p>' in rendered_metric
    rendered_box = writer.render_block(box)
    assert 'style="background-color: #2c3e50;"' in rendered_box
    assert '<div class="dashgen-value-box-value">12</div>' in rendered_box
    assert '<div class="dashgen-value-box-logo">DB</div>' in rendered_box
    rendered_row = writer.render_block(row)
    assert rendered_row.count('class="dashgen-value-box"') == 2
    assert 'style="background-color: #fff;"' in rendered_row


def test_video_embed_urls() -> None:
    assert video_embed_url("https://www.youtube.com/watch?v=xyz&t=3") == "https://www.youtube.com/embed/xyz"
    assert video_embed_url("https://vimeo.com/12345") == "https://vimeo.com/12345"
    assert video_embed_url("clip.mp4") == ""
