"""Writes small dashboard scripts for CLI, loader and service tests."""

from __future__ import annotations

from pathlib import Path

DEFAULT_SCRIPT = '''
from dashgen import Dashboard, DataTable, create_content

survey = DataTable.from_records(
    [
        {"age": 23, "gender": "f", "wave": 1},
        {"age": 35, "gender": "m", "wave": 1},
        {"age": 47, "gender": "f", "wave": 2},
    ]
)

content = (
    create_content(type="bar", x_var="gender")
    .add_viz(title="Gender")
    .add_viz(title="By wave", group_var="wave", tabgroup="waves")
    .set_tabgroup_labels(waves="Survey waves")
)

dashboard = Dashboard(title="Survey", output_dir="site").add_page("Demo", content, data=survey)
'''

BROKEN_SCRIPT = '''
from dashgen import Dashboard, DataTable, create_content

content = create_content(type="bar").add_viz(title="Income", x_var="income")
dashboard = Dashboard(title="Survey", output_dir="site").add_page(
    "Demo", content, data=DataTable.from_records([{"age": 1}])
)
'''


def write_script(directory: Path, body: str = DEFAULT_SCRIPT, name: str = "dashboard.py") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    script = directory / name
    script.write_text(body.lstrip(), encoding="utf-8")
    return script


__all__ = ["BROKEN_SCRIPT", "DEFAULT_SCRIPT", "write_script"]
