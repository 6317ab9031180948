"""Loading dashboards from user scripts."""

from __future__ import annotations

import runpy
from pathlib import Path

from .errors import ConfigurationError
from .pages import Dashboard

DASHBOARD_VARIABLE = "dashboard"


def load_dashboard(script: Path) -> Dashboard:
    """Execute ``script`` and return its module-level ``dashboard``.

    Relative output directories are resolved against the script's folder.
    """
    script = script.expanduser()
    if not script.is_file():
        raise FileNotFoundError(f"Dashboard script not found: {script}")
    namespace = runpy.run_path(str(script), run_name="__dashgen__")
    dashboard = namespace.get(DASHBOARD_VARIABLE)
    if not isinstance(dashboard, Dashboard):
        found = type(dashboard).__name__ if dashboard is not None else "nothing"
        raise ConfigurationError(
            f"{script.name} must define a module-level '{DASHBOARD_VARIABLE}' Dashboard (found {found})"
        )
    if not dashboard.output_dir.is_absolute():
        dashboard = dashboard.with_output_dir(script.resolve().parent / dashboard.output_dir)
    return dashboard


__all__ = ["DASHBOARD_VARIABLE", "load_dashboard"]
