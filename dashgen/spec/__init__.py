"""Intent resolution: defaults merging, vector expansion and tabgroup paths."""

from __future__ import annotations

from .expander import ATOMIC_SEQUENCE_PARAMS, expand_params, render_template
from .paths import PATH_SEPARATOR, join_path, parse_tabgroup
from .resolver import DefaultsFrame, merge_frames, resolve_params, warn_unrecognized

__all__ = [
    "ATOMIC_SEQUENCE_PARAMS",
    "DefaultsFrame",
    "PATH_SEPARATOR",
    "expand_params",
    "join_path",
    "merge_frames",
    "parse_tabgroup",
    "render_template",
    "resolve_params",
    "warn_unrecognized",
]
