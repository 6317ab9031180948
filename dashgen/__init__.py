"""Declarative dashboard specification compiler."""

from .collection import ContentCollection, combine_content, create_content, create_viz
from .data import DataTable, load_table
from .errors import (
    BackendError,
    CacheIOError,
    ConfigurationError,
    DashgenError,
    DataBindingError,
    RequiredParameterMissing,
)
from .filters import FilterPredicate, ShowWhen
from .generator import GenerationReport, Generator, UnitState
from .pages import Dashboard, Page, create_page

__version__ = "0.1.0"

__all__ = [
    "BackendError",
    "CacheIOError",
    "ConfigurationError",
    "ContentCollection",
    "Dashboard",
    "DashgenError",
    "DataBindingError",
    "DataTable",
    "FilterPredicate",
    "GenerationReport",
    "Generator",
    "Page",
    "RequiredParameterMissing",
    "ShowWhen",
    "UnitState",
    "combine_content",
    "create_content",
    "create_page",
    "create_viz",
    "load_table",
]
