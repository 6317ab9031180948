"""Document emission: templated pages, site config and the render backend."""

from .backend import QuartoBackend
from .writer import (
    PREVIEW_DIRNAME,
    SITE_CONFIG_FILENAME,
    DocumentWriter,
    build_site_config,
)

__all__ = [
    "DocumentWriter",
    "PREVIEW_DIRNAME",
    "QuartoBackend",
    "SITE_CONFIG_FILENAME",
    "build_site_config",
]
