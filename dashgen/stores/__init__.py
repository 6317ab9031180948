"""Persistent stores used across generation passes."""

from .manifest import BuildManifest, ManifestEntry, default_manifest_path

__all__ = ["BuildManifest", "ManifestEntry", "default_manifest_path"]
