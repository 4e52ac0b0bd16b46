"""Watcher implementations used by the MetalLB operator."""

from .file import FileManifestWatcher  # noqa: F401

__all__ = ["FileManifestWatcher"]
