# src/__init__.py — v1
"""shortrender: render execution engine for vertical short-form videos."""

from shortrender.version import __version__

__all__ = ["__version__"]
