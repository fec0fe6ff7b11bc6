"""
accessgate distribution import namespace.

Re-exports the core `tool_resolution` package so integrators can depend on
a single top-level name.
"""

from importlib.metadata import PackageNotFoundError, version

# src/accessgate/__init__.py
from tool_resolution import *  # noqa: F401,F403
from tool_resolution import __all__ as _core_all

try:
    __version__ = version("accessgate")
except PackageNotFoundError:  # pragma: no cover - source checkout without installed metadata
    __version__ = "0+unknown"

__all__ = ["__version__", *_core_all]
