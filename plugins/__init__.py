"""Plugins Package.

This package contains plugins that extend the toolset.
Each subdirectory contains a separate plugin implementation.
"""

from plugins import workflows

__all__ = ["workflows"]
