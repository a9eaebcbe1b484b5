"""
Package: config
Description: Configuration for the hookrelay delivery engine.
"""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
