"""Utility subpackage: the shared console logger."""

from .logger import get_logger

__all__ = ["get_logger"]
