"""Run definition."""

from .config import RunConfig

__all__ = ['RunConfig']
