"""API endpoints for the code runner."""

from . import run, health

__all__ = ["run", "health"]
