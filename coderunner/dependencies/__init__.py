"""Dependency injection for the code runner API."""

from .services import get_engine, get_sandbox_manager, get_pipeline

__all__ = [
    "get_engine",
    "get_sandbox_manager",
    "get_pipeline",
]
