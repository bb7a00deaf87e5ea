"""Sandboxed C# compile-and-run service."""

__version__ = "1.0.0"
