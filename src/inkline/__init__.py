"""Inline AI-assisted code completion for terminal editors."""

__version__ = "0.1.0"

__all__ = ["__version__"]
