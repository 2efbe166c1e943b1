"""Weekly report merge package."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    "classification",
    "cli",
    "merge",
    "models",
    "retrieval",
    "template",
]
