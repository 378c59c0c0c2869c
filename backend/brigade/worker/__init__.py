"""
Per-build runtime: loads project handlers and fires events at them.
"""

from .runtime import BuildRuntime, Setup

__all__ = ["BuildRuntime", "Setup"]
