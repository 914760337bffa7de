"""Bezier paths, residual costs and run metrics for a bicycle path-following task."""

__version__ = "0.1.0"
__all__ = ["metrics", "path", "task"]