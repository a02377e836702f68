"""PomoGuard — a crash-safe focus/break interval timer."""

__version__ = "0.1.0"
