"""Near-real-time 2D position sync over TCP."""

__version__ = "1.0.0"
