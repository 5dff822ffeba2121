"""Task/project tracker built around a dependency graph engine."""

__version__ = "0.1.0"
