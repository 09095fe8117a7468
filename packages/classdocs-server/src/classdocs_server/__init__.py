"""Documentation lookup server for API classes, interfaces and enums."""

__version__ = "2.0.0"
