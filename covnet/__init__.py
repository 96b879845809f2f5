"""Cross-entity covenant correlation and contagion risk engine."""

__version__ = "1.0.0"
