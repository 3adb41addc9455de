"""Kita-kita: Filipino personal-finance agents."""

__version__ = "2.0.0"
