"""RIPAUDIT: Audio quality audit engine for ripped music libraries."""

__version__ = "0.1.0"
