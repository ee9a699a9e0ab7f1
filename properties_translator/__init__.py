"""Translate Java .properties files while preserving their exact layout."""

__version__ = "0.1.0"
