from __future__ import annotations


class ProductRulesError(ValueError):
    """Raised when a product rule table is missing or invalid."""


class ConfigError(ValueError):
    """Raised when segmenter configuration values are out of range."""
