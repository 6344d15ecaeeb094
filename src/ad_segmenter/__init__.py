"""
ad_segmenter package exports convenience helpers for library consumers.
"""

from __future__ import annotations

from .config import SegmenterConfig, config_from_dict, config_from_yaml, load_config
from .errors import ConfigError, ProductRulesError
from .models import Candidate, Segment, SegmentationResult, Token
from .pipeline import Segmenter, segment_text
from .rules import (
    ProductRules,
    load_product_rules,
    load_product_rules_for,
    product_rules_from_dict,
)

__all__ = [
    "SegmenterConfig",
    "config_from_dict",
    "config_from_yaml",
    "load_config",
    "ConfigError",
    "ProductRulesError",
    "Candidate",
    "Segment",
    "SegmentationResult",
    "Token",
    "Segmenter",
    "segment_text",
    "ProductRules",
    "load_product_rules",
    "load_product_rules_for",
    "product_rules_from_dict",
]

__version__ = "0.1.0"
