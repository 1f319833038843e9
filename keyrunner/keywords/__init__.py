"""
Keyword registry and built-in keyword providers.
"""

from keyrunner.keywords.registry import (
    NOT_FOUND,
    KeywordBuilder,
    KeywordEntry,
    KeywordProvider,
    KeywordRegistry,
    canonical_name,
)

__all__ = [
    "NOT_FOUND",
    "KeywordBuilder",
    "KeywordEntry",
    "KeywordProvider",
    "KeywordRegistry",
    "canonical_name",
]
