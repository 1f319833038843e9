"""
Security module exports.
"""

from keyrunner.security.sanitizer import (
    DataSanitizer,
    SensitiveDataPattern,
    sanitize_mapping,
    sanitize_string,
)

__all__ = [
    "DataSanitizer",
    "SensitiveDataPattern",
    "sanitize_mapping",
    "sanitize_string",
]
