"""
Configuration module exports.
"""

from keyrunner.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
