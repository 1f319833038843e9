"""
Browser module exports.
"""

from keyrunner.browser.driver import (
    PlaywrightSession,
    PlaywrightSessionFactory,
    resolve_flavor,
)
from keyrunner.browser.session_registry import SessionRegistry, current_unit_id

__all__ = [
    "PlaywrightSession",
    "PlaywrightSessionFactory",
    "SessionRegistry",
    "current_unit_id",
    "resolve_flavor",
]
