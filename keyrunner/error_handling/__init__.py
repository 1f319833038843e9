"""
Error handling for KeyRunner.

This module provides the exception hierarchy shared by the keyword engine,
the session registry, the test definition sources and the reporters.
"""

from .exceptions import (
    KeyRunnerError,
    KeywordRegistrationError,
    ReportDeliveryError,
    SessionError,
    SessionNotInitializedError,
    TestDefinitionError,
)

__all__ = [
    "KeyRunnerError",
    "KeywordRegistrationError",
    "ReportDeliveryError",
    "SessionError",
    "SessionNotInitializedError",
    "TestDefinitionError",
]
