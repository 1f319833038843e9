"""
Custom exception hierarchy for KeyRunner error handling.

Faults are recovered at the narrowest boundary that can translate them into a
test-case verdict; the types below are what crosses those boundaries.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class KeyRunnerError(Exception):
    """Base exception for all KeyRunner errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


class SessionError(KeyRunnerError):
    """Error raised while creating or driving a browser session."""

    def __init__(
        self,
        message: str,
        browser: Optional[str] = None,
        unit_id: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.browser = browser
        self.unit_id = unit_id
        self.details.update({
            "browser": browser,
            "unit_id": unit_id
        })


class SessionNotInitializedError(SessionError):
    """Raised when a session is requested before open() or after teardown."""

    def __init__(self, unit_id: Optional[int] = None, **kwargs):
        super().__init__(
            "Browser session not initialized or has been closed. "
            "Call open() first.",
            unit_id=unit_id,
            **kwargs
        )


class KeywordRegistrationError(KeyRunnerError):
    """Error raised when a keyword provider cannot be registered."""

    def __init__(
        self,
        message: str,
        provider: str,
        keyword: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.provider = provider
        self.keyword = keyword
        self.details.update({
            "provider": provider,
            "keyword": keyword
        })


class TestDefinitionError(KeyRunnerError):
    """Error raised when test definitions cannot be read."""

    __test__ = False

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        test_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.source = source
        self.test_id = test_id
        self.details.update({
            "source": source,
            "test_id": test_id
        })


class ReportDeliveryError(KeyRunnerError):
    """Error raised when a report cannot be rendered or transmitted."""

    def __init__(
        self,
        message: str,
        channel: str,
        recipients: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.channel = channel
        self.recipients = recipients or []
        self.details.update({
            "channel": channel,
            "recipients": recipients
        })
