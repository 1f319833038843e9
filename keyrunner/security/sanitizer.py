"""
Credential masking for logs and reports.

Test input data routinely carries login passwords and tokens, and keyword
messages echo that data back. Everything written to a log handler or to a
report goes through this module first.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Pattern

logger = logging.getLogger(__name__)

MASK = "********"

SENSITIVE_KEYS = [
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
]


@dataclass
class SensitiveDataPattern:
    """Pattern for finding a credential inside free text."""

    name: str
    pattern: Pattern[str]
    # Group holding the secret part; 0 masks the whole match.
    secret_group: int = 0
    description: str = ""
    enabled: bool = True


class DataSanitizer:
    """Masks credentials in strings, input data mappings and log records."""

    def __init__(self, sensitive_keys: Optional[List[str]] = None):
        self.sensitive_keys = [k.lower() for k in (sensitive_keys or SENSITIVE_KEYS)]
        self.patterns: List[SensitiveDataPattern] = []
        self._setup_default_patterns()

    def _setup_default_patterns(self) -> None:
        self.patterns.extend([
            SensitiveDataPattern(
                name="key_value",
                pattern=re.compile(
                    r'\b(password|passwd|pwd|secret|token|api[_-]?key)\s*[:=]\s*["\']?([^"\'\s,;]+)',
                    re.IGNORECASE,
                ),
                secret_group=2,
                description="key=value or key: value credentials",
            ),
            SensitiveDataPattern(
                name="bearer_token",
                pattern=re.compile(r'(Bearer\s+)([A-Za-z0-9\-._~+/]+=*)', re.IGNORECASE),
                secret_group=2,
                description="Bearer authentication tokens",
            ),
            SensitiveDataPattern(
                name="url_credentials",
                pattern=re.compile(r'(\b[a-z][a-z0-9+.-]*://[^/\s:@]+:)([^/\s@]+)(@)', re.IGNORECASE),
                secret_group=2,
                description="user:password@host in URLs",
            ),
        ])

    def add_pattern(self, pattern: SensitiveDataPattern) -> None:
        """Add a custom pattern."""
        self.patterns.append(pattern)

    def is_sensitive_key(self, key: str) -> bool:
        key_lower = key.lower()
        return any(sensitive in key_lower for sensitive in self.sensitive_keys)

    def sanitize_string(self, text: str) -> str:
        """
        Mask every credential found in free text.

        Args:
            text: Text to sanitize

        Returns:
            Sanitized text
        """
        if not text:
            return text

        result = text
        for pattern in self.patterns:
            if not pattern.enabled:
                continue
            result = pattern.pattern.sub(
                lambda match, p=pattern: self._mask_match(match, p), result
            )
        return result

    @staticmethod
    def _mask_match(match: "re.Match[str]", pattern: SensitiveDataPattern) -> str:
        if pattern.secret_group == 0:
            return MASK
        whole = match.group(0)
        start = match.start(pattern.secret_group) - match.start(0)
        end = match.end(pattern.secret_group) - match.start(0)
        return whole[:start] + MASK + whole[end:]

    def sanitize_mapping(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of a mapping with sensitive values masked.

        Values under a sensitive key are replaced outright; other string
        values are scanned with the text patterns.
        """
        result: Dict[str, Any] = {}
        for key, value in data.items():
            if self.is_sensitive_key(str(key)) and value not in (None, ""):
                result[key] = MASK
            elif isinstance(value, str):
                result[key] = self.sanitize_string(value)
            elif isinstance(value, Mapping):
                result[key] = self.sanitize_mapping(value)
            else:
                result[key] = value
        return result

    def sanitize_log_record(self, record: logging.LogRecord) -> logging.LogRecord:
        """
        Sanitize a log record in place.

        Args:
            record: Log record to sanitize

        Returns:
            The same record
        """
        if isinstance(record.msg, str):
            record.msg = self.sanitize_string(record.msg)

        if record.args:
            if isinstance(record.args, Mapping):
                record.args = self.sanitize_mapping(record.args)
            else:
                record.args = tuple(
                    self.sanitize_string(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return record


_default_sanitizer = DataSanitizer()


def sanitize_string(text: str) -> str:
    """Sanitize a string using the default patterns."""
    return _default_sanitizer.sanitize_string(text)


def sanitize_mapping(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Sanitize a mapping using the default keys and patterns."""
    return _default_sanitizer.sanitize_mapping(data)
