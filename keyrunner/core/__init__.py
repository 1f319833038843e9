"""
Core module exports.
"""

from keyrunner.core.interfaces import (
    ArtifactCapture,
    BrowserSession,
    ReportSink,
    SessionFactory,
    SuiteResultListener,
    TestDefinitionSource,
)
from keyrunner.core.types import (
    BrowserFlavor,
    KeywordExecution,
    KeywordResult,
    KeywordStatus,
    SessionConfig,
    SuiteSummary,
    TestCaseDescriptor,
    TestCaseResult,
    TestStatus,
    format_duration,
)

__all__ = [
    # Interfaces
    "ArtifactCapture",
    "BrowserSession",
    "ReportSink",
    "SessionFactory",
    "SuiteResultListener",
    "TestDefinitionSource",
    # Types
    "BrowserFlavor",
    "KeywordExecution",
    "KeywordResult",
    "KeywordStatus",
    "SessionConfig",
    "SuiteSummary",
    "TestCaseDescriptor",
    "TestCaseResult",
    "TestStatus",
    "format_duration",
]
