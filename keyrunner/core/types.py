"""
Core data models and types for the KeyRunner framework.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BrowserFlavor(str, Enum):
    """Browsers a session can be opened with."""

    CHROME = "chrome"
    FIREFOX = "firefox"
    EDGE = "edge"
    SAFARI = "safari"


class KeywordResult(str, Enum):
    """Outcome reported by a keyword implementation."""

    SUCCESS = "success"
    FAILURE = "failure"
    NO_VERDICT = "no_verdict"  # side-effect keywords that return nothing

    @classmethod
    def from_return(cls, value: Any) -> "KeywordResult":
        """
        Map whatever a keyword implementation returned to a result.

        Booleans map to SUCCESS/FAILURE, a KeywordResult is kept as is and
        anything else (including None) is NO_VERDICT.
        """
        if isinstance(value, KeywordResult):
            return value
        if value is True:
            return cls.SUCCESS
        if value is False:
            return cls.FAILURE
        return cls.NO_VERDICT


class KeywordStatus(str, Enum):
    """Terminal state of one keyword dispatch."""

    PASSED = "passed"
    FAILED = "failed"
    SOFT_FAILED = "soft_failed"


class TestStatus(str, Enum):
    """Verdict of a test case."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"


class SessionConfig(BaseModel):
    """Options used to open a browser session."""

    model_config = ConfigDict(frozen=True)

    browser: str = Field("chrome", description="Browser flavor")
    headless: bool = Field(False, description="Run without a visible window")
    maximize_window: bool = Field(True, description="Maximize the window on open")
    implicit_wait_seconds: int = Field(10, ge=0, description="Default element wait")
    page_load_timeout_seconds: int = Field(60, ge=1, description="Navigation timeout")
    viewport_width: int = Field(1920, ge=1)
    viewport_height: int = Field(1080, ge=1)


class KeywordExecution(BaseModel):
    """Record of a single keyword dispatch."""

    keyword: str = Field(..., description="Canonical keyword name")
    status: KeywordStatus
    reason: Optional[str] = Field(None, description="Failure reason, if any")
    duration_ms: float = Field(0.0, ge=0.0)
    mandatory: bool = True

    @property
    def succeeded(self) -> bool:
        return self.status == KeywordStatus.PASSED


class TestCaseDescriptor(BaseModel):
    """A test case as listed by the test definition source."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    test_id: str = Field(..., description="Test case identifier (e.g., TC001)")
    test_name: str = Field(..., description="Test case name")
    description: str = Field("", description="What the test case covers")
    ticket_ref: Optional[str] = Field(None, description="External ticket reference")


class TestCaseResult(BaseModel):
    """Result of executing one test case."""

    __test__ = False

    test_id: str
    test_name: str
    description: str = ""
    status: TestStatus
    failure_reason: Optional[str] = None
    failure_history: List[str] = Field(default_factory=list)
    ticket_ref: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    keywords: List[KeywordExecution] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    duration_seconds: float = Field(0.0, ge=0.0)

    @property
    def passed(self) -> bool:
        return self.status == TestStatus.PASSED

    @property
    def duration_display(self) -> str:
        return format_duration(self.duration_seconds)


class SuiteSummary(BaseModel):
    """Aggregate outcome of a suite run."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    results: List[TestCaseResult] = Field(default_factory=list)

    @classmethod
    def from_results(
        cls,
        results: List[TestCaseResult],
        started_at: datetime,
        completed_at: Optional[datetime] = None,
    ) -> "SuiteSummary":
        passed = sum(1 for result in results if result.passed)
        return cls(
            total=len(results),
            passed=passed,
            failed=len(results) - passed,
            started_at=started_at,
            completed_at=completed_at or datetime.now(timezone.utc),
            results=list(results),
        )

    @property
    def success_rate(self) -> float:
        """Share of passed test cases in percent."""
        if self.total == 0:
            return 0.0
        return self.passed / self.total * 100

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return max(0.0, (self.completed_at - self.started_at).total_seconds())

    @property
    def all_passed(self) -> bool:
        return self.failed == 0


def format_duration(seconds: float) -> str:
    """Render a duration the way the summary email shows it."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds} seconds"
    if seconds < 3600:
        return f"{seconds // 60} minutes {seconds % 60} seconds"
    return f"{seconds // 3600} hours {(seconds % 3600) // 60} minutes"
