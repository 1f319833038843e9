"""
Core interfaces and abstract base classes for the KeyRunner framework.

These are the narrow contracts through which the keyword engine talks to its
collaborators: where test definitions come from, where results are reported,
how screenshots are captured and how browser sessions are created.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from keyrunner.core.types import (
    SessionConfig,
    SuiteSummary,
    TestCaseDescriptor,
    TestCaseResult,
)


class TestDefinitionSource(ABC):
    """Abstract source of test cases, keyword sequences and input data."""

    __test__ = False

    @abstractmethod
    def list_active_cases(self) -> List[TestCaseDescriptor]:
        """
        List the test cases selected for execution, in execution order.

        Raises:
            TestDefinitionError: If the definitions cannot be read
        """
        pass

    @abstractmethod
    def load_input_data(self, test_id: str) -> Dict[str, str]:
        """
        Load the input data for a test case.

        Args:
            test_id: Test case identifier

        Returns:
            Mapping of input key to value (empty when none is defined)
        """
        pass

    @abstractmethod
    def load_keyword_sequence(self, test_id: str) -> List[str]:
        """
        Load the ordered keyword names for a test case.

        Args:
            test_id: Test case identifier

        Returns:
            Keyword names in execution order (may be empty)
        """
        pass


class ReportSink(ABC):
    """Abstract receiver of suite and test case progress."""

    @abstractmethod
    def begin_suite(self) -> None:
        """Start a new suite report."""
        pass

    @abstractmethod
    def begin_case(self, test_id: str, test_name: str, description: str) -> None:
        """Start a test case entry."""
        pass

    @abstractmethod
    def log_info(self, test_id: str, test_name: str, message: str) -> None:
        pass

    @abstractmethod
    def log_pass(self, test_id: str, test_name: str, message: str) -> None:
        pass

    @abstractmethod
    def log_fail(self, test_id: str, test_name: str, message: str) -> None:
        pass

    @abstractmethod
    def log_warning(self, test_id: str, test_name: str, message: str) -> None:
        pass

    @abstractmethod
    def attach_artifact(
        self, test_id: str, test_name: str, artifact_path: str, caption: str
    ) -> None:
        """Attach a file (usually a screenshot) to a test case entry."""
        pass

    @abstractmethod
    def mark_case_passed(self, test_id: str, test_name: str, details: str) -> None:
        pass

    @abstractmethod
    def mark_case_failed(self, test_id: str, test_name: str, details: str) -> None:
        pass

    @abstractmethod
    def end_suite(self) -> Optional[Path]:
        """
        Finish the suite report.

        Returns:
            Path of the written report, if the sink writes one
        """
        pass


class ArtifactCapture(ABC):
    """Abstract screenshot capture. Implementations never raise."""

    @abstractmethod
    def capture_on_demand(
        self, label: str, unit_id: Optional[int] = None
    ) -> Optional[str]:
        """
        Capture the current browser view.

        Args:
            label: Base name for the artifact
            unit_id: Execution unit whose session is captured

        Returns:
            Path of the saved artifact, or None on failure
        """
        pass

    @abstractmethod
    def capture_on_failure(
        self,
        test_id: str,
        test_name: str,
        reason: Optional[str],
        unit_id: Optional[int] = None,
    ) -> Optional[str]:
        """Capture the browser view for a failed test case."""
        pass


class BrowserSession(ABC):
    """A live browser handle owned by one execution unit."""

    @abstractmethod
    def navigate(self, url: str) -> None:
        pass

    @abstractmethod
    def quit(self) -> None:
        """Tear the browser down and release every resource it holds."""
        pass

    @abstractmethod
    def save_screenshot(self, path: Path) -> None:
        pass


class SessionFactory(ABC):
    """Abstract creator of browser sessions."""

    @abstractmethod
    def create(self, config: SessionConfig) -> BrowserSession:
        """
        Create a configured browser session.

        Args:
            config: Browser flavor, window policy and timeouts

        Returns:
            Ready to use session
        """
        pass


class SuiteResultListener(ABC):
    """Abstract consumer of finished test case results."""

    @abstractmethod
    def add_result(self, result: TestCaseResult) -> None:
        pass

    @abstractmethod
    def on_suite_finished(self, summary: SuiteSummary) -> None:
        pass
