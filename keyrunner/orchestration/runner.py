"""
Suite runner.

Runs every active test case through the keyword dispatcher, one fresh
execution context per case, and feeds the outcome to the report sink and
result listeners. Cases run sequentially or on a thread pool; each worker
thread is its own execution unit with its own browser session.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from keyrunner.browser.session_registry import SessionRegistry, current_unit_id
from keyrunner.config.settings import Settings
from keyrunner.core.interfaces import (
    ArtifactCapture,
    ReportSink,
    SuiteResultListener,
    TestDefinitionSource,
)
from keyrunner.core.types import (
    KeywordExecution,
    KeywordStatus,
    SuiteSummary,
    TestCaseDescriptor,
    TestCaseResult,
    TestStatus,
)
from keyrunner.error_handling.exceptions import TestDefinitionError
from keyrunner.monitoring.logger import get_logger, log_test_event
from keyrunner.orchestration.context import ExecutionContext
from keyrunner.orchestration.dispatcher import KeywordDispatcher

logger = get_logger(__name__)


class SuiteRunner:
    """Executes the active test cases of a test definition source."""

    def __init__(
        self,
        source: TestDefinitionSource,
        dispatcher: KeywordDispatcher,
        sessions: SessionRegistry,
        settings: Settings,
        report: Optional[ReportSink] = None,
        artifacts: Optional[ArtifactCapture] = None,
        listeners: Optional[Sequence[SuiteResultListener]] = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            source: Where test cases, keyword sequences and input data come from
            dispatcher: Executes keywords by name
            sessions: Browser sessions, reset after every test case
            settings: Parallelism and result metadata keys
            report: Optional report sink
            artifacts: Optional screenshot capture used on failure
            listeners: Consumers of finished results (e.g. the email reporter)
        """
        self.source = source
        self.dispatcher = dispatcher
        self.sessions = sessions
        self.settings = settings
        self.report = report
        self.artifacts = artifacts
        self.listeners: List[SuiteResultListener] = list(listeners or [])
        self.last_report_path: Optional[Path] = None

    def run(self) -> SuiteSummary:
        """
        Run the suite.

        Returns:
            Aggregate outcome of every executed test case

        Raises:
            TestDefinitionError: If the active test cases cannot be listed.
                The final report is still emitted first.
        """
        started_at = datetime.now(timezone.utc)
        logger.info("========== Starting Test Execution ==========")
        self._report("begin_suite")

        try:
            cases = self.source.list_active_cases()
        except Exception as e:
            logger.error(f"Failed to list test cases: {e}")
            self._finish_suite([], started_at)
            if isinstance(e, TestDefinitionError):
                raise
            raise TestDefinitionError(
                f"Failed to list test cases: {e}", cause=e
            ) from e

        logger.info(f"Found {len(cases)} test cases to execute")

        workers = min(self.settings.parallel_workers, max(len(cases), 1))
        if workers <= 1:
            results = [self.run_case(case) for case in cases]
        else:
            logger.info(f"Running test cases on {workers} worker threads")
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="keyrunner"
            ) as executor:
                futures = [executor.submit(self.run_case, case) for case in cases]
                results = [future.result() for future in futures]

        summary = self._finish_suite(results, started_at)
        logger.info("========== Test Execution Completed ==========")
        logger.info(
            f"Total: {summary.total}, Passed: {summary.passed}, Failed: {summary.failed}"
        )
        return summary

    def run_case(self, descriptor: TestCaseDescriptor) -> TestCaseResult:
        """
        Run one test case on the calling thread's execution unit.

        Never raises; every fault ends up in the returned result.
        """
        unit_id = current_unit_id()
        context = ExecutionContext(
            descriptor.test_id, descriptor.test_name, self.sessions, unit_id
        )
        executions: List[KeywordExecution] = []
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()

        log_test_event("started", descriptor.test_id, descriptor.test_name)
        self._report(
            "begin_case", descriptor.test_id, descriptor.test_name, descriptor.description
        )

        try:
            try:
                self._execute_sequence(descriptor, context, executions)
            except Exception as e:
                logger.error(
                    f"Exception in test case {descriptor.test_id}: {e}", exc_info=True
                )
                context.set_failed(f"Exception: {e}")

            try:
                result = self._build_result(
                    descriptor, context, executions, started_at, start_time
                )
            except Exception as e:
                logger.error(
                    f"Exception while recording test case {descriptor.test_id}: {e}",
                    exc_info=True,
                )
                context.set_failed(f"Exception: {e}")
                result = TestCaseResult(
                    test_id=descriptor.test_id,
                    test_name=descriptor.test_name,
                    description=descriptor.description,
                    status=TestStatus.FAILED,
                    failure_reason=context.failure_reason,
                    failure_history=context.failure_history,
                    ticket_ref=descriptor.ticket_ref,
                    keywords=executions,
                    started_at=started_at,
                    completed_at=datetime.now(timezone.utc),
                    duration_seconds=time.perf_counter() - start_time,
                )
            self._report_outcome(result, unit_id)
        finally:
            context.cleanup()
            self.sessions.reset(unit_id)

        log_test_event(
            "passed" if result.passed else "failed",
            descriptor.test_id,
            descriptor.test_name,
        )
        return result

    def _execute_sequence(
        self,
        descriptor: TestCaseDescriptor,
        context: ExecutionContext,
        executions: List[KeywordExecution],
    ) -> None:
        context.set_input_data(self.source.load_input_data(descriptor.test_id))
        keywords = self.source.load_keyword_sequence(descriptor.test_id)

        if not keywords:
            context.set_failed(f"No keywords found for test ID: {descriptor.test_id}")
            return

        for keyword in keywords:
            if keyword is None or not str(keyword).strip():
                continue
            keyword = str(keyword).strip()

            self._report(
                "log_info", descriptor.test_id, descriptor.test_name,
                f"Executing keyword: {keyword}",
            )
            execution = self.dispatcher.dispatch(keyword, context)
            executions.append(execution)

            if execution.status == KeywordStatus.SOFT_FAILED:
                self._report(
                    "log_warning", descriptor.test_id, descriptor.test_name,
                    execution.reason,
                )
            elif execution.status == KeywordStatus.FAILED:
                self._report(
                    "log_fail", descriptor.test_id, descriptor.test_name,
                    execution.reason,
                )

            if not execution.succeeded and not context.passed:
                logger.error(f"Stopping test execution due to keyword failure: {keyword}")
                break

    def _build_result(
        self,
        descriptor: TestCaseDescriptor,
        context: ExecutionContext,
        executions: List[KeywordExecution],
        started_at: datetime,
        start_time: float,
    ) -> TestCaseResult:
        return TestCaseResult(
            test_id=descriptor.test_id,
            test_name=descriptor.test_name,
            description=descriptor.description,
            status=TestStatus.PASSED if context.passed else TestStatus.FAILED,
            failure_reason=context.failure_reason,
            failure_history=context.failure_history,
            ticket_ref=descriptor.ticket_ref,
            metadata=self._collect_metadata(context),
            keywords=executions,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            duration_seconds=time.perf_counter() - start_time,
        )

    def _collect_metadata(self, context: ExecutionContext) -> Dict[str, str]:
        metadata: Dict[str, str] = {}
        for key in self.settings.result_metadata_keys:
            value = context.get_as_string(key)
            if value:
                metadata[key] = value
        return metadata

    def _report_outcome(self, result: TestCaseResult, unit_id: int) -> None:
        if result.passed:
            self._report(
                "mark_case_passed", result.test_id, result.test_name,
                "Test case passed successfully",
            )
        else:
            screenshot = self._capture_failure(result, unit_id)
            if screenshot:
                self._report(
                    "attach_artifact", result.test_id, result.test_name,
                    screenshot, "Failure Screenshot",
                )
            self._report(
                "mark_case_failed", result.test_id, result.test_name,
                f"Test failed: {result.failure_reason}",
            )

        for listener in self.listeners:
            self._notify(listener, "add_result", result)

    def _capture_failure(self, result: TestCaseResult, unit_id: int) -> Optional[str]:
        """Failure screenshot; capture faults never abort the suite."""
        if self.artifacts is None:
            return None
        try:
            return self.artifacts.capture_on_failure(
                result.test_id, result.test_name, result.failure_reason, unit_id
            )
        except Exception as e:
            logger.error(f"Failure screenshot for {result.test_id} failed: {e}")
            return None

    def _finish_suite(
        self, results: List[TestCaseResult], started_at: datetime
    ) -> SuiteSummary:
        self.last_report_path = self._report("end_suite")
        summary = SuiteSummary.from_results(results, started_at)
        for listener in self.listeners:
            self._notify(listener, "on_suite_finished", summary)
        return summary

    def _report(self, method: str, *args: Any) -> Any:
        """Call a report sink method; reporting faults never abort the suite."""
        if self.report is None:
            return None
        try:
            return getattr(self.report, method)(*args)
        except Exception as e:
            logger.error(f"Report sink call {method} failed: {e}")
            return None

    def _notify(self, listener: SuiteResultListener, method: str, *args: Any) -> None:
        try:
            getattr(listener, method)(*args)
        except Exception as e:
            logger.error(
                f"Result listener {listener.__class__.__name__}.{method} failed: {e}"
            )
