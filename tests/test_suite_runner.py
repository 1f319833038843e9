"""
Tests for the suite runner using in-memory test definitions and fake sessions.
"""

import threading
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from keyrunner.core.interfaces import (
    ArtifactCapture,
    ReportSink,
    SuiteResultListener,
    TestDefinitionSource,
)
from keyrunner.core.types import KeywordStatus, TestCaseDescriptor, TestStatus
from keyrunner.error_handling.exceptions import TestDefinitionError
from keyrunner.keywords.registry import KeywordBuilder, KeywordProvider, KeywordRegistry
from keyrunner.orchestration.dispatcher import KeywordDispatcher
from keyrunner.orchestration.runner import SuiteRunner


class InMemorySource(TestDefinitionSource):
    """Test definitions held in dictionaries."""

    def __init__(
        self,
        flows: Dict[str, List[Optional[str]]],
        data: Optional[Dict[str, Dict[str, str]]] = None,
        list_error: Optional[Exception] = None,
    ):
        self.flows = flows
        self.data = data or {}
        self.list_error = list_error

    def list_active_cases(self) -> List[TestCaseDescriptor]:
        if self.list_error is not None:
            raise self.list_error
        return [
            TestCaseDescriptor(test_id=test_id, test_name=f"Case {test_id}")
            for test_id in self.flows
        ]

    def load_input_data(self, test_id: str) -> Dict[str, str]:
        return dict(self.data.get(test_id, {}))

    def load_keyword_sequence(self, test_id: str) -> List[Optional[str]]:
        return list(self.flows.get(test_id, []))


class RecordingKeywords(KeywordProvider):
    """Keywords that record their invocations and drive the fake session."""

    def __init__(self, sessions):
        self.sessions = sessions
        self.calls: List[tuple] = []
        self.lock = threading.Lock()

    def _record(self, name, context):
        with self.lock:
            self.calls.append((context.test_id, name, threading.get_ident()))

    def register_keywords(self, builder: KeywordBuilder) -> None:
        builder.add("OPEN", self.open_browser)
        builder.add("LOGIN", self.login)
        builder.add("CLOSE", self.close_browser)
        builder.add("STORE_ID", self.store_id)
        builder.add("CHECK_BANNER", self.check_banner, mandatory=False)
        builder.add("EXPLODE", self.explode)

    def open_browser(self, context):
        self._record("OPEN", context)
        context.attach_session(self.sessions.open(unit_id=context.unit_id))
        return True

    def login(self, context):
        self._record("LOGIN", context)
        if context.get_input("Username") == "locked":
            context.set_failed("Login failed")
            return False
        return True

    def close_browser(self, context):
        self._record("CLOSE", context)
        self.sessions.close(context.unit_id)
        return True

    def store_id(self, context):
        self._record("STORE_ID", context)
        context.put("TECS_ID", f"ID-{context.test_id}")

    def check_banner(self, context):
        self._record("CHECK_BANNER", context)
        return False

    def explode(self, context):
        self._record("EXPLODE", context)
        raise ValueError("stale element")


@pytest.fixture
def keywords(sessions):
    return RecordingKeywords(sessions)


@pytest.fixture
def dispatcher(keywords):
    return KeywordDispatcher(KeywordRegistry([keywords]))


def _called(keywords, test_id):
    return [name for case, name, _ in keywords.calls if case == test_id]


class TestSequentialRun:
    """Tests for single-threaded suite execution."""

    def test_all_keywords_pass(self, dispatcher, keywords, sessions, settings):
        source = InMemorySource({"TC001": ["OPEN", "LOGIN", "CLOSE"]})
        runner = SuiteRunner(source, dispatcher, sessions, settings)

        summary = runner.run()

        assert summary.total == 1
        assert summary.passed == 1
        assert summary.all_passed
        result = summary.results[0]
        assert result.status == TestStatus.PASSED
        assert result.failure_reason is None
        assert [k.keyword for k in result.keywords] == ["OPEN", "LOGIN", "CLOSE"]

    def test_mandatory_failure_stops_sequence(self, dispatcher, keywords, sessions, settings):
        source = InMemorySource(
            {"TC001": ["OPEN", "LOGIN", "CLOSE"]},
            data={"TC001": {"Username": "locked"}},
        )
        runner = SuiteRunner(source, dispatcher, sessions, settings)

        summary = runner.run()

        result = summary.results[0]
        assert result.status == TestStatus.FAILED
        assert result.failure_reason == "Login failed"
        assert _called(keywords, "TC001") == ["OPEN", "LOGIN"]

    def test_session_closed_even_when_close_is_skipped(
        self, dispatcher, sessions, session_factory, settings
    ):
        source = InMemorySource(
            {"TC001": ["OPEN", "LOGIN", "CLOSE"]},
            data={"TC001": {"Username": "locked"}},
        )
        SuiteRunner(source, dispatcher, sessions, settings).run()

        assert session_factory.created[0].quit_calls == 1
        assert sessions.active_units() == []

    def test_optional_failure_continues(self, dispatcher, keywords, sessions, settings):
        source = InMemorySource({"TC001": ["OPEN", "CHECK_BANNER", "CLOSE"]})

        summary = SuiteRunner(source, dispatcher, sessions, settings).run()

        result = summary.results[0]
        assert result.passed
        assert _called(keywords, "TC001") == ["OPEN", "CHECK_BANNER", "CLOSE"]
        assert result.keywords[1].status == KeywordStatus.SOFT_FAILED

    def test_unknown_keyword_fails_case(self, dispatcher, keywords, sessions, settings):
        source = InMemorySource({"TC001": ["OPEN", "FLY_AWAY", "CLOSE"]})

        summary = SuiteRunner(source, dispatcher, sessions, settings).run()

        assert summary.results[0].failure_reason == "Unknown keyword: FLY_AWAY"
        assert _called(keywords, "TC001") == ["OPEN"]

    def test_keyword_exception_fails_case(self, dispatcher, keywords, sessions, settings):
        source = InMemorySource({"TC001": ["EXPLODE", "CLOSE"]})

        summary = SuiteRunner(source, dispatcher, sessions, settings).run()

        assert summary.results[0].failure_reason == (
            "Error executing keyword: EXPLODE - stale element"
        )
        assert _called(keywords, "TC001") == ["EXPLODE"]

    def test_empty_sequence_fails_case(self, dispatcher, sessions, settings):
        source = InMemorySource({"TC001": []})

        summary = SuiteRunner(source, dispatcher, sessions, settings).run()

        assert summary.results[0].failure_reason == "No keywords found for test ID: TC001"

    def test_blank_keywords_are_skipped(self, dispatcher, keywords, sessions, settings):
        source = InMemorySource({"TC001": ["OPEN", "", None, "  ", "CLOSE"]})

        summary = SuiteRunner(source, dispatcher, sessions, settings).run()

        assert summary.results[0].passed
        assert _called(keywords, "TC001") == ["OPEN", "CLOSE"]

    def test_source_fault_becomes_exception_reason(self, dispatcher, sessions, settings):
        source = InMemorySource({"TC001": ["OPEN"]})
        source.load_input_data = MagicMock(side_effect=OSError("sheet locked"))

        summary = SuiteRunner(source, dispatcher, sessions, settings).run()

        assert summary.results[0].failure_reason == "Exception: sheet locked"

    def test_cases_are_independent(self, dispatcher, keywords, sessions, settings):
        source = InMemorySource(
            {"TC001": ["OPEN", "LOGIN"], "TC002": ["OPEN", "LOGIN", "CLOSE"]},
            data={"TC001": {"Username": "locked"}, "TC002": {"Username": "jdoe"}},
        )

        summary = SuiteRunner(source, dispatcher, sessions, settings).run()

        assert [r.test_id for r in summary.results] == ["TC001", "TC002"]
        assert [r.passed for r in summary.results] == [False, True]
        assert summary.failed == 1

    def test_metadata_collected_from_scratch(self, dispatcher, sessions, settings):
        source = InMemorySource({"TC001": ["STORE_ID"], "TC002": ["OPEN"]})

        summary = SuiteRunner(source, dispatcher, sessions, settings).run()

        assert summary.results[0].metadata == {"TECS_ID": "ID-TC001"}
        assert summary.results[1].metadata == {}

    def test_no_active_cases(self, dispatcher, sessions, settings):
        summary = SuiteRunner(InMemorySource({}), dispatcher, sessions, settings).run()

        assert summary.total == 0
        assert summary.results == []


class TestReportingAndListeners:
    """Tests for report sink and listener interaction."""

    def test_report_sink_sequence(self, dispatcher, sessions, settings, tmp_path):
        report = MagicMock(spec=ReportSink)
        report.end_suite.return_value = tmp_path / "TestReport.html"
        source = InMemorySource({"TC001": ["OPEN", "CLOSE"]})
        runner = SuiteRunner(source, dispatcher, sessions, settings, report=report)

        runner.run()

        report.begin_suite.assert_called_once_with()
        report.begin_case.assert_called_once_with("TC001", "Case TC001", "")
        report.log_info.assert_any_call("TC001", "Case TC001", "Executing keyword: OPEN")
        report.mark_case_passed.assert_called_once_with(
            "TC001", "Case TC001", "Test case passed successfully"
        )
        report.end_suite.assert_called_once_with()
        assert runner.last_report_path == tmp_path / "TestReport.html"

    def test_failure_captures_and_attaches_screenshot(self, dispatcher, sessions, settings):
        report = MagicMock(spec=ReportSink)
        artifacts = MagicMock(spec=ArtifactCapture)
        artifacts.capture_on_failure.return_value = Path("/tmp/FAILURE_TC001.png")
        source = InMemorySource({"TC001": ["OPEN", "EXPLODE"]})

        SuiteRunner(
            source, dispatcher, sessions, settings, report=report, artifacts=artifacts
        ).run()

        reason = "Error executing keyword: EXPLODE - stale element"
        artifacts.capture_on_failure.assert_called_once()
        assert artifacts.capture_on_failure.call_args.args[:3] == ("TC001", "Case TC001", reason)
        report.log_fail.assert_called_once_with("TC001", "Case TC001", reason)
        report.attach_artifact.assert_called_once_with(
            "TC001", "Case TC001", Path("/tmp/FAILURE_TC001.png"), "Failure Screenshot"
        )
        report.mark_case_failed.assert_called_once_with(
            "TC001", "Case TC001", f"Test failed: {reason}"
        )

    def test_screenshot_taken_before_session_teardown(
        self, dispatcher, sessions, session_factory, settings
    ):
        seen = {}

        def capture(test_id, test_name, reason, unit_id=None):
            seen["active"] = sessions.is_active(unit_id)

        artifacts = MagicMock(spec=ArtifactCapture)
        artifacts.capture_on_failure.side_effect = capture
        source = InMemorySource({"TC001": ["OPEN", "EXPLODE"]})

        SuiteRunner(source, dispatcher, sessions, settings, artifacts=artifacts).run()

        assert seen["active"] is True
        assert session_factory.created[0].quit_calls == 1

    def test_optional_failure_logged_as_warning(self, dispatcher, sessions, settings):
        report = MagicMock(spec=ReportSink)
        source = InMemorySource({"TC001": ["CHECK_BANNER"]})

        SuiteRunner(source, dispatcher, sessions, settings, report=report).run()

        report.log_warning.assert_called_once_with(
            "TC001", "Case TC001", "Optional keyword failed: CHECK_BANNER"
        )

    def test_faulting_screenshot_capture_does_not_abort(
        self, dispatcher, keywords, sessions, session_factory, settings
    ):
        report = MagicMock(spec=ReportSink)
        artifacts = MagicMock(spec=ArtifactCapture)
        artifacts.capture_on_failure.side_effect = RuntimeError("disk full")
        listener = MagicMock(spec=SuiteResultListener)
        source = InMemorySource({"TC001": ["OPEN", "EXPLODE"], "TC002": ["OPEN", "CLOSE"]})
        runner = SuiteRunner(
            source, dispatcher, sessions, settings,
            report=report, artifacts=artifacts, listeners=[listener],
        )

        summary = runner.run()

        assert [r.passed for r in summary.results] == [False, True]
        assert summary.results[0].failure_reason == (
            "Error executing keyword: EXPLODE - stale element"
        )
        assert _called(keywords, "TC002") == ["OPEN", "CLOSE"]
        report.attach_artifact.assert_not_called()
        report.mark_case_failed.assert_called_once()
        report.end_suite.assert_called_once_with()
        assert listener.add_result.call_count == 2
        assert all(session.quit_calls == 1 for session in session_factory.created)

    def test_result_recording_fault_fails_case(self, dispatcher, sessions, settings):
        report = MagicMock(spec=ReportSink)
        source = InMemorySource({"TC001": ["OPEN"], "TC002": ["OPEN"]})
        runner = SuiteRunner(source, dispatcher, sessions, settings, report=report)
        runner._collect_metadata = MagicMock(side_effect=[ValueError("bad metadata"), {}])

        summary = runner.run()

        assert [r.test_id for r in summary.results] == ["TC001", "TC002"]
        assert summary.results[0].status == TestStatus.FAILED
        assert summary.results[0].failure_reason == "Exception: bad metadata"
        assert summary.results[1].passed
        report.mark_case_failed.assert_called_once_with(
            "TC001", "Case TC001", "Test failed: Exception: bad metadata"
        )
        report.end_suite.assert_called_once_with()

    def test_faulting_report_sink_does_not_abort(self, dispatcher, sessions, settings):
        report = MagicMock(spec=ReportSink)
        report.begin_case.side_effect = RuntimeError("disk full")
        report.log_info.side_effect = RuntimeError("disk full")
        report.end_suite.side_effect = RuntimeError("disk full")
        source = InMemorySource({"TC001": ["OPEN", "CLOSE"], "TC002": ["OPEN"]})
        runner = SuiteRunner(source, dispatcher, sessions, settings, report=report)

        summary = runner.run()

        assert summary.total == 2
        assert summary.all_passed
        assert runner.last_report_path is None

    def test_listeners_receive_results_and_summary(self, dispatcher, sessions, settings):
        listener = MagicMock(spec=SuiteResultListener)
        source = InMemorySource({"TC001": ["OPEN"], "TC002": ["EXPLODE"]})

        summary = SuiteRunner(
            source, dispatcher, sessions, settings, listeners=[listener]
        ).run()

        assert listener.add_result.call_count == 2
        listener.on_suite_finished.assert_called_once_with(summary)

    def test_faulting_listener_does_not_abort(self, dispatcher, sessions, settings):
        broken = MagicMock(spec=SuiteResultListener)
        broken.add_result.side_effect = RuntimeError("smtp down")
        healthy = MagicMock(spec=SuiteResultListener)
        source = InMemorySource({"TC001": ["OPEN"]})

        SuiteRunner(
            source, dispatcher, sessions, settings, listeners=[broken, healthy]
        ).run()

        healthy.add_result.assert_called_once()
        healthy.on_suite_finished.assert_called_once()


class TestListingFailure:
    """Tests for a source that cannot list its cases."""

    def test_report_still_emitted(self, dispatcher, sessions, settings):
        report = MagicMock(spec=ReportSink)
        listener = MagicMock(spec=SuiteResultListener)
        source = InMemorySource({}, list_error=OSError("TestRunner.xlsx missing"))
        runner = SuiteRunner(
            source, dispatcher, sessions, settings, report=report, listeners=[listener]
        )

        with pytest.raises(TestDefinitionError) as exc_info:
            runner.run()

        assert "TestRunner.xlsx missing" in exc_info.value.message
        report.begin_suite.assert_called_once_with()
        report.end_suite.assert_called_once_with()
        listener.on_suite_finished.assert_called_once()
        assert listener.on_suite_finished.call_args.args[0].total == 0

    def test_definition_error_propagates_unchanged(self, dispatcher, sessions, settings):
        error = TestDefinitionError("bad workbook")
        source = InMemorySource({}, list_error=error)

        with pytest.raises(TestDefinitionError) as exc_info:
            SuiteRunner(source, dispatcher, sessions, settings).run()

        assert exc_info.value is error


class TestParallelRun:
    """Tests for thread-pool execution."""

    def test_results_keep_source_order(self, dispatcher, keywords, sessions, settings):
        flows = {f"TC{i:03d}": ["OPEN", "STORE_ID", "CLOSE"] for i in range(1, 7)}
        parallel = settings.model_copy(update={"parallel_workers": 3})

        summary = SuiteRunner(InMemorySource(flows), dispatcher, sessions, parallel).run()

        assert [r.test_id for r in summary.results] == list(flows)
        assert summary.all_passed
        assert all(r.metadata["TECS_ID"] == f"ID-{r.test_id}" for r in summary.results)

    def test_each_case_runs_on_one_thread(self, dispatcher, keywords, sessions, settings):
        flows = {f"TC{i:03d}": ["OPEN", "STORE_ID", "CLOSE"] for i in range(1, 7)}
        parallel = settings.model_copy(update={"parallel_workers": 3})

        SuiteRunner(InMemorySource(flows), dispatcher, sessions, parallel).run()

        for test_id in flows:
            threads = {thread for case, _, thread in keywords.calls if case == test_id}
            assert len(threads) == 1

    def test_every_case_gets_fresh_session(
        self, dispatcher, sessions, session_factory, settings
    ):
        flows = {f"TC{i:03d}": ["OPEN", "LOGIN"] for i in range(1, 7)}
        data = {test_id: {"Username": "locked"} for test_id in flows}
        parallel = settings.model_copy(update={"parallel_workers": 3})

        summary = SuiteRunner(InMemorySource(flows, data), dispatcher, sessions, parallel).run()

        assert summary.failed == 6
        assert len(session_factory.created) == 6
        assert all(session.quit_calls == 1 for session in session_factory.created)
        assert sessions.active_units() == []
