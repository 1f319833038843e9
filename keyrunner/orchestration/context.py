"""
Per-test-case execution context shared by every keyword of one sequence.
"""

from typing import Any, Dict, List, Mapping, Optional

from keyrunner.browser.session_registry import SessionRegistry, current_unit_id
from keyrunner.core.interfaces import BrowserSession
from keyrunner.monitoring.logger import get_logger

logger = get_logger(__name__)


class ExecutionContext:
    """
    Mutable state of one test case run.

    Holds the input data loaded for the test case, a scratch space keywords
    use to hand values to later keywords, and the pass/fail verdict. Once
    failed, a context never becomes passed again, and the first recorded
    reason is the one reported.
    """

    def __init__(
        self,
        test_id: str,
        test_name: str,
        sessions: Optional[SessionRegistry] = None,
        unit_id: Optional[int] = None,
    ) -> None:
        self._test_id = test_id
        self._test_name = test_name
        self.sessions = sessions
        self.unit_id = current_unit_id() if unit_id is None else unit_id

        self._input_data: Dict[str, Any] = {}
        self._scratch: Dict[str, Any] = {}
        self._passed = True
        self._failure_reason: Optional[str] = None
        self._failure_history: List[str] = []
        self._session: Optional[BrowserSession] = None
        self._cleaned_up = False

    @property
    def test_id(self) -> str:
        return self._test_id

    @property
    def test_name(self) -> str:
        return self._test_name

    # Verdict

    @property
    def passed(self) -> bool:
        return self._passed

    @property
    def failure_reason(self) -> Optional[str]:
        return self._failure_reason

    @property
    def failure_history(self) -> List[str]:
        return list(self._failure_history)

    def set_failed(self, reason: str) -> None:
        """Mark the test case failed. The first reason is kept as the verdict."""
        self._passed = False
        self._failure_history.append(reason)
        if self._failure_reason is None:
            self._failure_reason = reason
        logger.error(f"Test failed: {reason}", extra={"test_id": self._test_id})

    # Input data

    def add_input(self, key: str, value: Any) -> None:
        self._input_data[key] = value

    def set_input_data(self, data: Mapping[str, Any]) -> None:
        self._input_data.update(data)

    def get_input(self, key: str) -> Any:
        return self._input_data.get(key)

    def get_input_as_string(self, key: str) -> Optional[str]:
        value = self._input_data.get(key)
        return None if value is None else str(value)

    def all_input_data(self) -> Dict[str, Any]:
        return dict(self._input_data)

    # Scratch space

    def put(self, key: str, value: Any) -> None:
        self._scratch[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._scratch.get(key, default)

    def get_as_string(self, key: str) -> Optional[str]:
        value = self._scratch.get(key)
        return None if value is None else str(value)

    def has(self, key: str) -> bool:
        return key in self._scratch

    def scratch_snapshot(self) -> Dict[str, Any]:
        return dict(self._scratch)

    # Session

    def attach_session(self, session: Optional[BrowserSession]) -> None:
        self._session = session

    @property
    def session(self) -> Optional[BrowserSession]:
        return self._session

    def cleanup(self) -> None:
        """
        Release what the test case acquired.

        Closes the attached session if it is still the unit's live session,
        then drops the reference and clears the scratch space. Only the first
        call releases the session; every call clears the scratch space. Never
        raises.
        """
        first_cleanup = not self._cleaned_up
        self._cleaned_up = True

        session = self._session
        self._session = None
        if first_cleanup and session is not None and self.sessions is not None:
            try:
                if self.sessions.is_current(session, self.unit_id):
                    self.sessions.close(self.unit_id)
            except Exception as e:
                logger.error(f"Error closing browser during cleanup: {e}")

        self._scratch.clear()

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(test_id={self._test_id!r}, "
            f"passed={self._passed}, failure_reason={self._failure_reason!r})"
        )
