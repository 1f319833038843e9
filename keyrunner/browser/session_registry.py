"""
Per-execution-unit browser session registry.

Each execution unit (a worker thread by default) owns at most one live browser
session. Slots are keyed by an explicit unit id so that parallel test cases
never share a browser.
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from keyrunner.core.interfaces import BrowserSession, SessionFactory
from keyrunner.core.types import SessionConfig
from keyrunner.error_handling.exceptions import (
    SessionError,
    SessionNotInitializedError,
)
from keyrunner.monitoring.logger import get_logger

logger = get_logger(__name__)


def current_unit_id() -> int:
    """Execution unit id of the calling thread."""
    return threading.get_ident()


@dataclass
class _SessionSlot:
    session: Optional[BrowserSession] = None
    torn_down: bool = False

    @property
    def live(self) -> bool:
        return self.session is not None and not self.torn_down


class SessionRegistry:
    """Owns the browser session of every execution unit."""

    def __init__(
        self,
        factory: SessionFactory,
        default_config: Optional[SessionConfig] = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            factory: Creates sessions with timeouts and window policy applied
            default_config: Config used when open() is called without one
        """
        self.factory = factory
        self.default_config = default_config or SessionConfig()
        self._slots: Dict[int, _SessionSlot] = {}
        self._lock = threading.Lock()

    def _slot(self, unit_id: int) -> Optional[_SessionSlot]:
        with self._lock:
            return self._slots.get(unit_id)

    def current(self, unit_id: Optional[int] = None) -> BrowserSession:
        """
        Get the live session of an execution unit.

        Raises:
            SessionNotInitializedError: If no session is open for the unit
        """
        unit = current_unit_id() if unit_id is None else unit_id
        slot = self._slot(unit)
        if slot is None or not slot.live:
            raise SessionNotInitializedError(unit_id=unit)
        return slot.session

    def open(
        self,
        config: Optional[SessionConfig] = None,
        unit_id: Optional[int] = None,
    ) -> BrowserSession:
        """
        Open a browser session for an execution unit.

        Opening while a live session exists is a no-op that returns it.

        Raises:
            SessionError: If the browser cannot be created
        """
        unit = current_unit_id() if unit_id is None else unit_id
        config = config or self.default_config

        slot = self._slot(unit)
        if slot is not None and slot.live:
            logger.warning("Browser already initialized for this thread", extra={"unit_id": unit})
            return slot.session

        if slot is not None and slot.session is not None:
            # Discard the torn-down handle before replacing it
            slot.session = None

        logger.info(f"Initializing {config.browser} browser", extra={"unit_id": unit})
        try:
            session = self.factory.create(config)
        except Exception as e:
            logger.error(f"Failed to initialize browser: {e}", extra={"unit_id": unit})
            raise SessionError(
                f"Failed to initialize browser: {e}",
                browser=config.browser,
                unit_id=unit,
                cause=e,
            ) from e

        with self._lock:
            self._slots[unit] = _SessionSlot(session=session, torn_down=False)
        return session

    def close(self, unit_id: Optional[int] = None) -> None:
        """
        Quit the live session of an execution unit.

        The slot is always marked torn down; teardown faults are logged only.
        """
        unit = current_unit_id() if unit_id is None else unit_id
        slot = self._slot(unit)
        if slot is None:
            return

        session = slot.session
        if session is not None and not slot.torn_down:
            try:
                session.quit()
                logger.info("Browser closed", extra={"unit_id": unit})
            except Exception as e:
                logger.error(f"Error closing browser: {e}", extra={"unit_id": unit})
        slot.torn_down = True

    def reset(self, unit_id: Optional[int] = None) -> None:
        """Close the session and forget the unit's slot entirely."""
        unit = current_unit_id() if unit_id is None else unit_id
        self.close(unit)
        with self._lock:
            self._slots.pop(unit, None)

    def is_active(self, unit_id: Optional[int] = None) -> bool:
        unit = current_unit_id() if unit_id is None else unit_id
        slot = self._slot(unit)
        return slot is not None and slot.live

    def is_current(self, session: BrowserSession, unit_id: Optional[int] = None) -> bool:
        """Whether the given session is the unit's live session."""
        unit = current_unit_id() if unit_id is None else unit_id
        slot = self._slot(unit)
        return slot is not None and slot.live and slot.session is session

    def active_units(self) -> List[int]:
        with self._lock:
            return [unit for unit, slot in self._slots.items() if slot.live]

    def close_all(self) -> None:
        """Reset every known unit. Used on interpreter shutdown paths."""
        with self._lock:
            units = list(self._slots)
        for unit in units:
            self.reset(unit)
