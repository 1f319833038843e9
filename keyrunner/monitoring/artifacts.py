"""
Screenshot capture through the session registry.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from keyrunner.browser.session_registry import SessionRegistry
from keyrunner.core.interfaces import ArtifactCapture
from keyrunner.monitoring.logger import get_logger

logger = get_logger(__name__)

_INVALID_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


def sanitize_file_name(name: str) -> str:
    """Replace characters that are not allowed in file names."""
    return _INVALID_FILENAME_CHARS.sub("_", name)


class ScreenshotCapture(ArtifactCapture):
    """Saves PNG screenshots of an execution unit's live session."""

    def __init__(self, sessions: SessionRegistry, screenshots_dir: Path) -> None:
        self.sessions = sessions
        self.screenshots_dir = Path(screenshots_dir)

    def capture_on_demand(
        self, label: str, unit_id: Optional[int] = None
    ) -> Optional[str]:
        try:
            session = self.sessions.current(unit_id)
        except Exception as e:
            logger.error(f"Cannot take screenshot - no browser session: {e}")
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        file_path = self.screenshots_dir / f"{sanitize_file_name(label)}_{timestamp}.png"
        try:
            session.save_screenshot(file_path)
        except Exception as e:
            logger.error(f"Failed to take screenshot: {label}: {e}")
            return None

        logger.info(f"Screenshot saved: {file_path}")
        return str(file_path)

    def capture_on_failure(
        self,
        test_id: str,
        test_name: str,
        reason: Optional[str],
        unit_id: Optional[int] = None,
    ) -> Optional[str]:
        if not self.sessions.is_active(unit_id):
            logger.info(f"No browser session to capture for failed test {test_id}")
            return None
        return self.capture_on_demand(f"FAILURE_{test_id}_{test_name}", unit_id)
