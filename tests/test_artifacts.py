"""
Tests for screenshot capture.
"""

from pathlib import Path

import pytest

from keyrunner.monitoring.artifacts import ScreenshotCapture, sanitize_file_name


@pytest.fixture
def capture(sessions, tmp_path):
    return ScreenshotCapture(sessions, tmp_path / "screenshots")


def test_sanitize_file_name():
    assert sanitize_file_name('FAILURE_TC001_Login: a/b*c?"d"<e>|f\\g') == (
        "FAILURE_TC001_Login_ a_b_c__d__e__f_g"
    )


class TestCaptureOnDemand:
    """Tests for capture_on_demand()."""

    def test_writes_png(self, capture, sessions, tmp_path):
        sessions.open(unit_id=1)

        path = capture.capture_on_demand("after_login", unit_id=1)

        assert path is not None
        saved = Path(path)
        assert saved.exists()
        assert saved.parent == tmp_path / "screenshots"
        assert saved.name.startswith("after_login_")
        assert saved.suffix == ".png"

    def test_no_session(self, capture):
        assert capture.capture_on_demand("after_login", unit_id=1) is None

    def test_session_fault(self, capture, sessions):
        session = sessions.open(unit_id=1)

        def broken(path):
            raise RuntimeError("target closed")

        session.save_screenshot = broken

        assert capture.capture_on_demand("after_login", unit_id=1) is None


class TestCaptureOnFailure:
    """Tests for capture_on_failure()."""

    def test_names_file_after_test(self, capture, sessions):
        sessions.open(unit_id=1)

        path = capture.capture_on_failure("TC001", "Login/Logout", "boom", unit_id=1)

        assert Path(path).name.startswith("FAILURE_TC001_Login_Logout_")

    def test_skipped_without_live_session(self, capture, sessions):
        sessions.open(unit_id=1)
        sessions.close(1)

        assert capture.capture_on_failure("TC001", "Login", "boom", unit_id=1) is None
