"""
Shared fixtures: in-memory browser sessions and settings rooted in tmp_path.
"""

import threading
from pathlib import Path
from typing import List, Optional

import pytest

from keyrunner.browser.session_registry import SessionRegistry
from keyrunner.config.settings import Settings
from keyrunner.core.interfaces import BrowserSession, SessionFactory
from keyrunner.core.types import SessionConfig


class FakeSession(BrowserSession):
    """Browser session that records calls instead of driving a browser."""

    def __init__(self, config: SessionConfig, fail_on_quit: bool = False):
        self.config = config
        self.fail_on_quit = fail_on_quit
        self.quit_calls = 0
        self.visited: List[str] = []
        self.clicked: List[str] = []
        self.filled: List[tuple] = []
        self.page_title = "Example Domain"
        self.enabled = True
        self.checked = False
        self.fail_selectors: List[str] = []
        self.owner_thread = threading.get_ident()

    def navigate(self, url: str) -> None:
        self.visited.append(url)

    def click(self, selector: str) -> None:
        if selector in self.fail_selectors:
            raise RuntimeError(f"Timeout waiting for {selector}")
        self.clicked.append(selector)

    def fill(self, selector: str, text: str) -> None:
        self.filled.append((selector, text))

    def is_enabled(self, selector: str) -> bool:
        return self.enabled

    def is_checked(self, selector: str) -> bool:
        return self.checked

    def wait_for_state(self, selector: str, state: str = "visible") -> None:
        if selector in self.fail_selectors:
            raise RuntimeError(f"Timeout waiting for {selector} to be {state}")

    def title(self) -> str:
        return self.page_title

    def save_screenshot(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x89PNG fake")

    def quit(self) -> None:
        self.quit_calls += 1
        if self.fail_on_quit:
            raise RuntimeError("browser crashed")


class FakeSessionFactory(SessionFactory):
    """Creates FakeSessions and remembers them."""

    def __init__(self, fail_with: Optional[Exception] = None, fail_on_quit: bool = False):
        self.fail_with = fail_with
        self.fail_on_quit = fail_on_quit
        self.created: List[FakeSession] = []
        self._lock = threading.Lock()

    def create(self, config: SessionConfig) -> FakeSession:
        if self.fail_with is not None:
            raise self.fail_with
        session = FakeSession(config, fail_on_quit=self.fail_on_quit)
        with self._lock:
            self.created.append(session)
        return session


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def sessions(session_factory: FakeSessionFactory) -> SessionRegistry:
    return SessionRegistry(session_factory)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, writing under tmp_path."""
    return Settings(
        _env_file=None,
        reports_dir=tmp_path / "reports",
        screenshots_dir=tmp_path / "reports" / "screenshots",
        excel_dir=tmp_path / "excel",
        base_urls={"QA": "https://qa.example.com"},
        email_enabled=False,
    )
