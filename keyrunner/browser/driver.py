"""
Playwright browser session implementation.

Each execution unit is a worker thread, and the Playwright sync API binds its
objects to the thread that started them, so every session owns its own
Playwright instance.
"""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.sync_api import Browser, BrowserContext, Page, sync_playwright

from keyrunner.core.interfaces import BrowserSession, SessionFactory
from keyrunner.core.types import BrowserFlavor, SessionConfig
from keyrunner.monitoring.logger import get_logger, log_performance_metric

logger = get_logger(__name__)

# Element states understood by wait_for_state(); maps onto Playwright locator states.
ELEMENT_STATES = ("visible", "hidden", "attached", "detached")


class PlaywrightSession(BrowserSession):
    """A browser, context and page owned by one execution unit."""

    def __init__(self, config: SessionConfig) -> None:
        self.config = config
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    def start(self) -> None:
        """Launch the browser and open a page with the configured policy."""
        flavor = resolve_flavor(self.config.browser)
        engine_name, channel = _ENGINES[flavor]

        self._playwright = sync_playwright().start()
        engine = getattr(self._playwright, engine_name)

        launch_options: Dict[str, Any] = {"headless": self.config.headless}
        if channel:
            launch_options["channel"] = channel
        # Only Chromium understands --start-maximized; headless windows have no size to maximize
        maximize = (
            self.config.maximize_window
            and not self.config.headless
            and engine_name == "chromium"
        )
        if maximize:
            launch_options["args"] = ["--start-maximized"]

        logger.info(
            f"Starting {flavor.value} browser",
            extra={
                "headless": self.config.headless,
                "maximize": maximize,
            },
        )
        self._browser = engine.launch(**launch_options)

        if maximize:
            self._context = self._browser.new_context(no_viewport=True)
        else:
            self._context = self._browser.new_context(
                viewport={
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                }
            )
        self._context.set_default_timeout(self.config.implicit_wait_seconds * 1000)
        self._context.set_default_navigation_timeout(
            self.config.page_load_timeout_seconds * 1000
        )
        self._page = self._context.new_page()

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser not started. Call start() first.")
        return self._page

    def navigate(self, url: str) -> None:
        """Navigate to a URL."""
        logger.info("Navigating to URL", extra={"url": url})
        start_time = time.perf_counter()

        self.page.goto(url, wait_until="load")

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        log_performance_metric("page_navigation", elapsed_ms, context={"url": url})

    def click(self, selector: str) -> None:
        self.page.locator(selector).first.click()

    def fill(self, selector: str, text: str) -> None:
        self.page.locator(selector).first.fill(text)

    def is_visible(self, selector: str) -> bool:
        return self.page.locator(selector).first.is_visible()

    def is_enabled(self, selector: str) -> bool:
        return self.page.locator(selector).first.is_enabled()

    def is_checked(self, selector: str) -> bool:
        return self.page.locator(selector).first.is_checked()

    def wait_for_state(self, selector: str, state: str = "visible") -> None:
        """Wait until an element reaches a state, within the default timeout."""
        if state not in ELEMENT_STATES:
            raise ValueError(f"Unsupported element state: {state}")
        self.page.locator(selector).first.wait_for(state=state)

    def title(self) -> str:
        return self.page.title()

    def current_url(self) -> str:
        return self.page.url

    def save_screenshot(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.page.screenshot(path=str(path), full_page=False)

    def quit(self) -> None:
        """Close page, context and browser, then stop Playwright."""
        errors: List[str] = []
        for name, closer in (
            ("page", self._page),
            ("context", self._context),
            ("browser", self._browser),
        ):
            if closer is None:
                continue
            try:
                closer.close()
            except Exception as e:
                errors.append(f"{name}: {e}")

        self._page = None
        self._context = None
        self._browser = None

        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                errors.append(f"playwright: {e}")
            self._playwright = None

        if errors:
            raise RuntimeError("Browser teardown incomplete: " + "; ".join(errors))
        logger.info("Browser stopped")


_ENGINES = {
    BrowserFlavor.CHROME: ("chromium", None),
    BrowserFlavor.EDGE: ("chromium", "msedge"),
    BrowserFlavor.FIREFOX: ("firefox", None),
    BrowserFlavor.SAFARI: ("webkit", None),
}


def resolve_flavor(name: str) -> BrowserFlavor:
    """Map a configured browser name to a flavor, defaulting to Chrome."""
    try:
        return BrowserFlavor(name.strip().lower())
    except ValueError:
        logger.warning(f"Unsupported browser '{name}'. Defaulting to Chrome.")
        return BrowserFlavor.CHROME


class PlaywrightSessionFactory(SessionFactory):
    """Creates started Playwright sessions."""

    def create(self, config: SessionConfig) -> PlaywrightSession:
        session = PlaywrightSession(config)
        try:
            session.start()
        except Exception:
            # Release whatever part of the stack did start
            try:
                session.quit()
            except Exception as e:
                logger.debug(f"Cleanup after failed start also failed: {e}")
            raise
        return session
