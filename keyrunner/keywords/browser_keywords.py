"""
Built-in browser keywords.

Test data keys read by these keywords:

- ``URL``: NAVIGATE_TO target (falls back to the environment's base URL)
- ``Element``: CSS or XPath selector for CLICK, TYPE and VERIFY_ELEMENT
- ``Text``: text typed by TYPE
- ``State``: expected state for VERIFY_ELEMENT
- ``Title``: expected page title for VERIFY_TITLE
- ``Seconds``: pause length for WAIT
- ``ScreenshotName``: label for TAKE_SCREENSHOT
"""

import re
import time
from typing import Callable, Optional

from keyrunner.browser.driver import PlaywrightSession
from keyrunner.browser.session_registry import SessionRegistry
from keyrunner.config.settings import Settings
from keyrunner.core.interfaces import ArtifactCapture, ReportSink
from keyrunner.keywords.registry import KeywordBuilder, KeywordProvider
from keyrunner.monitoring.logger import get_logger
from keyrunner.orchestration.context import ExecutionContext

logger = get_logger(__name__)

VERIFIABLE_STATES = ("visible", "hidden", "enabled", "disabled", "checked")


class BrowserKeywords(KeywordProvider):
    """Generic keywords that drive the execution unit's browser session."""

    def __init__(
        self,
        sessions: SessionRegistry,
        settings: Settings,
        report: Optional[ReportSink] = None,
        artifacts: Optional[ArtifactCapture] = None,
    ) -> None:
        self.sessions = sessions
        self.settings = settings
        self.report = report
        self.artifacts = artifacts

    def register_keywords(self, builder: KeywordBuilder) -> None:
        builder.add("OPEN_BROWSER", self.open_browser, description="Open a browser session")
        builder.add("CLOSE_BROWSER", self.close_browser, description="Close the browser session")
        builder.add("NAVIGATE_TO", self.navigate_to, description="Navigate to URL or the base URL")
        builder.add("CLICK", self.click, description="Click Element")
        builder.add("TYPE", self.type_text, description="Type Text into Element")
        builder.add("VERIFY_ELEMENT", self.verify_element, description="Check Element is in State")
        builder.add(
            "VERIFY_TITLE", self.verify_title, mandatory=False,
            description="Check the page title contains Title",
        )
        builder.add("WAIT", self.wait, description="Pause for Seconds")
        builder.add(
            "TAKE_SCREENSHOT", self.take_screenshot, mandatory=False,
            description="Capture the current page",
        )

    # Reporting helpers

    def _info(self, context: ExecutionContext, message: str) -> None:
        logger.info(message, extra={"test_id": context.test_id})
        self._to_report("log_info", context, message)

    def _pass(self, context: ExecutionContext, message: str) -> None:
        logger.info(message, extra={"test_id": context.test_id})
        self._to_report("log_pass", context, message)

    def _fail(self, context: ExecutionContext, message: str, mark_failed: bool = True) -> bool:
        logger.error(message, extra={"test_id": context.test_id})
        if mark_failed:
            context.set_failed(message)
        self._to_report("log_fail", context, message)
        return False

    def _to_report(self, method: str, context: ExecutionContext, message: str) -> None:
        if self.report is None:
            return
        try:
            getattr(self.report, method)(context.test_id, context.test_name, message)
        except Exception as e:
            logger.error(f"Report sink call {method} failed: {e}")

    def _screenshot(self, context: ExecutionContext, label: str, caption: str) -> Optional[str]:
        if self.artifacts is None:
            return None
        path = self.artifacts.capture_on_demand(label, context.unit_id)
        if path and self.report is not None:
            try:
                self.report.attach_artifact(context.test_id, context.test_name, path, caption)
            except Exception as e:
                logger.error(f"Failed to attach screenshot: {e}")
        return path

    def _session(self, context: ExecutionContext) -> PlaywrightSession:
        session = context.session
        if session is not None and self.sessions.is_current(session, context.unit_id):
            return session
        session = self.sessions.current(context.unit_id)
        context.attach_session(session)
        return session

    def _required(self, context: ExecutionContext, *keys: str) -> Optional[dict]:
        values = {key: context.get_input_as_string(key) for key in keys}
        missing = [key for key, value in values.items() if not value]
        if missing:
            self._fail(context, f"{' and '.join(missing)} not provided in test data")
            return None
        return values

    def _guard(self, context: ExecutionContext, action: str, body: Callable[[], bool]) -> bool:
        try:
            return body()
        except Exception as e:
            return self._fail(context, f"Failed to {action}: {e}")

    # Keywords

    def open_browser(self, context: ExecutionContext) -> bool:
        self._info(context, "Executing OPEN_BROWSER keyword")

        def body() -> bool:
            session = self.sessions.open(self.settings.session_config(), context.unit_id)
            context.attach_session(session)
            self._pass(context, "Browser opened successfully")
            return True

        return self._guard(context, "open browser", body)

    def close_browser(self, context: ExecutionContext) -> bool:
        self._info(context, "Executing CLOSE_BROWSER keyword")
        try:
            self.sessions.close(context.unit_id)
        except Exception as e:
            return self._fail(context, f"Failed to close browser: {e}", mark_failed=False)
        context.attach_session(None)
        self._pass(context, "Browser closed successfully")
        return True

    def navigate_to(self, context: ExecutionContext) -> bool:
        self._info(context, "Executing NAVIGATE_TO keyword")
        url = context.get_input_as_string("URL")
        if not url:
            url = self.settings.get_base_url()
            if not url:
                return self._fail(context, "URL not provided in test data and no base URL configured")
            self._info(context, f"URL not provided in test data, using base URL: {url}")

        def body() -> bool:
            self._session(context).navigate(url)
            self._pass(context, f"Navigated to URL: {url}")
            self._screenshot(
                context, "Navigate_To_" + re.sub(r"[^a-zA-Z0-9]", "_", url), "Navigation Screenshot"
            )
            return True

        return self._guard(context, "navigate to URL", body)

    def click(self, context: ExecutionContext) -> bool:
        self._info(context, "Executing CLICK keyword")
        values = self._required(context, "Element")
        if values is None:
            return False

        def body() -> bool:
            self._session(context).click(values["Element"])
            self._pass(context, f"Clicked element: {values['Element']}")
            return True

        return self._guard(context, f"click element {values['Element']}", body)

    def type_text(self, context: ExecutionContext) -> bool:
        self._info(context, "Executing TYPE keyword")
        element = context.get_input_as_string("Element")
        if not element:
            return self._fail(context, "Element not provided in test data")
        # Empty text is allowed and clears the field
        text = context.get_input_as_string("Text") or ""

        def body() -> bool:
            self._session(context).fill(element, text)
            self._pass(context, f"Entered text into element: {element}")
            return True

        return self._guard(context, f"type into element {element}", body)

    def verify_element(self, context: ExecutionContext) -> bool:
        self._info(context, "Executing VERIFY_ELEMENT keyword")
        element = context.get_input_as_string("Element")
        if not element:
            return self._fail(context, "Element not provided in test data")
        state = (context.get_input_as_string("State") or "visible").strip().lower()
        if state not in VERIFIABLE_STATES:
            return self._fail(context, f"Unsupported element state: {state}")

        def body() -> bool:
            session = self._session(context)
            if state in ("visible", "hidden"):
                session.wait_for_state(element, state)
                actual = True
            elif state == "enabled":
                actual = session.is_enabled(element)
            elif state == "disabled":
                actual = not session.is_enabled(element)
            else:
                actual = session.is_checked(element)

            if not actual:
                return self._fail(context, f"Element {element} is not {state}")
            self._pass(context, f"Element {element} is {state}")
            return True

        return self._guard(context, f"verify element {element}", body)

    def verify_title(self, context: ExecutionContext) -> bool:
        """Optional check; a mismatch is reported but does not fail the test case."""
        self._info(context, "Executing VERIFY_TITLE keyword")
        expected = context.get_input_as_string("Title")
        if not expected:
            return self._fail(context, "Title not provided in test data", mark_failed=False)

        try:
            actual = self._session(context).title()
        except Exception as e:
            return self._fail(context, f"Failed to read page title: {e}", mark_failed=False)

        if expected not in actual:
            return self._fail(
                context,
                f"Page title mismatch. Expected: {expected}, Actual: {actual}",
                mark_failed=False,
            )
        self._pass(context, f"Page title verified: {actual}")
        return True

    def wait(self, context: ExecutionContext) -> bool:
        raw = context.get_input_as_string("Seconds") or "1"
        try:
            seconds = float(raw)
        except ValueError:
            return self._fail(context, f"Invalid wait time: {raw}")
        if seconds < 0:
            return self._fail(context, f"Invalid wait time: {raw}")

        self._info(context, f"Waiting for {seconds:g} seconds")
        time.sleep(seconds)
        return True

    def take_screenshot(self, context: ExecutionContext) -> Optional[bool]:
        name = context.get_input_as_string("ScreenshotName") or f"{context.test_id}_screenshot"
        path = self._screenshot(context, name, name)
        if path is None:
            return self._fail(context, f"Failed to capture screenshot: {name}", mark_failed=False)
        context.put("LAST_SCREENSHOT", path)
        return None
