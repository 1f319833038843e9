"""
Keyword dispatcher.

Resolves a keyword name, runs the implementation inside a fault boundary and
translates its outcome into the context's verdict. Nothing raised by a keyword
escapes a dispatch.
"""

import time

from keyrunner.core.types import KeywordExecution, KeywordResult, KeywordStatus
from keyrunner.keywords.registry import NOT_FOUND, KeywordRegistry, canonical_name
from keyrunner.monitoring.logger import get_logger, log_performance_metric
from keyrunner.orchestration.context import ExecutionContext

logger = get_logger(__name__)


class KeywordDispatcher:
    """Executes keywords by name against an execution context."""

    def __init__(self, registry: KeywordRegistry) -> None:
        self.registry = registry

    def execute(self, name: str, context: ExecutionContext) -> bool:
        """
        Execute a keyword.

        Args:
            name: Keyword name as written in the test flow
            context: Context of the running test case

        Returns:
            True if the keyword succeeded (or gave no verdict), False otherwise
        """
        return self.dispatch(name, context).succeeded

    def dispatch(self, name: str, context: ExecutionContext) -> KeywordExecution:
        """Execute a keyword and return the full record of the dispatch."""
        entry = self.registry.resolve(name)
        if entry is NOT_FOUND:
            reason = f"Unknown keyword: {name}"
            logger.error(reason, extra={"test_id": context.test_id})
            context.set_failed(reason)
            return KeywordExecution(
                keyword=canonical_name(name) if name else "",
                status=KeywordStatus.FAILED,
                reason=reason,
            )

        logger.info(f"Executing keyword: {entry.name}", extra={"test_id": context.test_id})
        start_time = time.perf_counter()

        try:
            returned = entry.implementation(context)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            reason = f"Error executing keyword: {entry.name} - {e}"
            logger.error(reason, exc_info=True, extra={"test_id": context.test_id})
            context.set_failed(reason)
            return KeywordExecution(
                keyword=entry.name,
                status=KeywordStatus.FAILED,
                reason=reason,
                duration_ms=elapsed_ms,
                mandatory=entry.mandatory,
            )

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        log_performance_metric(
            "keyword_execution",
            elapsed_ms,
            context={"keyword": entry.name, "test_id": context.test_id},
        )

        result = KeywordResult.from_return(returned)

        if result == KeywordResult.SUCCESS:
            logger.info(f"Keyword passed: {entry.name}")
            status = KeywordStatus.PASSED
            reason = None
        elif result == KeywordResult.NO_VERDICT:
            if returned is not None:
                logger.warning(
                    f"Keyword {entry.name} returned non-boolean value: "
                    f"{type(returned).__name__}. Treating as success."
                )
            else:
                logger.info(f"Keyword completed without verdict: {entry.name}")
            status = KeywordStatus.PASSED
            reason = None
        elif entry.mandatory:
            reason = f"Mandatory keyword failed: {entry.name}"
            logger.error(reason, extra={"test_id": context.test_id})
            if context.failure_reason is None:
                context.set_failed(reason)
            else:
                reason = context.failure_reason
            status = KeywordStatus.FAILED
        else:
            reason = f"Optional keyword failed: {entry.name}"
            logger.warning(f"{reason}. Continuing test execution.")
            status = KeywordStatus.SOFT_FAILED

        return KeywordExecution(
            keyword=entry.name,
            status=status,
            reason=reason,
            duration_ms=elapsed_ms,
            mandatory=entry.mandatory,
        )
