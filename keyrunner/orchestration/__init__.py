"""
Orchestration module exports.
"""

from keyrunner.orchestration.context import ExecutionContext
from keyrunner.orchestration.dispatcher import KeywordDispatcher
from keyrunner.orchestration.runner import SuiteRunner

__all__ = [
    "ExecutionContext",
    "KeywordDispatcher",
    "SuiteRunner",
]
