"""
Monitoring and reporting module exports.
"""

from keyrunner.monitoring.artifacts import ScreenshotCapture, sanitize_file_name
from keyrunner.monitoring.email_reporter import EmailReporter
from keyrunner.monitoring.html_reporter import HtmlReportSink
from keyrunner.monitoring.logger import (
    get_logger,
    log_performance_metric,
    log_test_event,
    setup_logging,
)

__all__ = [
    "EmailReporter",
    "HtmlReportSink",
    "ScreenshotCapture",
    "get_logger",
    "log_performance_metric",
    "log_test_event",
    "sanitize_file_name",
    "setup_logging",
]
