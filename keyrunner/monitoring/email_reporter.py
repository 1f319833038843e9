"""
Email summary of a suite run.

Collects test case results as they finish and, once the suite is done, mails
an HTML summary with the latest HTML report and a ZIP of the run's
screenshots attached.
"""

import smtplib
import threading
import time
import zipfile
from collections import OrderedDict
from datetime import datetime
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Template

from keyrunner.config.settings import Settings
from keyrunner.core.interfaces import SuiteResultListener
from keyrunner.core.types import SuiteSummary, TestCaseResult, format_duration
from keyrunner.error_handling.exceptions import ReportDeliveryError
from keyrunner.monitoring.logger import get_logger

logger = get_logger(__name__)

SCREENSHOT_SUFFIXES = (".png", ".jpg", ".jpeg")
# Screenshots older than this are left out of the ZIP
SCREENSHOT_MAX_AGE_SECONDS = 24 * 60 * 60


EMAIL_TEMPLATE = """
<html>
<head>
<style>
    body { font-family: Arial, sans-serif; margin: 20px; }
    table { border-collapse: collapse; width: 100%; margin: 20px 0; }
    th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
    th { background-color: #f2f2f2; }
    .passed { color: green; font-weight: bold; }
    .failed { color: red; font-weight: bold; }
    .summary { background-color: #f9f9f9; padding: 15px; border-radius: 5px; margin: 20px 0; }
    .header { background-color: #e6f3ff; padding: 15px; border-radius: 5px; margin: 20px 0; }
</style>
</head>
<body>
    <div class="header">
        <h2>{{ title }}</h2>
        <p>Execution Date: {{ execution_date }}<br>
        Total Execution Time: {{ execution_time }}<br>
        Test Environment: {{ environment }}</p>
    </div>

    <div class="summary">
        <h3>Executive Summary</h3>
        <p><strong>Execution Period:</strong> {{ started_at }} to {{ completed_at }}</p>
        <p><strong>Total Tests:</strong> {{ summary.total }}</p>
        <p><strong>Passed:</strong> <span class="passed">{{ summary.passed }}</span></p>
        <p><strong>Failed:</strong> <span class="failed">{{ summary.failed }}</span></p>
        <p><strong>Success Rate:</strong> {{ "%.1f"|format(summary.success_rate) }}%</p>
    </div>

    <h3>Detailed Test Results</h3>
    <table>
        <tr>
            <th>Test ID</th>
            <th>Test Name</th>
            <th>Status</th>
            <th>Duration</th>
            <th>Ticket</th>
            {% for key in metadata_keys %}<th>{{ key }}</th>{% endfor %}
            <th>Timestamp</th>
            <th>Failure Reason</th>
        </tr>
        {% for result in results %}
        <tr>
            <td>{{ result.test_id }}</td>
            <td>{{ result.test_name }}</td>
            <td class="{{ result.status.value }}">{{ result.status.value|upper }}</td>
            <td>{{ result.duration_display }}</td>
            <td>{{ result.ticket_ref or "N/A" }}</td>
            {% for key in metadata_keys %}<td>{{ result.metadata.get(key, "N/A") }}</td>{% endfor %}
            <td>{{ (result.completed_at or result.started_at).strftime("%Y-%m-%d %H:%M:%S") }}</td>
            <td>{{ result.failure_reason or "" }}</td>
        </tr>
        {% endfor %}
    </table>

    {% if tickets %}
    <h3>Ticket Summary</h3>
    <table>
        <tr><th>Ticket</th><th>Total Tests</th><th>Passed</th><th>Failed</th><th>Success Rate</th></tr>
        {% for ticket in tickets %}
        <tr>
            <td>{{ ticket.ticket }}</td>
            <td>{{ ticket.total }}</td>
            <td class="passed">{{ ticket.passed }}</td>
            <td class="failed">{{ ticket.failed }}</td>
            <td>{{ "%.1f"|format(ticket.success_rate) }}%</td>
        </tr>
        {% endfor %}
    </table>
    {% endif %}

    <hr>
    <h3>Attachments Included</h3>
    <ul>
        <li><strong>Full HTML Report:</strong> detailed test execution results, screenshots and logs</li>
        <li><strong>Screenshots ZIP:</strong> all screenshots captured during the run, including failure screenshots</li>
    </ul>
    <hr>
    <p><em>This report was generated automatically by KeyRunner.</em></p>
</body>
</html>
"""


class EmailReporter(SuiteResultListener):
    """Mails the suite summary once the run is finished."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._results: List[TestCaseResult] = []
        self._lock = threading.Lock()
        self.last_sent: Optional[bool] = None

    @property
    def results(self) -> List[TestCaseResult]:
        with self._lock:
            return list(self._results)

    def add_result(self, result: TestCaseResult) -> None:
        with self._lock:
            self._results.append(result)

    def on_suite_finished(self, summary: SuiteSummary) -> None:
        if not self.settings.email_enabled:
            logger.info("Email reporting disabled; skipping summary email")
            return
        self.last_sent = self.send_report(summary)

    def build_subject(self, summary: SuiteSummary, now: Optional[datetime] = None) -> str:
        now = now or datetime.now()
        verdict = "FAILURES DETECTED" if summary.failed > 0 else "ALL PASSED"
        return (
            f"{self.settings.email_subject_prefix} - "
            f"{summary.passed}/{summary.total} Passed ({verdict}) - "
            f"{now.strftime('%Y-%m-%d %H:%M')}"
        )

    def ticket_summary(self, results: List[TestCaseResult]) -> List[Dict[str, object]]:
        """Group results by ticket reference, in first-seen order."""
        groups: "OrderedDict[str, List[TestCaseResult]]" = OrderedDict()
        for result in results:
            if result.ticket_ref:
                groups.setdefault(result.ticket_ref, []).append(result)

        rows = []
        for ticket, grouped in groups.items():
            passed = sum(1 for result in grouped if result.passed)
            rows.append({
                "ticket": ticket,
                "total": len(grouped),
                "passed": passed,
                "failed": len(grouped) - passed,
                "success_rate": passed / len(grouped) * 100,
            })
        return rows

    def render_body(self, summary: SuiteSummary) -> str:
        results = self.results or list(summary.results)
        completed_at = summary.completed_at or datetime.now()
        template = Template(EMAIL_TEMPLATE, autoescape=True)
        return template.render(
            title=f"{self.settings.report_name} Summary",
            execution_date=datetime.now().strftime("%A, %B %d, %Y at %H:%M:%S"),
            execution_time=format_duration(summary.duration_seconds),
            environment=self.settings.environment,
            started_at=summary.started_at.strftime("%Y-%m-%d %H:%M:%S"),
            completed_at=completed_at.strftime("%Y-%m-%d %H:%M:%S"),
            summary=summary,
            results=results,
            metadata_keys=self.settings.result_metadata_keys,
            tickets=self.ticket_summary(results),
        )

    def find_latest_report(self) -> Optional[Path]:
        reports_dir = Path(self.settings.reports_dir)
        if not reports_dir.exists():
            logger.warning(f"Reports directory not found: {reports_dir}")
            return None

        reports = list(reports_dir.glob("TestReport_*.html"))
        if not reports:
            logger.warning(f"No HTML report files found in: {reports_dir}")
            return None
        return max(reports, key=lambda path: path.stat().st_mtime)

    def create_screenshots_zip(self) -> Optional[Path]:
        """ZIP the screenshots taken in the last day. Returns None if there are none."""
        screenshots_dir = Path(self.settings.screenshots_dir)
        if not screenshots_dir.exists():
            logger.warning(f"Screenshots directory not found: {screenshots_dir}")
            return None

        cutoff = time.time() - SCREENSHOT_MAX_AGE_SECONDS
        screenshots = sorted(
            path for path in screenshots_dir.iterdir()
            if path.is_file()
            and path.suffix.lower() in SCREENSHOT_SUFFIXES
            and path.stat().st_mtime >= cutoff
        )
        if not screenshots:
            logger.info(f"No screenshot files found in: {screenshots_dir}")
            return None

        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        zip_path = screenshots_dir / f"Screenshots_{timestamp}.zip"
        with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
            for path in screenshots:
                zf.write(path, path.name)

        logger.info(f"Created screenshots ZIP for attachment: {zip_path}")
        return zip_path

    def build_message(self, summary: SuiteSummary) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = self.settings.smtp_username
        msg["To"] = ", ".join(self.settings.email_recipients)
        msg["Subject"] = self.build_subject(summary)
        msg.attach(MIMEText(self.render_body(summary), "html", "utf-8"))

        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        attachments = []

        report = self.find_latest_report()
        if report is not None:
            attachments.append((report, f"Test_Report_{timestamp}.html"))

        try:
            screenshots_zip = self.create_screenshots_zip()
        except OSError as e:
            logger.error(f"Error creating screenshots ZIP file: {e}")
            screenshots_zip = None
        if screenshots_zip is not None:
            attachments.append((screenshots_zip, f"Test_Screenshots_{timestamp}.zip"))

        for path, name in attachments:
            part = MIMEApplication(path.read_bytes(), Name=name)
            part["Content-Disposition"] = f'attachment; filename="{name}"'
            msg.attach(part)
            logger.info(f"Attached {path}")

        return msg

    def deliver(self, msg: MIMEMultipart) -> None:
        """
        Send a message through the configured SMTP server.

        Raises:
            ReportDeliveryError: If no recipients are configured or SMTP fails
        """
        recipients = self.settings.email_recipients
        if not recipients:
            raise ReportDeliveryError("No email recipients configured", channel="smtp")

        try:
            server = smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=60)
            try:
                if self.settings.smtp_use_tls:
                    server.starttls()
                if self.settings.smtp_username:
                    server.login(self.settings.smtp_username, self.settings.smtp_password)
                server.send_message(msg)
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            raise ReportDeliveryError(
                f"Failed to send email report: {e}",
                channel="smtp",
                recipients=recipients,
                cause=e,
            ) from e

    def send_report(self, summary: SuiteSummary) -> bool:
        """
        Build and send the summary email.

        Returns:
            True if the email was sent, False otherwise
        """
        logger.info("Preparing to send email report")
        try:
            msg = self.build_message(summary)
            self.deliver(msg)
        except ReportDeliveryError as e:
            logger.error(e.message, extra={"error": e.to_dict()})
            return False
        except (OSError, ValueError) as e:
            logger.error(f"Error preparing email report: {e}")
            return False

        logger.info(
            "Email report sent successfully to: "
            + ", ".join(self.settings.email_recipients)
        )
        return True
