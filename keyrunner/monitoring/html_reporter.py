"""
HTML suite report.

Collects per-test-case log entries, screenshots and verdicts while the suite
runs (from any number of worker threads) and renders a single HTML file when
the suite ends.
"""

import os
import platform
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Template

from keyrunner.config.settings import Settings
from keyrunner.core.interfaces import ReportSink
from keyrunner.monitoring.logger import get_logger
from keyrunner.security.sanitizer import DataSanitizer

logger = get_logger(__name__)


HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            margin: 0;
            padding: 20px;
            background: #f5f5f5;
            line-height: 1.6;
        }
        .container {
            max-width: 1400px;
            margin: 0 auto;
            background: white;
            padding: 30px;
            border-radius: 8px;
            box-shadow: 0 2px 8px rgba(0,0,0,0.1);
        }
        h1, h2, h3 { color: #333; }
        .report-info { color: #666; margin-bottom: 20px; }
        .summary {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(180px, 1fr));
            gap: 20px;
            margin: 30px 0;
        }
        .metric {
            background: #f9f9f9;
            padding: 20px;
            border-radius: 6px;
            text-align: center;
        }
        .metric-value { font-size: 2.2em; font-weight: bold; }
        .metric-label {
            color: #666;
            font-size: 0.9em;
            text-transform: uppercase;
            letter-spacing: 1px;
        }
        .passed { color: #4caf50; }
        .failed { color: #f44336; }
        .warning { color: #ff9800; }
        .info { color: #2196f3; }
        .running { color: #9e9e9e; }
        table { width: 100%; border-collapse: collapse; margin: 10px 0; }
        th, td { padding: 8px 12px; text-align: left; border-bottom: 1px solid #e0e0e0; }
        th { background: #f5f5f5; font-weight: 600; }
        .test-case {
            border: 1px solid #e0e0e0;
            border-left: 6px solid #9e9e9e;
            border-radius: 6px;
            padding: 15px 20px;
            margin: 20px 0;
        }
        .test-case.passed { border-left-color: #4caf50; }
        .test-case.failed { border-left-color: #f44336; }
        .test-header { display: flex; justify-content: space-between; color: #333; }
        .category {
            background: #e8eaf6;
            padding: 2px 8px;
            border-radius: 4px;
            font-size: 0.85em;
        }
        .details { font-family: monospace; margin: 10px 0; }
        .screenshot-container { margin: 10px 0; }
        .screenshot-container img { max-width: 600px; border: 1px solid #ddd; border-radius: 4px; }
        .footer {
            margin-top: 40px;
            padding-top: 20px;
            border-top: 1px solid #e0e0e0;
            text-align: center;
            color: #666;
            font-size: 0.9em;
        }
    </style>
</head>
<body>
    <div class="container">
        <h1>{{ report_name }}</h1>
        <div class="report-info">
            Started: {{ started_at }} | Generated: {{ generated_at }}
        </div>

        <div class="summary">
            <div class="metric">
                <div class="metric-value">{{ total }}</div>
                <div class="metric-label">Test Cases</div>
            </div>
            <div class="metric">
                <div class="metric-value passed">{{ passed }}</div>
                <div class="metric-label">Passed</div>
            </div>
            <div class="metric">
                <div class="metric-value failed">{{ failed }}</div>
                <div class="metric-label">Failed</div>
            </div>
            <div class="metric">
                <div class="metric-value">{{ success_rate }}%</div>
                <div class="metric-label">Success Rate</div>
            </div>
        </div>

        <h2>Environment</h2>
        <table>
            {% for name, value in system_info.items() %}
            <tr><th width="200">{{ name }}</th><td>{{ value }}</td></tr>
            {% endfor %}
        </table>

        <h2>Test Cases</h2>
        {% for case in cases %}
        <div class="test-case {{ case.status }}">
            <div class="test-header">
                <h3>{{ case.test_id }} - {{ case.test_name }}</h3>
                <div>
                    <span class="category">{{ category }}</span>
                    <strong class="{{ case.status }}">{{ case.status|upper }}</strong>
                </div>
            </div>
            {% if case.description %}<div>{{ case.description }}</div>{% endif %}
            <table>
                <thead>
                    <tr><th width="120">Time</th><th width="100">Status</th><th>Details</th></tr>
                </thead>
                <tbody>
                    {% for entry in case.entries %}
                    <tr>
                        <td>{{ entry.time }}</td>
                        <td><span class="{{ entry.level }}">{{ entry.level|upper }}</span></td>
                        <td>{{ entry.message }}</td>
                    </tr>
                    {% endfor %}
                </tbody>
            </table>
            {% for artifact in case.artifacts %}
            <div class="screenshot-container">
                <div>{{ artifact.caption }}</div>
                <a href="{{ artifact.path }}"><img src="{{ artifact.path }}" alt="{{ artifact.caption }}"></a>
            </div>
            {% endfor %}
            {% if case.details %}<div class="details">{{ case.details }}</div>{% endif %}
        </div>
        {% endfor %}

        <div class="footer">
            Generated by KeyRunner
        </div>
    </div>
</body>
</html>
"""


@dataclass
class _LogEntry:
    time: str
    level: str
    message: str


@dataclass
class _Artifact:
    path: str
    caption: str


@dataclass
class _CaseRecord:
    test_id: str
    test_name: str
    description: str
    status: str = "running"
    details: str = ""
    entries: List[_LogEntry] = field(default_factory=list)
    artifacts: List[_Artifact] = field(default_factory=list)


class HtmlReportSink(ReportSink):
    """Thread-safe report sink that writes one HTML file per suite."""

    def __init__(self, settings: Settings, sanitizer: Optional[DataSanitizer] = None) -> None:
        self.settings = settings
        self.reports_dir = Path(settings.reports_dir)
        self.sanitizer = sanitizer or (DataSanitizer() if settings.sanitize_logs else None)
        self._lock = threading.Lock()
        self._cases: Dict[str, _CaseRecord] = {}
        self._started_at: Optional[datetime] = None
        self.report_path: Optional[Path] = None

    def begin_suite(self) -> None:
        with self._lock:
            self._cases = {}
            self._started_at = datetime.now()
            timestamp = self._started_at.strftime("%Y%m%d_%H%M%S")
            self.report_path = self.reports_dir / f"TestReport_{timestamp}.html"
        logger.info(f"HTML report will be written to {self.report_path}")

    def begin_case(self, test_id: str, test_name: str, description: str) -> None:
        with self._lock:
            self._cases[test_id] = _CaseRecord(
                test_id=test_id, test_name=test_name, description=description or ""
            )

    def _record(self, test_id: str, test_name: str) -> _CaseRecord:
        # Caller holds the lock
        record = self._cases.get(test_id)
        if record is None:
            record = _CaseRecord(test_id=test_id, test_name=test_name, description="")
            self._cases[test_id] = record
        return record

    def _log(self, level: str, test_id: str, test_name: str, message: str) -> None:
        if self.sanitizer and message:
            message = self.sanitizer.sanitize_string(message)
        entry = _LogEntry(
            time=datetime.now().strftime("%H:%M:%S"), level=level, message=message or ""
        )
        with self._lock:
            self._record(test_id, test_name).entries.append(entry)

    def log_info(self, test_id: str, test_name: str, message: str) -> None:
        self._log("info", test_id, test_name, message)

    def log_pass(self, test_id: str, test_name: str, message: str) -> None:
        self._log("passed", test_id, test_name, message)

    def log_fail(self, test_id: str, test_name: str, message: str) -> None:
        self._log("failed", test_id, test_name, message)

    def log_warning(self, test_id: str, test_name: str, message: str) -> None:
        self._log("warning", test_id, test_name, message)

    def attach_artifact(
        self, test_id: str, test_name: str, artifact_path: str, caption: str
    ) -> None:
        relative = self._relative_to_report(artifact_path)
        with self._lock:
            self._record(test_id, test_name).artifacts.append(
                _Artifact(path=relative, caption=caption)
            )

    def mark_case_passed(self, test_id: str, test_name: str, details: str) -> None:
        self._finish_case(test_id, test_name, "passed", details)

    def mark_case_failed(self, test_id: str, test_name: str, details: str) -> None:
        self._finish_case(test_id, test_name, "failed", details)

    def _finish_case(self, test_id: str, test_name: str, status: str, details: str) -> None:
        if self.sanitizer and details:
            details = self.sanitizer.sanitize_string(details)
        with self._lock:
            record = self._record(test_id, test_name)
            record.status = status
            record.details = details or ""

    def _relative_to_report(self, artifact_path: str) -> str:
        """Artifact path as seen from the report directory, with forward slashes."""
        try:
            relative = os.path.relpath(Path(artifact_path).resolve(), self.reports_dir.resolve())
        except ValueError:
            # Different drive on Windows
            relative = str(artifact_path)
        return relative.replace(os.sep, "/")

    def system_info(self) -> Dict[str, str]:
        return {
            "OS": platform.platform(),
            "Python Version": platform.python_version(),
            "Browser": self.settings.browser,
            "Environment": self.settings.environment,
            "Base URL": self.settings.get_base_url() or "N/A",
        }

    def end_suite(self) -> Optional[Path]:
        """Render and write the report. Returns the report path."""
        with self._lock:
            if self.report_path is None:
                logger.warning("end_suite called before begin_suite; nothing to write")
                return None
            cases = list(self._cases.values())
            started_at = self._started_at

        total = len(cases)
        passed = sum(1 for case in cases if case.status == "passed")
        failed = sum(1 for case in cases if case.status == "failed")

        template = Template(HTML_TEMPLATE, autoescape=True)
        html_content = template.render(
            title=self.settings.report_title,
            report_name=self.settings.report_name,
            category=self.settings.report_category,
            started_at=started_at.strftime("%Y-%m-%d %H:%M:%S") if started_at else "",
            generated_at=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            total=total,
            passed=passed,
            failed=failed,
            success_rate=int(passed / total * 100) if total else 0,
            system_info=self.system_info(),
            cases=cases,
        )

        self.report_path.parent.mkdir(parents=True, exist_ok=True)
        self.report_path.write_text(html_content, encoding="utf-8")
        logger.info(f"Generated HTML report: {self.report_path}")
        return self.report_path
