"""
KeyRunner - Keyword-Driven UI Test Runner
Main entry point for the application.
"""

import argparse
import sys
from pathlib import Path
from typing import Iterable, Optional, Tuple

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from keyrunner import __version__
from keyrunner.browser.driver import PlaywrightSessionFactory
from keyrunner.browser.session_registry import SessionRegistry
from keyrunner.config.settings import Settings, get_settings
from keyrunner.core.interfaces import TestDefinitionSource
from keyrunner.core.types import SuiteSummary
from keyrunner.data.excel_source import ExcelTestDefinitionSource
from keyrunner.data.json_source import JsonTestDefinitionSource
from keyrunner.error_handling.exceptions import KeyRunnerError, TestDefinitionError
from keyrunner.keywords.browser_keywords import BrowserKeywords
from keyrunner.keywords.registry import KeywordProvider, KeywordRegistry
from keyrunner.monitoring.artifacts import ScreenshotCapture
from keyrunner.monitoring.email_reporter import EmailReporter
from keyrunner.monitoring.html_reporter import HtmlReportSink
from keyrunner.monitoring.logger import get_logger, setup_logging
from keyrunner.orchestration.dispatcher import KeywordDispatcher
from keyrunner.orchestration.runner import SuiteRunner

console = Console()
logger = get_logger("keyrunner.main")

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_STARTUP_ERROR = 2


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description=f"KeyRunner - Keyword-Driven UI Test Runner v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the active test cases of the Excel workbooks
  keyrunner --excel-dir resources/excel

  # Run a JSON suite headless on four workers
  keyrunner --json-suite suites/smoke.json --headless --workers 4

  # List every registered keyword
  keyrunner --list-keywords
        """,
    )

    source_group = parser.add_mutually_exclusive_group()
    source_group.add_argument(
        "--excel-dir",
        type=Path,
        help="Directory holding TestRunner.xlsx, TestFlow.xlsx and TestData.xlsx",
    )
    source_group.add_argument(
        "--json-suite",
        type=Path,
        help="JSON suite file with test cases, keywords and data",
    )

    parser.add_argument(
        "--browser",
        choices=["chrome", "firefox", "edge", "safari"],
        help="Browser to run the tests in",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        default=None,
        help="Run browser in headless mode",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Number of test cases run in parallel",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Directory for reports and screenshots",
    )
    parser.add_argument(
        "--no-email",
        action="store_true",
        help="Do not send the summary email",
    )
    parser.add_argument(
        "--list-keywords",
        action="store_true",
        help="List registered keywords and exit",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )

    return parser


def show_version() -> int:
    """Show version information."""
    console.print("\n[bold cyan]KeyRunner - Keyword-Driven UI Test Runner[/bold cyan]")
    console.print(f"Version: [green]{__version__}[/green]")
    return EXIT_PASSED


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return a copy of the settings with command line overrides applied."""
    updates = {}
    if args.excel_dir is not None:
        updates["excel_dir"] = args.excel_dir
    if args.browser:
        updates["browser"] = args.browser
    if args.headless:
        updates["headless"] = True
    if args.workers is not None:
        if args.workers < 1:
            raise ValueError("--workers must be at least 1")
        updates["parallel_workers"] = args.workers
    if args.output is not None:
        updates["reports_dir"] = args.output
        updates["screenshots_dir"] = args.output / "screenshots"
    if args.no_email:
        updates["email_enabled"] = False
    if args.debug:
        updates["log_level"] = "DEBUG"
    return settings.model_copy(update=updates)


def build_registry(
    sessions: SessionRegistry,
    settings: Settings,
    report: Optional[HtmlReportSink] = None,
    artifacts: Optional[ScreenshotCapture] = None,
    extra_providers: Iterable[KeywordProvider] = (),
) -> KeywordRegistry:
    """Register the built-in keywords followed by any extra providers."""
    providers = [BrowserKeywords(sessions, settings, report, artifacts)]
    providers.extend(extra_providers)
    return KeywordRegistry(providers)


def build_source(settings: Settings, json_suite: Optional[Path]) -> TestDefinitionSource:
    if json_suite is not None:
        return JsonTestDefinitionSource(json_suite)
    return ExcelTestDefinitionSource.from_settings(settings)


def build_runner(
    settings: Settings,
    json_suite: Optional[Path] = None,
) -> Tuple[SuiteRunner, KeywordRegistry]:
    """Wire every component of a suite run from the settings."""
    sessions = SessionRegistry(PlaywrightSessionFactory(), settings.session_config())
    report = HtmlReportSink(settings)
    artifacts = ScreenshotCapture(sessions, settings.screenshots_dir)
    registry = build_registry(sessions, settings, report, artifacts)

    runner = SuiteRunner(
        source=build_source(settings, json_suite),
        dispatcher=KeywordDispatcher(registry),
        sessions=sessions,
        settings=settings,
        report=report,
        artifacts=artifacts,
        listeners=[EmailReporter(settings)],
    )
    return runner, registry


def print_keywords(registry: KeywordRegistry) -> None:
    table = Table(title=f"Registered Keywords ({registry.count()})", show_lines=False)
    table.add_column("Keyword", style="cyan")
    table.add_column("Mandatory")
    table.add_column("Provider", style="dim")
    table.add_column("Description")
    for entry in registry.entries():
        table.add_row(
            entry.name,
            "yes" if entry.mandatory else "no",
            entry.provider,
            entry.description,
        )
    console.print(table)


def print_summary(summary: SuiteSummary, report_path: Optional[Path]) -> None:
    table = Table(title="Test Results", show_lines=True)
    table.add_column("Test ID", style="cyan")
    table.add_column("Test Name")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Failure Reason")
    for result in summary.results:
        status = "[green]PASSED[/green]" if result.passed else "[red]FAILED[/red]"
        table.add_row(
            result.test_id,
            result.test_name,
            status,
            result.duration_display,
            result.failure_reason or "",
        )
    console.print(table)

    border = "green" if summary.all_passed else "red"
    console.print(Panel.fit(
        f"Total: {summary.total}  Passed: {summary.passed}  Failed: {summary.failed}\n"
        f"Success rate: {summary.success_rate:.1f}%",
        title="Summary",
        border_style=border,
    ))
    if report_path:
        console.print(f"[dim]HTML report: {report_path}[/dim]")


def main(args: Optional[list[str]] = None) -> int:
    """
    Main entry point for KeyRunner.

    Args:
        args: Command line arguments

    Returns:
        Exit code (0 when every test case passed, 1 on failures, 2 on startup errors)
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.version:
        return show_version()

    try:
        settings = apply_overrides(get_settings(), parsed_args)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        return EXIT_STARTUP_ERROR

    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        sanitize_logs=settings.sanitize_logs,
    )
    settings.create_directories()

    runner, registry = build_runner(settings, parsed_args.json_suite)

    if parsed_args.list_keywords:
        print_keywords(registry)
        return EXIT_PASSED

    console.print(Panel.fit(
        "[bold cyan]KeyRunner - Keyword-Driven UI Test Runner[/bold cyan]\n"
        f"Browser: {settings.browser} | Workers: {settings.parallel_workers} | "
        f"Environment: {settings.environment}",
        border_style="cyan",
    ))

    try:
        summary = runner.run()
    except TestDefinitionError as e:
        console.print(f"[red]Could not load test definitions: {e.message}[/red]")
        return EXIT_STARTUP_ERROR
    except KeyRunnerError as e:
        console.print(f"[red]Fatal error: {e.message}[/red]")
        return EXIT_STARTUP_ERROR
    except KeyboardInterrupt:
        console.print("\n[yellow]Test execution interrupted[/yellow]")
        runner.sessions.close_all()
        return 130

    print_summary(summary, runner.last_report_path)
    return EXIT_PASSED if summary.all_passed else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
