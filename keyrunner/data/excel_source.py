"""
Excel test definitions.

Three workbooks describe a suite: the runner workbook lists test cases and
whether to execute them, the flow workbook holds one row of keywords per test
case, and the data workbook holds one row of input data per test case. Every
sheet is keyed by its ``TestID`` column.
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import openpyxl

from keyrunner.config.settings import Settings
from keyrunner.core.interfaces import TestDefinitionSource
from keyrunner.core.types import TestCaseDescriptor
from keyrunner.error_handling.exceptions import TestDefinitionError
from keyrunner.monitoring.logger import get_logger

logger = get_logger(__name__)

TEST_CASES_SHEET = "TestCases"
TEST_FLOW_SHEET = "TestFlow"
TEST_DATA_SHEET = "TestData"

TEST_ID_COLUMN = "TestID"
TICKET_COLUMNS = ("JiraTicket", "TicketRef")


def cell_to_string(value: Any) -> str:
    """Render a cell value the way it reads in the spreadsheet."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return f"{value:.0f}"
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return str(value)


def read_sheet(file_path: Path, sheet_name: str) -> List[Dict[str, str]]:
    """
    Read a sheet into one dict per row, keyed by the header row.

    Rows without a TestID are dropped. A missing sheet yields an empty list.

    Raises:
        TestDefinitionError: If the workbook cannot be opened
    """
    try:
        workbook = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
    except Exception as e:
        raise TestDefinitionError(
            f"Failed to read workbook {file_path}: {e}",
            source=str(file_path),
            cause=e,
        ) from e

    try:
        if sheet_name not in workbook.sheetnames:
            logger.error(f"Sheet not found: {sheet_name} in {file_path}")
            return []

        rows = list(workbook[sheet_name].iter_rows(values_only=True))
    finally:
        workbook.close()

    if not rows:
        logger.warning(f"Header row is empty in sheet: {sheet_name}")
        return []

    headers = [
        cell_to_string(cell) if cell is not None else f"Column{index}"
        for index, cell in enumerate(rows[0])
    ]

    data: List[Dict[str, str]] = []
    for row in rows[1:]:
        row_data = {
            header: cell_to_string(value)
            for header, value in zip(headers, row)
        }
        if row_data.get(TEST_ID_COLUMN):
            data.append(row_data)

    return data


class ExcelTestDefinitionSource(TestDefinitionSource):
    """Test definitions read from the runner, flow and data workbooks."""

    def __init__(
        self,
        runner_path: Path,
        flow_path: Path,
        data_path: Path,
        max_keyword_columns: int = 20,
    ) -> None:
        self.runner_path = Path(runner_path)
        self.flow_path = Path(flow_path)
        self.data_path = Path(data_path)
        self.max_keyword_columns = max_keyword_columns
        self._sheets: Dict[str, List[Dict[str, str]]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExcelTestDefinitionSource":
        return cls(
            settings.test_runner_path,
            settings.test_flow_path,
            settings.test_data_path,
            max_keyword_columns=settings.max_keyword_columns,
        )

    def _rows(self, file_path: Path, sheet_name: str) -> List[Dict[str, str]]:
        key = f"{file_path}::{sheet_name}"
        with self._lock:
            if key not in self._sheets:
                self._sheets[key] = read_sheet(file_path, sheet_name)
            return self._sheets[key]

    def _find_row(self, file_path: Path, sheet_name: str, test_id: str) -> Optional[Dict[str, str]]:
        for row in self._rows(file_path, sheet_name):
            if row.get(TEST_ID_COLUMN) == test_id:
                return row
        return None

    def list_active_cases(self) -> List[TestCaseDescriptor]:
        logger.info("Getting active test cases from TestRunner")
        cases = []
        for row in self._rows(self.runner_path, TEST_CASES_SHEET):
            if row.get("Execute", "N").strip().upper() != "Y":
                continue
            ticket = next((row[c] for c in TICKET_COLUMNS if row.get(c)), None)
            cases.append(
                TestCaseDescriptor(
                    test_id=row[TEST_ID_COLUMN],
                    test_name=row.get("TestName") or row[TEST_ID_COLUMN],
                    description=row.get("Description", ""),
                    ticket_ref=ticket,
                )
            )
        logger.info(f"Found {len(cases)} active test cases")
        return cases

    def load_keyword_sequence(self, test_id: str) -> List[str]:
        row = self._find_row(self.flow_path, TEST_FLOW_SHEET, test_id)
        if row is None:
            logger.warning(f"Test flow not found for test ID: {test_id}")
            return []

        keywords = []
        for index in range(1, self.max_keyword_columns + 1):
            value = row.get(f"Keyword{index}", "")
            if value.strip():
                keywords.append(value.strip())

        logger.info(f"Found {len(keywords)} keywords for test ID: {test_id}")
        return keywords

    def load_input_data(self, test_id: str) -> Dict[str, str]:
        row = self._find_row(self.data_path, TEST_DATA_SHEET, test_id)
        if row is None:
            logger.warning(f"Test data not found for test ID: {test_id}")
            return {}
        return dict(row)
