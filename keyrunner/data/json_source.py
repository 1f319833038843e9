"""
JSON test definitions.

A suite file lists every test case with its keywords and input data inline::

    {
      "tests": [
        {
          "test_id": "TC001",
          "test_name": "Login",
          "execute": true,
          "keywords": ["OPEN_BROWSER", "NAVIGATE_TO", "CLOSE_BROWSER"],
          "data": {"URL": "https://example.com"}
        }
      ]
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from keyrunner.core.interfaces import TestDefinitionSource
from keyrunner.core.types import TestCaseDescriptor
from keyrunner.data.excel_source import cell_to_string
from keyrunner.error_handling.exceptions import TestDefinitionError
from keyrunner.monitoring.logger import get_logger

logger = get_logger(__name__)


class JsonTestCase(BaseModel):
    """One test case entry of a JSON suite file."""

    test_id: str = Field(..., min_length=1)
    test_name: str = ""
    description: str = ""
    ticket_ref: Union[str, None] = None
    execute: bool = True
    keywords: List[str] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("execute", mode="before")
    @classmethod
    def parse_execute_flag(cls, value: Any) -> Any:
        """Accept the spreadsheet style Y/N flag as well as booleans."""
        if isinstance(value, str) and value.strip().upper() in ("Y", "N"):
            return value.strip().upper() == "Y"
        return value


class JsonSuite(BaseModel):
    tests: List[JsonTestCase] = Field(default_factory=list)


class JsonTestDefinitionSource(TestDefinitionSource):
    """Test definitions read from a single JSON suite file."""

    def __init__(self, suite_path: Path) -> None:
        self.suite_path = Path(suite_path)
        self._suite: Union[JsonSuite, None] = None

    def _load(self) -> JsonSuite:
        if self._suite is not None:
            return self._suite

        try:
            with open(self.suite_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            self._suite = JsonSuite.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise TestDefinitionError(
                f"Failed to load test suite {self.suite_path}: {e}",
                source=str(self.suite_path),
                cause=e,
            ) from e

        logger.info(f"Loaded {len(self._suite.tests)} test cases from {self.suite_path}")
        return self._suite

    def _find(self, test_id: str) -> Union[JsonTestCase, None]:
        for case in self._load().tests:
            if case.test_id == test_id:
                return case
        return None

    def list_active_cases(self) -> List[TestCaseDescriptor]:
        return [
            TestCaseDescriptor(
                test_id=case.test_id,
                test_name=case.test_name or case.test_id,
                description=case.description,
                ticket_ref=case.ticket_ref,
            )
            for case in self._load().tests
            if case.execute
        ]

    def load_keyword_sequence(self, test_id: str) -> List[str]:
        case = self._find(test_id)
        if case is None:
            logger.warning(f"Test flow not found for test ID: {test_id}")
            return []
        return [keyword for keyword in case.keywords if keyword and keyword.strip()]

    def load_input_data(self, test_id: str) -> Dict[str, str]:
        case = self._find(test_id)
        if case is None:
            logger.warning(f"Test data not found for test ID: {test_id}")
            return {}
        data = {key: cell_to_string(value) for key, value in case.data.items()}
        data.setdefault("TestID", case.test_id)
        return data
