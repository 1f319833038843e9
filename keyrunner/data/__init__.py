"""
Test definition sources.
"""

from keyrunner.data.excel_source import ExcelTestDefinitionSource, read_sheet
from keyrunner.data.json_source import JsonTestDefinitionSource

__all__ = [
    "ExcelTestDefinitionSource",
    "JsonTestDefinitionSource",
    "read_sheet",
]
