"""Configuration management for the KeyRunner framework."""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from keyrunner.core.types import SessionConfig

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="KEYRUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Browser Configuration
    browser: str = Field(
        default="chrome", description="Browser flavor (chrome, firefox, edge, safari)"
    )
    headless: bool = Field(
        default=False, description="Run browser in headless mode"
    )
    maximize_window: bool = Field(
        default=True, description="Maximize the browser window on open"
    )
    implicit_wait_seconds: int = Field(
        default=10, ge=0, description="Default wait applied to element lookups"
    )
    page_load_timeout_seconds: int = Field(
        default=60, ge=1, description="Navigation timeout"
    )
    viewport_width: int = Field(
        default=1920, ge=800, description="Browser viewport width"
    )
    viewport_height: int = Field(
        default=1080, ge=600, description="Browser viewport height"
    )

    # Application Under Test
    environment: str = Field(
        default="QA", description="Target environment name"
    )
    base_urls: Dict[str, str] = Field(
        default_factory=dict,
        description="Base URL per environment, e.g. {\"QA\": \"https://qa.example.com\"}",
    )

    # Test Definition Configuration
    excel_dir: Path = Field(
        default=Path("resources/excel"), description="Directory holding test workbooks"
    )
    test_runner_file: str = Field(
        default="TestRunner.xlsx", description="Workbook listing test cases"
    )
    test_flow_file: str = Field(
        default="TestFlow.xlsx", description="Workbook listing keyword sequences"
    )
    test_data_file: str = Field(
        default="TestData.xlsx", description="Workbook listing test input data"
    )
    max_keyword_columns: int = Field(
        default=20, ge=1, description="Number of KeywordN columns read per flow row"
    )

    # Execution Configuration
    parallel_workers: int = Field(
        default=1, ge=1, le=32, description="Number of test cases run concurrently"
    )
    result_metadata_keys: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["TECS_ID"],
        description="Scratch keys copied into each test case result",
    )

    # Reporting Configuration
    reports_dir: Path = Field(
        default=Path("reports"), description="Reports output directory"
    )
    screenshots_dir: Path = Field(
        default=Path("reports/screenshots"), description="Screenshots directory"
    )
    report_title: str = Field(
        default="UI Test Automation Report", description="HTML document title"
    )
    report_name: str = Field(
        default="UI Test Execution Report", description="Report heading"
    )
    report_category: str = Field(
        default="UI Tests", description="Category assigned to every test case"
    )

    # Email Configuration
    email_enabled: bool = Field(
        default=False, description="Send the summary email after the suite"
    )
    smtp_host: str = Field(default="smtp.gmail.com", description="SMTP host")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP port")
    smtp_username: str = Field(default="", description="SMTP user / sender")
    smtp_password: str = Field(default="", description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="Use STARTTLS")
    email_recipients: Annotated[List[str], NoDecode] = Field(
        default_factory=list, description="Summary email recipients"
    )
    email_subject_prefix: str = Field(
        default="UI Automation Results", description="Summary email subject prefix"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="text",
        description="Log format (json or text)",
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path"
    )
    sanitize_logs: bool = Field(
        default=True, description="Mask credentials in log output"
    )

    @field_validator("browser")
    def validate_browser(cls, v: str) -> str:
        """Normalize browser flavor; unknown flavors fall back at session creation."""
        return v.strip().lower()

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError(f"Invalid log format: {v}")
        return v

    @field_validator("email_recipients", "result_metadata_keys", mode="before")
    @classmethod
    def split_comma_list(cls, raw: Any) -> Any:
        """Accept JSON arrays or comma separated strings for list settings."""
        if isinstance(raw, str):
            text = raw.strip()
            if text.startswith("["):
                return json.loads(text)
            return [item.strip() for item in text.split(",") if item.strip()]
        return raw

    @model_validator(mode="after")
    def normalize_recipients(self) -> "Settings":
        """Drop blank recipients left over from list inputs."""
        self.email_recipients = [
            str(item).strip() for item in self.email_recipients if str(item).strip()
        ]
        return self

    def create_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [
            self.reports_dir,
            self.screenshots_dir,
        ]:
            dir_path.mkdir(parents=True, exist_ok=True)

    def session_config(self) -> SessionConfig:
        """Build the browser session configuration value object."""
        return SessionConfig(
            browser=self.browser,
            headless=self.headless,
            maximize_window=self.maximize_window,
            implicit_wait_seconds=self.implicit_wait_seconds,
            page_load_timeout_seconds=self.page_load_timeout_seconds,
            viewport_width=self.viewport_width,
            viewport_height=self.viewport_height,
        )

    def get_base_url(self) -> Optional[str]:
        """
        Resolve the base URL for the configured environment.

        Falls back to the QA entry when the environment has no URL.
        """
        base_url = self.base_urls.get(self.environment)
        if base_url is None:
            logger.warning(
                f"Base URL not found for environment: {self.environment}. "
                "Using QA environment as fallback."
            )
            base_url = self.base_urls.get("QA")
        return base_url

    @property
    def test_runner_path(self) -> Path:
        return self.excel_dir / self.test_runner_file

    @property
    def test_flow_path(self) -> Path:
        return self.excel_dir / self.test_flow_file

    @property
    def test_data_path(self) -> Path:
        return self.excel_dir / self.test_data_file


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance for the CLI entry point."""
    # Load .env file if it exists
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    settings = Settings()
    settings.create_directories()
    return settings
