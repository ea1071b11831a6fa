import os
import re
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from liftwatch.schemas import ExtractionRule


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    # Source
    SOURCE_ID: str = os.getenv("LIFTWATCH_SOURCE_ID", "whiteface")
    SOURCE_URL: str = os.getenv("LIFTWATCH_SOURCE_URL", "https://whiteface.com/mountain/conditions/")
    TIMEZONE: str = os.getenv("LIFTWATCH_TIMEZONE", "America/New_York")
    OPEN_HOUR: int = int(os.getenv("LIFTWATCH_OPEN_HOUR", "7"))
    CLOSE_HOUR: int = int(os.getenv("LIFTWATCH_CLOSE_HOUR", "17"))

    # Backoff windows in minutes
    ACTIVE_MIN_MINUTES: float = float(os.getenv("LIFTWATCH_ACTIVE_MIN_MINUTES", "5"))
    ACTIVE_MAX_MINUTES: float = float(os.getenv("LIFTWATCH_ACTIVE_MAX_MINUTES", "15"))
    IDLE_MIN_MINUTES: float = float(os.getenv("LIFTWATCH_IDLE_MIN_MINUTES", "30"))
    IDLE_MAX_MINUTES: float = float(os.getenv("LIFTWATCH_IDLE_MAX_MINUTES", "60"))
    ACTIVITY_THRESHOLD_MINUTES: float = float(os.getenv("LIFTWATCH_ACTIVITY_THRESHOLD_MINUTES", "5"))

    # Scraping
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))
    USER_AGENT: str = os.getenv(
        "USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
    )
    STRATEGIES: List[str] = [
        s.strip() for s in os.getenv("LIFTWATCH_STRATEGIES", "direct,browser").split(",") if s.strip()
    ]
    RETRIEVAL_TIMEOUT_SEC: float = float(os.getenv("RETRIEVAL_TIMEOUT_SEC", "60"))

    # Playwright / JS rendering
    PLAYWRIGHT_HEADLESS: bool = _env_bool("PLAYWRIGHT_HEADLESS", "1")
    BROWSER_LAUNCH_TIMEOUT_MS: int = int(os.getenv("BROWSER_LAUNCH_TIMEOUT_MS", "30000"))
    NAVIGATION_TIMEOUT_MS: int = int(os.getenv("NAVIGATION_TIMEOUT_MS", "30000"))
    JS_WAIT_TIMEOUT_MS: int = int(os.getenv("JS_WAIT_TIMEOUT_MS", "15000"))
    VIEWPORT_WIDTH: int = int(os.getenv("VIEWPORT_WIDTH", "1366"))
    VIEWPORT_HEIGHT: int = int(os.getenv("VIEWPORT_HEIGHT", "900"))


settings = Settings()

# Layout of the ORDA conditions plugin: <icon> <name> <status cell><img/></status cell> ...
DEFAULT_ROW_SELECTOR = ".lifts-row"
DEFAULT_STATUS_PATTERN = r"icon-(.+)\.svg$"
DEFAULT_RULES: Dict[str, ExtractionRule] = {
    "name": ExtractionRule(child="1"),
    "status": ExtractionRule(child="2/0", attribute="src", pattern=DEFAULT_STATUS_PATTERN),
}


class SourceConfig(BaseModel):
    """Everything needed to monitor one remote status page."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    url: str
    timezone: str = "America/New_York"
    open_hour: int = Field(7, ge=0, le=24)
    close_hour: int = Field(17, ge=0, le=24)
    row_selector: str = DEFAULT_ROW_SELECTOR
    landmark_selector: str = DEFAULT_ROW_SELECTOR
    rules: Dict[str, ExtractionRule] = Field(default_factory=lambda: dict(DEFAULT_RULES))
    # Icon pattern for class-sniffed rows; None follows rules["status"].pattern
    status_pattern: Optional[str] = None
    active_bounds_minutes: Tuple[float, float] = (5, 15)
    idle_bounds_minutes: Tuple[float, float] = (30, 60)
    activity_threshold_minutes: float = Field(5, gt=0)

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return value

    @field_validator("status_pattern")
    @classmethod
    def _check_status_pattern(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid pattern {value!r}: {e}") from e
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    @field_validator("active_bounds_minutes", "idle_bounds_minutes")
    @classmethod
    def _check_bounds(cls, value: Tuple[float, float]) -> Tuple[float, float]:
        low, high = value
        if low < 0 or low > high:
            raise ValueError(f"backoff bounds must satisfy 0 <= min <= max, got {value}")
        return value

    @model_validator(mode="after")
    def _check_hours(self) -> "SourceConfig":
        if self.open_hour >= self.close_hour:
            raise ValueError("open_hour must be before close_hour")
        for field in ("name", "status"):
            if field not in self.rules:
                raise ValueError(f"extraction rules need a {field!r} rule")
        return self

    @property
    def sniff_pattern(self) -> str:
        return self.status_pattern or self.rules["status"].pattern or DEFAULT_STATUS_PATTERN

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "SourceConfig":
        return cls(
            source_id=s.SOURCE_ID,
            url=s.SOURCE_URL,
            timezone=s.TIMEZONE,
            open_hour=s.OPEN_HOUR,
            close_hour=s.CLOSE_HOUR,
            active_bounds_minutes=(s.ACTIVE_MIN_MINUTES, s.ACTIVE_MAX_MINUTES),
            idle_bounds_minutes=(s.IDLE_MIN_MINUTES, s.IDLE_MAX_MINUTES),
            activity_threshold_minutes=s.ACTIVITY_THRESHOLD_MINUTES,
        )
