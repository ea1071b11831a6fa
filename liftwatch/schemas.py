import re
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# resource name -> status code ("open", "closed", "hold", "scheduled", ...)
StatusMap = Dict[str, str]


class ExtractionRule(BaseModel):
    """How to pull one field out of a row element."""

    model_config = ConfigDict(frozen=True)

    child: str = Field(description="Slash separated element-child indexes, e.g. '2/0'; empty means the row itself")
    attribute: Optional[str] = Field(None, description="Attribute to read instead of text content")
    pattern: Optional[str] = Field(None, description="Regex whose first group is the value")

    @field_validator("child")
    @classmethod
    def _check_child(cls, value: str) -> str:
        value = value.strip().strip("/")
        if value and not all(part.strip().isdigit() for part in value.split("/")):
            raise ValueError(f"child path must be digits separated by '/', got {value!r}")
        return value

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid pattern {value!r}: {e}") from e
        return value

    @property
    def path(self) -> list[int]:
        return [int(part) for part in self.child.split("/")] if self.child else []

    @property
    def regex(self) -> Optional[re.Pattern]:
        return re.compile(self.pattern) if self.pattern else None


class StatusSnapshot(BaseModel):
    source_id: str
    statuses: StatusMap = Field(default_factory=dict)
    updated_at: Optional[datetime] = Field(None, description="Time of the last successful fresh extraction")
    stale_seconds: Optional[float] = Field(None, description="Seconds since updated_at; None before the first success")
    last_attempt_at: Optional[datetime] = None
    next_interval_seconds: float
    last_outcome: Optional[str] = Field(None, description="Short description of the last fetch attempt")
