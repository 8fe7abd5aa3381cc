"""
Pydantic models for deployment logs.
"""
from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class LogStream(str, Enum):
    """Output stream a log line came from."""

    STDOUT = "stdout"
    STDERR = "stderr"


class LogsOptions(BaseModel):
    """Options for reading deployment logs."""

    model_config = ConfigDict(frozen=True)

    stdout: bool = Field(default=True, description="Include stdout")
    stderr: bool = Field(default=True, description="Include stderr")
    since: Optional[datetime] = Field(default=None, description="Only lines at or after this time")
    until: Optional[datetime] = Field(default=None, description="Only lines before this time")
    timestamps: bool = Field(default=False, description="Keep runtime timestamps on each line")
    tail: Union[Literal["all"], int] = Field(
        default="all", description="Number of most recent lines, or 'all'"
    )

    @field_validator("tail")
    @classmethod
    def validate_tail(cls, v: Union[str, int]) -> Union[str, int]:
        if isinstance(v, int) and v < 0:
            raise ValueError("tail must be 'all' or a non-negative integer")
        return v

    @model_validator(mode="after")
    def validate_streams(self) -> "LogsOptions":
        if not self.stdout and not self.stderr:
            raise ValueError("At least one of stdout or stderr must be selected")
        if self.since and self.until and self.since > self.until:
            raise ValueError("since must not be after until")
        return self


class LogLine(BaseModel):
    """One log line tagged with its source stream."""

    model_config = ConfigDict(frozen=True)

    stream: LogStream
    message: str
    timestamp: Optional[datetime] = None

    def __str__(self) -> str:
        return self.message
