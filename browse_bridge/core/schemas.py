"""Core data models for the request bridge."""

from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Strategy(str, Enum):
    """Execution path chosen by the dispatcher for one request."""

    NAVIGATION = "navigation"
    SCRIPT = "script"
    GATEWAY = "gateway"


class RequestSpec(BaseModel):
    """A logical request as handed in by the caller."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None

    @field_validator("url")
    @classmethod
    def url_is_absolute(cls, v: str) -> str:
        parts = urlsplit(v)
        if not parts.scheme or not parts.hostname:
            msg = f"url must be absolute: {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("method")
    @classmethod
    def method_upper(cls, v: str) -> str:
        method = v.strip().upper()
        if not method:
            msg = "method must not be empty"
            raise ValueError(msg)
        return method

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""


class FetchResult(BaseModel):
    """Serialized outcome of a script-context or gateway fetch.

    status=0 with ok=False means the attempt failed before any HTTP
    status was observed; ``error`` then carries the reason.
    """

    strategy: Strategy
    status: int = Field(ge=0)
    ok: bool
    headers: Any = Field(default_factory=dict)
    body: Any = None
    error: str | None = None
    redirected: bool = False


class ResponseEnvelope(BaseModel):
    """Canonical response handed back to callers, whatever the strategy."""

    model_config = ConfigDict(frozen=True)

    status_code: int = Field(ge=0)
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
