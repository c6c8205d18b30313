from __future__ import annotations

from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

_MAX_URL_LENGTH = 2048


def _validate_url(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("url must not be empty")
    if len(value) > _MAX_URL_LENGTH:
        raise ValueError(f"url must be at most {_MAX_URL_LENGTH} characters")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("url must be an absolute http or https URL")
    return value


class FetchInput(BaseModel):
    url: str
    max_length: int = Field(default=5000, ge=1, le=1_000_000)
    start_index: int = Field(default=0, ge=0)
    raw: bool = False

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _validate_url(v)


class FetchBrowserInput(FetchInput):
    timeout: float = Field(default=30.0, gt=0, le=120)
    use_system_chrome: bool = True


class FetchTocInput(BaseModel):
    url: str
    format: Literal["markdown", "json"] = "markdown"
    use_browser: bool = False
    timeout: float = Field(default=30.0, gt=0, le=120)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _validate_url(v)
