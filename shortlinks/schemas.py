"""Pydantic schemas for request/response validation.

Schema Hierarchy
=================
::
    LinkCreate (Input)
    ├─ original_url: str
    └─ custom_code: str | None

    LinkResponse (Output)
    ├─ short_code: str
    ├─ original_url: str
    ├─ short_url: str (computed from BASE_URL)
    ├─ visit_count: int
    └─ created_at: datetime

    StatsSummary (Output)
    ├─ total_links: int
    ├─ total_visits: int
    ├─ recent_links: list[LinkResponse]   (<= 5)
    └─ top_links_by_visits: list[LinkResponse]   (<= 5)

    Credentials (Input) / TokenResponse (Output) / UserResponse (Output)

Key Behaviours
===============
- URL and custom code format are checked by the service, not here, so format
  violations answer 400 ``InvalidFormat`` instead of a 422 body error.
- A blank ``custom_code`` is treated as absent.
- Signup passwords need an uppercase letter, a lowercase letter, a digit and
  one of ``@$!%*?&``; login only checks presence.
- Models are configured for ORM attribute mapping.
"""

import datetime
import re

from pydantic import BaseModel, Field, field_validator

from shortlinks.enums import HealthStatus
from shortlinks.models import Link

__all__ = [
    "AvailabilityResponse",
    "Credentials",
    "DailyVisits",
    "ErrorResponse",
    "HealthResponse",
    "LinkCreate",
    "LinkResponse",
    "LoginRequest",
    "MessageResponse",
    "StatsSummary",
    "TokenResponse",
    "UserResponse",
]

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{6,}$")


class LinkCreate(BaseModel):
    original_url: str
    custom_code: str | None = None

    @field_validator("custom_code")
    @classmethod
    def blank_code_is_absent(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


class LinkResponse(BaseModel):
    short_code: str
    original_url: str
    short_url: str
    visit_count: int
    created_at: datetime.datetime

    @classmethod
    def from_model(cls, link: Link, base_url: str) -> "LinkResponse":
        return cls(
            short_code=link.short_code,
            original_url=link.original_url,
            short_url=f"{base_url.rstrip('/')}/{link.short_code}",
            visit_count=link.visit_count,
            created_at=link.created_at,
        )


class StatsSummary(BaseModel):
    total_links: int
    total_visits: int
    recent_links: list[LinkResponse]
    top_links_by_visits: list[LinkResponse]


class DailyVisits(BaseModel):
    date: datetime.date
    visits: int


class AvailabilityResponse(BaseModel):
    code: str
    available: bool
    reason: str | None = None


class Credentials(BaseModel):
    username: str = Field(..., min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_-]+$")
    password: str = Field(..., min_length=6, max_length=72)

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return v

    @field_validator("password")
    @classmethod
    def is_complex(cls, v: str) -> str:
        # lookaheads are not supported by pydantic's own pattern engine
        if PASSWORD_PATTERN.fullmatch(v) is None:
            raise ValueError(
                "Password must contain an uppercase letter, a lowercase letter, "
                "a number and one of @$!%*?&"
            )
        return v


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: int
    username: str
    created_at: datetime.datetime

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    detail: str


class ErrorResponse(BaseModel):
    error: str
    detail: str


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
