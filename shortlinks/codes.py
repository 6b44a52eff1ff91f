"""Short code generation and input format rules.

Flow Diagram — generate()
=========================
::
    ┌──────────────────┐
    │ requested_code?  │
    └────────┬─────────┘
    GIVEN?   │
    ┌────────┴────────┐
    │ YES             │ NO
    ▼                 ▼
┌──────────────┐  ┌──────────────┐
│ Match format │  │ nanoid over  │
│ rule or raise│  │ base62,      │
│ InvalidFormat│  │ fixed length │
└──────────────┘  └──────────────┘

Key Behaviours
===============
- Codes are 3-20 characters from ``[A-Za-z0-9_-]``.
- Random codes use only the base62 subset, so they always satisfy the rule.
- Codes that collide with the app's own top-level paths (``RESERVED_CODES``)
  are rejected, since ``GET /{code}`` would never reach the redirect route.
- Nothing in this module checks uniqueness; the link store owns that.
"""

import re

import validators
from nanoid import generate as nanoid_generate

from shortlinks.config import get_settings
from shortlinks.exceptions import InvalidFormat

__all__ = [
    "CODE_ALPHABET",
    "CODE_MAX_LENGTH",
    "CODE_MIN_LENGTH",
    "CODE_PATTERN",
    "RESERVED_CODES",
    "generate",
    "generate_short_code",
    "is_reserved",
    "is_valid_short_code",
    "validate_original_url",
    "validate_short_code",
]

settings = get_settings()

CODE_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
CODE_MIN_LENGTH = 3
CODE_MAX_LENGTH = 20
CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,20}$")

# Top-level paths served by the app itself (health, metrics, API docs, /api/...).
RESERVED_CODES = frozenset({"api", "docs", "health", "metrics", "openapi.json", "redoc"})


def generate_short_code(length: int = settings.SHORT_CODE_LENGTH) -> str:
    if not CODE_MIN_LENGTH <= length <= CODE_MAX_LENGTH:
        raise ValueError(f"length must be between {CODE_MIN_LENGTH} and {CODE_MAX_LENGTH}, got {length!r}")
    while True:
        code = nanoid_generate(CODE_ALPHABET, length)
        if not is_reserved(code):
            return code


def is_reserved(code: str) -> bool:
    return code.lower() in RESERVED_CODES


def is_valid_short_code(code: str) -> bool:
    return isinstance(code, str) and CODE_PATTERN.fullmatch(code) is not None and not is_reserved(code)


def validate_short_code(code: str) -> str:
    if isinstance(code, str) and is_reserved(code):
        raise InvalidFormat(f"'{code}' is reserved and cannot be used as a short code")
    if not is_valid_short_code(code):
        raise InvalidFormat(
            f"Custom code must be {CODE_MIN_LENGTH}-{CODE_MAX_LENGTH} characters long "
            "and contain only letters, numbers, '_' or '-'"
        )
    return code


def validate_original_url(url: str) -> str:
    candidate = url.strip() if isinstance(url, str) else ""
    if not candidate or not validators.url(candidate):
        raise InvalidFormat("A valid absolute URL is required")
    return candidate


def generate(requested_code: str | None = None) -> str:
    """Return ``requested_code`` once it passes the format rule, else a random code."""
    if requested_code is not None:
        return validate_short_code(requested_code)
    return generate_short_code()
