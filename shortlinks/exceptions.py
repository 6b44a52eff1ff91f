"""Error kinds raised by the link shortening service.

Every failure path raises a subclass of ``ShortLinkError``. Each class names
its ``error`` kind and the HTTP status the API layer answers with, so a single
exception handler in ``shortlinks.main`` can render all of them.
"""

__all__ = [
    "AccountExists",
    "CodeTaken",
    "DuplicateCode",
    "ExhaustedRetries",
    "InvalidFormat",
    "NotFound",
    "RateLimited",
    "ShortLinkError",
    "StoreUnavailable",
    "Unauthenticated",
]


class ShortLinkError(Exception):
    """Base class for all service errors."""

    error = "ServiceError"
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidFormat(ShortLinkError):
    error = "InvalidFormat"
    status_code = 400
    default_detail = "Invalid format"


class CodeTaken(ShortLinkError):
    error = "CodeTaken"
    status_code = 400
    default_detail = "Custom code is already taken"


class DuplicateCode(ShortLinkError):
    """Raised by the store when an insert hits the unique index on short_code."""

    error = "DuplicateCode"
    status_code = 409
    default_detail = "Short code already exists"


class ExhaustedRetries(ShortLinkError):
    error = "ExhaustedRetries"
    status_code = 503
    default_detail = "Could not allocate a free short code, please retry"


class NotFound(ShortLinkError):
    error = "NotFound"
    status_code = 404
    default_detail = "Short URL not found"


class Unauthenticated(ShortLinkError):
    error = "Unauthenticated"
    status_code = 401
    default_detail = "Could not validate credentials"


class StoreUnavailable(ShortLinkError):
    """Persistence failure. The detail shown to clients never carries driver output."""

    error = "StoreUnavailable"
    status_code = 503
    default_detail = "Service temporarily unavailable"


class AccountExists(ShortLinkError):
    error = "AccountExists"
    status_code = 400
    default_detail = "User already exists"


class RateLimited(ShortLinkError):
    error = "RateLimited"
    status_code = 429
    default_detail = "Too many requests, please try again later"
