"""Link Service Layer - Core Business Logic

This module composes the code generator, the availability check and the link
store into the operations the HTTP layer exposes.

Architecture Overview
=====================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                      LinkService                            │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │ Code Generator  │  │ Availability    │  │ Stats        │ │
    │  │ (codes.py)      │  │ pre-check       │  │ aggregation  │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                                   │
                                   ▼
                       ┌───────────────────────┐
                       │ LinkStore (store.py)  │
                       │ UNIQUE short_code     │
                       │ atomic visit_count+1  │
                       └───────────────────────┘

Link Creation Flow
------------------
::
    ┌─────────────┐
    │ POST        │
    │ /api/shorten│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate    │──── bad URL / code ──► InvalidFormat
    │ URL + code  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Pre-check   │──── taken (custom) ──► CodeTaken
    │ available?  │──── taken (random) ──► next attempt
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ INSERT      │──── DuplicateCode (custom) ──► CodeTaken
    │ (unique)    │──── DuplicateCode (random) ──► next attempt
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Return link │   attempts exhausted ──► ExhaustedRetries
    └─────────────┘

Redirect Flow
-------------
::
    ┌─────────────┐
    │ GET /:code  │
    └──────┬──────┘
           ▼
    ┌──────────────────────┐
    │ UPDATE ... +1        │──── no row ──► NotFound (nothing changed)
    │ RETURNING original   │
    └──────┬───────────────┘
           ▼
    ┌─────────────┐
    │ 302 to      │
    │ original    │
    └─────────────┘

Usage Example
=============
```python
@router.post("/api/shorten", status_code=201)
async def shorten(
    payload: LinkCreate,
    owner_id: int = Depends(get_current_owner),
    service: LinkService = Depends(get_link_service),
) -> LinkResponse:
    link = await service.shorten(owner_id, payload)
    return LinkResponse.from_model(link, service.settings.BASE_URL)
```
"""

import io
import time
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import qrcode
from prometheus_client import Counter, Histogram
from qrcode.image.svg import SvgPathImage

from shortlinks import codes
from shortlinks.enums import RequestStatus
from shortlinks.exceptions import (
    CodeTaken,
    DuplicateCode,
    ExhaustedRetries,
    InvalidFormat,
    NotFound,
    ShortLinkError,
)
from shortlinks.models import Link
from shortlinks.schemas import AvailabilityResponse, DailyVisits, LinkCreate
from shortlinks.store import LinkStore

if TYPE_CHECKING:
    from shortlinks.dependencies import RequestContext

__all__ = ["LinkService", "LinkSummary", "SUMMARY_LIST_SIZE"]

SUMMARY_LIST_SIZE = 5


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortlinks_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_CREATION_DURATION = Histogram(
    "shortlinks_creation_duration_seconds",
    "Time taken to create short links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
CODE_COLLISIONS_TOTAL = Counter(
    "shortlinks_code_collisions_total",
    "Random short codes rejected because they were already stored",
)
REDIRECT_REQUESTS_TOTAL = Counter(
    "shortlinks_redirect_requests_total",
    "Total redirect resolutions",
    ["status"],
)
REDIRECT_DURATION = Histogram(
    "shortlinks_redirect_duration_seconds",
    "Time taken to resolve a short code",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
LINK_DELETIONS_TOTAL = Counter(
    "shortlinks_deletions_total",
    "Total owner-scoped link deletions",
    ["status"],
)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class LinkSummary:
    """Dashboard summary for one owner."""

    total_links: int = 0
    total_visits: int = 0
    recent_links: Sequence[Link] = field(default_factory=list)
    top_links_by_visits: Sequence[Link] = field(default_factory=list)


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================

class LinkService:
    """Core service class for link operations.

    Example:
        >>> service = LinkService.from_context(ctx)
        >>> link = await service.shorten(owner_id, LinkCreate(original_url="https://example.com"))
        >>> target = await service.resolve(link.short_code)
    """

    def __init__(self, ctx: "RequestContext"):
        self._store = LinkStore(ctx.database)
        self._logger = ctx.logger
        self.settings = ctx.settings
        self._ctx = ctx

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "LinkService":
        return cls(ctx)

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def shorten(self, owner_id: int, request: LinkCreate) -> Link:
        """Create a link for ``owner_id``.

        A requested custom code is used as given or rejected; it is never
        replaced. A random code is retried on collision up to
        ``SHORT_CODE_MAX_ATTEMPTS`` times.

        Raises:
            InvalidFormat: malformed URL or custom code.
            CodeTaken: the custom code is already stored.
            ExhaustedRetries: no free random code within the retry bound.
            StoreUnavailable: persistence failure.
        """
        start_time = time.perf_counter()
        try:
            original_url = codes.validate_original_url(request.original_url)
            if request.custom_code is not None:
                link = await self._shorten_with_custom_code(owner_id, original_url, request.custom_code)
            else:
                link = await self._shorten_with_random_code(owner_id, original_url)
        except (InvalidFormat, CodeTaken) as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            self._logger.warning(f"Link creation rejected: {exc}")
            raise
        except ExhaustedRetries as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.CONFLICT).inc()
            self._logger.error(f"Link creation failed: {exc}")
            raise
        except ShortLinkError:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            raise
        finally:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)

        LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(f"Link created: {link.short_code} for owner {owner_id}")
        return link

    async def check_availability(self, code: str) -> AvailabilityResponse:
        if not codes.is_valid_short_code(code):
            reason = "Code is reserved" if codes.is_reserved(code) else "Invalid code format"
            return AvailabilityResponse(code=code, available=False, reason=reason)
        available = await self._store.is_available(code)
        return AvailabilityResponse(
            code=code,
            available=available,
            reason=None if available else "Code is already taken",
        )

    async def resolve(self, code: str) -> str:
        """Return the original URL for ``code`` and count exactly one visit.

        The lookup and the increment are one statement, so a miss changes
        nothing and concurrent hits never lose an update.
        """
        start_time = time.perf_counter()
        try:
            link = await self._store.increment_visit(code)
        except NotFound:
            REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
            raise
        except ShortLinkError:
            REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            raise
        finally:
            REDIRECT_DURATION.observe(time.perf_counter() - start_time)

        REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.debug(f"Resolved {code}, visit_count={link.visit_count}")
        return link.original_url

    async def get_link(self, code: str) -> Link:
        link = await self._store.find_by_code(code)
        if link is None:
            raise NotFound()
        return link

    async def list_links(self, owner_id: int) -> Sequence[Link]:
        return await self._store.find_by_owner(owner_id)

    async def delete_link(self, owner_id: int, code: str) -> None:
        try:
            await self._store.delete_by_owner(code, owner_id)
        except NotFound:
            LINK_DELETIONS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
            self._logger.warning(f"Delete refused: {code} not owned by {owner_id}")
            raise
        LINK_DELETIONS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(f"Link deleted: {code} by owner {owner_id}")

    async def summarize(self, owner_id: int) -> LinkSummary:
        total_links, total_visits = await self._store.totals_by_owner(owner_id)
        recent = await self._store.find_by_owner(owner_id, limit=SUMMARY_LIST_SIZE)
        top = await self._store.top_by_owner(owner_id, limit=SUMMARY_LIST_SIZE)
        return LinkSummary(
            total_links=total_links,
            total_visits=total_visits,
            recent_links=recent,
            top_links_by_visits=top,
        )

    async def top_links(self, owner_id: int) -> Sequence[Link]:
        return await self._store.top_by_owner(owner_id, limit=SUMMARY_LIST_SIZE)

    async def daily_visits(self, owner_id: int) -> list[DailyVisits]:
        """Visits summed per link creation date, oldest date first."""
        per_day: dict = defaultdict(int)
        for link in await self._store.find_by_owner(owner_id):
            per_day[link.created_at.date()] += link.visit_count
        return [DailyVisits(date=day, visits=visits) for day, visits in sorted(per_day.items())]

    async def qr_code_svg(self, code: str) -> bytes:
        link = await self.get_link(code)
        qr = qrcode.QRCode(
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(self.short_url(link))
        qr.make(fit=True)
        image = qr.make_image(image_factory=SvgPathImage)
        buffer = io.BytesIO()
        image.save(buffer)
        return buffer.getvalue()

    def short_url(self, link: Link) -> str:
        return f"{self.settings.BASE_URL.rstrip('/')}/{link.short_code}"

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _shorten_with_custom_code(self, owner_id: int, original_url: str, custom_code: str) -> Link:
        short_code = codes.generate(custom_code)
        if not await self._store.is_available(short_code):
            raise CodeTaken(f"Custom code '{short_code}' is already taken")
        try:
            return await self._store.insert(
                Link(short_code=short_code, original_url=original_url, owner_id=owner_id, visit_count=0)
            )
        except DuplicateCode as exc:
            raise CodeTaken(f"Custom code '{short_code}' is already taken") from exc

    async def _shorten_with_random_code(self, owner_id: int, original_url: str) -> Link:
        max_attempts = self.settings.SHORT_CODE_MAX_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            short_code = codes.generate()
            if not await self._store.is_available(short_code):
                CODE_COLLISIONS_TOTAL.inc()
                self._logger.info(f"Generated code {short_code} already stored (attempt {attempt})")
                continue
            try:
                return await self._store.insert(
                    Link(short_code=short_code, original_url=original_url, owner_id=owner_id, visit_count=0)
                )
            except DuplicateCode:
                CODE_COLLISIONS_TOTAL.inc()
                self._logger.info(f"Insert collided on {short_code} (attempt {attempt})")
        raise ExhaustedRetries(f"No free short code after {max_attempts} attempts")
