"""FastAPI route definitions for the link shortening REST API.

API Endpoint Overview
=====================
::
    GET    /health                                  HealthResponse (200)
    POST   /api/auth/signup                         TokenResponse (201) or 400
    POST   /api/auth/login                          TokenResponse (200) or 401
    GET    /api/auth/me                             UserResponse (200) or 401
    POST   /api/shorten                             LinkResponse (201) or 400/401
    GET    /api/links                               [LinkResponse] (200)
    GET    /api/links/check-availability/:code      AvailabilityResponse (200)
    GET    /api/links/:code/qr                      image/svg+xml (200) or 404
    DELETE /api/links/:code                         MessageResponse (200) or 404
    GET    /api/stats/summary                       StatsSummary (200)
    GET    /api/stats/top                           [LinkResponse] (200)
    GET    /api/stats/daily                         [DailyVisits] (200)
    GET    /:code                                   302 Redirect or 404

Key Behaviours
===============
- All endpoints are async; store calls suspend only the current request.
- Owner-scoped endpoints take the owner id from the bearer token.
- Service errors propagate as ``ShortLinkError`` and are rendered by the
  handler registered in ``shortlinks.main``.
- The redirect route is registered last so it never shadows ``/api/...``.
- Signup, login, shorten and redirect carry a per-client ``limiter.limit``;
  slowapi needs the ``request`` argument on those endpoints.
- Error statuses are documented in OpenAPI with the ``ErrorResponse`` body.
"""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy import text

from shortlinks.accounts import AccountService
from shortlinks.dependencies import (
    RequestContext,
    get_account_service,
    get_current_owner,
    get_link_service,
    get_request_context,
)
from shortlinks.enums import HealthStatus
from shortlinks.link_service import LinkService
from shortlinks.ratelimit import RATE_LIMIT, limiter
from shortlinks.schemas import (
    AvailabilityResponse,
    Credentials,
    DailyVisits,
    ErrorResponse,
    HealthResponse,
    LinkCreate,
    LinkResponse,
    LoginRequest,
    MessageResponse,
    StatsSummary,
    TokenResponse,
    UserResponse,
)

__all__ = ["router"]

router = APIRouter()


def error_responses(*status_codes: int) -> dict[int, dict]:
    """OpenAPI entries documenting the ``{"error", "detail"}`` body for each status."""
    return {code: {"model": ErrorResponse} for code in status_codes}


OWNER_ERRORS = error_responses(401, 503)


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await ctx.database.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await ctx.cache.ping()
    except Exception as e:
        ctx.logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=status, database=db_status, cache=cache_status)


# ============================================================================
# ACCOUNTS
# ============================================================================


@router.post(
    "/api/auth/signup",
    response_model=TokenResponse,
    status_code=201,
    tags=["auth"],
    responses=error_responses(400, 429, 503),
)
@limiter.limit(RATE_LIMIT)
async def signup(
    request: Request,
    payload: Credentials,
    ctx: RequestContext = Depends(get_request_context),
    accounts: AccountService = Depends(get_account_service),
) -> TokenResponse:
    ctx.add_tag("signup")
    token = await accounts.signup(payload.username, payload.password)
    ctx.logger.info(f"Signup completed for {payload.username}")
    return TokenResponse(access_token=token)


@router.post(
    "/api/auth/login",
    response_model=TokenResponse,
    tags=["auth"],
    responses=error_responses(401, 429, 503),
)
@limiter.limit(RATE_LIMIT)
async def login(
    request: Request,
    payload: LoginRequest,
    ctx: RequestContext = Depends(get_request_context),
    accounts: AccountService = Depends(get_account_service),
) -> TokenResponse:
    ctx.add_tag("login")
    token = await accounts.login(payload.username, payload.password)
    return TokenResponse(access_token=token)


@router.get("/api/auth/me", response_model=UserResponse, tags=["auth"], responses=OWNER_ERRORS)
async def current_user(
    owner_id: int = Depends(get_current_owner),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    user = await accounts.get_user(owner_id)
    return UserResponse.model_validate(user)


# ============================================================================
# LINKS
# ============================================================================


@router.post(
    "/api/shorten",
    response_model=LinkResponse,
    status_code=201,
    tags=["links"],
    responses=error_responses(400, 401, 429, 503),
)
@limiter.limit(RATE_LIMIT)
async def shorten_url(
    request: Request,
    payload: LinkCreate,
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkResponse:
    ctx.add_tag("link_creation")
    ctx.logger.info(
        f"Link shortening requested: {payload.original_url}",
        extra={
            "operation": "shorten",
            "owner_id": owner_id,
            "target_url": payload.original_url,
            "custom_code": payload.custom_code,
        },
    )
    link = await service.shorten(owner_id, payload)
    ctx.logger.info(
        f"Link shortened successfully: {link.short_code}",
        extra={
            "operation": "shorten",
            "short_code": link.short_code,
            "duration_ms": ctx.get_duration(),
        },
    )
    return LinkResponse.from_model(link, ctx.settings.BASE_URL)


@router.get("/api/links", response_model=list[LinkResponse], tags=["links"], responses=OWNER_ERRORS)
async def list_links(
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> list[LinkResponse]:
    links = await service.list_links(owner_id)
    return [LinkResponse.from_model(link, ctx.settings.BASE_URL) for link in links]


@router.get(
    "/api/links/check-availability/{code}",
    response_model=AvailabilityResponse,
    tags=["links"],
)
async def check_availability(
    code: str,
    service: LinkService = Depends(get_link_service),
) -> AvailabilityResponse:
    return await service.check_availability(code)


@router.get("/api/links/{short_code}/qr", tags=["links"], responses=error_responses(404, 503))
async def link_qr_code(
    short_code: str,
    service: LinkService = Depends(get_link_service),
) -> Response:
    svg = await service.qr_code_svg(short_code)
    return Response(content=svg, media_type="image/svg+xml")


@router.delete(
    "/api/links/{short_code}",
    response_model=MessageResponse,
    tags=["links"],
    responses=error_responses(401, 404, 503),
)
async def delete_link(
    short_code: str,
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> MessageResponse:
    ctx.add_tag("link_deletion")
    await service.delete_link(owner_id, short_code)
    return MessageResponse(detail="Link deleted")


# ============================================================================
# STATS
# ============================================================================


@router.get("/api/stats/summary", response_model=StatsSummary, tags=["stats"], responses=OWNER_ERRORS)
async def stats_summary(
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> StatsSummary:
    summary = await service.summarize(owner_id)
    base_url = ctx.settings.BASE_URL
    return StatsSummary(
        total_links=summary.total_links,
        total_visits=summary.total_visits,
        recent_links=[LinkResponse.from_model(link, base_url) for link in summary.recent_links],
        top_links_by_visits=[LinkResponse.from_model(link, base_url) for link in summary.top_links_by_visits],
    )


@router.get("/api/stats/top", response_model=list[LinkResponse], tags=["stats"], responses=OWNER_ERRORS)
async def stats_top(
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> list[LinkResponse]:
    links = await service.top_links(owner_id)
    return [LinkResponse.from_model(link, ctx.settings.BASE_URL) for link in links]


@router.get("/api/stats/daily", response_model=list[DailyVisits], tags=["stats"], responses=OWNER_ERRORS)
async def stats_daily(
    owner_id: int = Depends(get_current_owner),
    service: LinkService = Depends(get_link_service),
) -> list[DailyVisits]:
    return await service.daily_visits(owner_id)


# ============================================================================
# REDIRECT
# ============================================================================


@router.get("/{short_code}", tags=["redirect"], responses=error_responses(404, 429, 503))
@limiter.limit(RATE_LIMIT)
async def redirect_to_url(
    request: Request,
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> RedirectResponse:
    ctx.add_tag("redirect")
    original_url = await service.resolve(short_code)
    ctx.logger.info(
        f"Redirect successful: {short_code} -> {original_url}",
        extra={
            "operation": "redirect",
            "short_code": short_code,
            "duration_ms": ctx.get_duration(),
        },
    )
    return RedirectResponse(url=original_url, status_code=302)
