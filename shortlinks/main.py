"""FastAPI application entry point for the link shortening service.

Application Lifecycle Diagram
=============================
::
    ┌──────────────┐
    │  uvicorn     │
    │  startup     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ init_db()    │
    │ manager init │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Serve HTTP   │
    │ requests     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ shutdown:    │
    │ manager      │
    │ cleanup,     │
    │ close_db()   │
    └──────────────┘

How to Use
===========
**Run with uvicorn**::
    uvicorn shortlinks.main:app --host 0.0.0.0 --port 8000 --reload

**Make API calls**::
    curl -X POST http://localhost:8000/api/auth/signup \
         -H "Content-Type: application/json" \
         -d '{"username": "alice", "password": "S3cret!!"}'

    curl -X POST http://localhost:8000/api/shorten \
         -H "Authorization: Bearer <token>" \
         -H "Content-Type: application/json" \
         -d '{"original_url": "https://example.com"}'

Key Behaviours
===============
- Database tables are created automatically on startup.
- Every ``ShortLinkError`` is rendered as ``{"error": kind, "detail": message}``;
  slowapi's ``RateLimitExceeded`` is rendered as 429 ``RateLimited``.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app"]

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded

from shortlinks.config import get_settings
from shortlinks.database import close_db, init_db
from shortlinks.dependencies import _service_manager
from shortlinks.exceptions import RateLimited, ShortLinkError, Unauthenticated
from shortlinks.ratelimit import limiter
from shortlinks.routes import router

settings = get_settings()
logger = logging.getLogger(settings.APP_NAME)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await init_db()
    await _service_manager.initialize()
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Multi-tenant URL shortener with visit counting",
    lifespan=lifespan,
)

app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(ShortLinkError)
async def shortlink_error_handler(request: Request, exc: ShortLinkError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "detail": exc.detail},
        headers=headers,
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    client = request.client.host if request.client else "unknown"
    logger.warning(f"Rate limit exceeded for {client} on {request.url.path}: {exc.detail}")
    return await shortlink_error_handler(request, RateLimited())


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
