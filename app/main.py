"""
Par-Level Orders — order ingestion service

Turns free-text purchase orders (typed into the API or emailed to a supplier)
into draft orders matched against the supplier's catalog and the restaurant's
par level.

Mounts the routers, the request-ID middleware, structured error handlers and
the background scheduler.
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .http_client import close_clients
from .logging_config import setup_logging
from .rate_limit import limiter
from .routers import channels, orders, par_levels
from .scheduler import configure_scheduler, scheduler
from .schemas.errors import ErrorResponse

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_scheduler()
    if scheduler.get_jobs():
        scheduler.start()
    logger.info("Startup complete")
    yield
    if scheduler.running:
        scheduler.shutdown(wait=False)
    await close_clients()


app = FastAPI(title="Par-Level Orders", version="1.0.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ── Middleware ───────────────────────────────────────────────────────────


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Attach a short request ID to logs and the response; log timing."""
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    start = time.monotonic()
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(
            "{} {} → {} ({:.0f}ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
    response.headers["X-Request-ID"] = request_id
    return response


# ── Error handlers ───────────────────────────────────────────────────────


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = ErrorResponse(
        error=str(exc.detail),
        status_code=exc.status_code,
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        error="Validation error",
        status_code=422,
        request_id=_request_id(request),
        detail=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()],
    )
    return JSONResponse(status_code=422, content=body.model_dump())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(
        "Unhandled error on {} {}", request.method, request.url.path
    )
    body = ErrorResponse(
        error="Internal server error",
        status_code=500,
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=500, content=body.model_dump())


# ── Routes ───────────────────────────────────────────────────────────────


app.include_router(orders.router)
app.include_router(channels.router)
app.include_router(par_levels.router)


@app.get("/health")
async def health():
    return {"status": "ok", "polling": settings.channel_polling_enabled}
