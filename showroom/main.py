from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from showroom.clients import close_clients, init_clients
from showroom.config import RELAXED_ENVS, AppInfo, get_settings
from showroom.core.logging import get_logger, setup_logging
from showroom.core.runtime_state import set_scheduler_active
from showroom.routers import get_api_router
from showroom.services.cron import flag_risky_sellers_once, release_held_payouts_once
from showroom.utils.errors import RecordNotFoundError, UpstreamError, error_response

logger = get_logger(__name__)
scheduler: AsyncIOScheduler | None = None


def _current_settings():
    return get_settings()


def _configure_middlewares(fastapi_app: FastAPI) -> None:
    """Configure middleware using a fresh snapshot of the settings."""

    runtime_settings = _current_settings()
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime_settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Admin-Token"],
    )

    if runtime_settings.PROMETHEUS_ENABLED:
        from starlette_exporter import PrometheusMiddleware, handle_metrics

        fastapi_app.add_middleware(PrometheusMiddleware, app_name="showroom")
        fastapi_app.add_route("/metrics", handle_metrics)

    if runtime_settings.SENTRY_DSN:
        import sentry_sdk

        sentry_sdk.init(dsn=runtime_settings.SENTRY_DSN, traces_sample_rate=0.2)


def _assert_psp_webhook_secrets(settings: Any) -> None:
    """Fail-fast when the Stripe webhook secret is missing outside dev/test."""

    env_lower = settings.app_env.lower()
    if settings.STRIPE_WEBHOOK_SECRET:
        return
    if env_lower not in RELAXED_ENVS:
        logger.error(
            "Stripe webhook secret is missing; configure STRIPE_WEBHOOK_SECRET before startup.",
            extra={"env": settings.app_env},
        )
        raise RuntimeError("Missing STRIPE_WEBHOOK_SECRET in non-dev environment.")
    logger.warning(
        "Stripe webhook secret is not configured; allowed in dev/test only.",
        extra={"env": settings.app_env},
    )


def _start_scheduler(settings: Any) -> AsyncIOScheduler:
    job_scheduler = AsyncIOScheduler()
    job_scheduler.add_job(
        release_held_payouts_once,
        "interval",
        minutes=settings.PAYOUT_SWEEP_INTERVAL_MINUTES,
        id="release-held-payouts",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    job_scheduler.add_job(
        flag_risky_sellers_once,
        "interval",
        hours=settings.RISK_SCAN_INTERVAL_HOURS,
        id="flag-risky-sellers",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    job_scheduler.start()
    return job_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    settings = _current_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info("Application startup", extra={"env": settings.app_env})
    _assert_psp_webhook_secrets(settings)
    init_clients()

    # NOTE: enable SCHEDULER_ENABLED on ONE instance only.
    set_scheduler_active(False)
    if settings.SCHEDULER_ENABLED:
        scheduler = _start_scheduler(settings)
        set_scheduler_active(True)
        if settings.app_env.lower() not in RELAXED_ENVS:
            logger.warning(
                "APScheduler enabled; ensure only one runner has SCHEDULER_ENABLED=1 in production.",
                extra={"env": settings.app_env},
            )
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
            scheduler = None
        set_scheduler_active(False)
        close_clients()
        logger.info("Application shutdown", extra={"env": settings.app_env})


app_info = AppInfo()

app = FastAPI(title=app_info.name, version=app_info.version, lifespan=lifespan)

_configure_middlewares(app)
app.include_router(get_api_router())


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc)
    payload = error_response("INTERNAL_SERVER_ERROR", "An unexpected error occurred.")
    return JSONResponse(status_code=500, content=payload)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content: dict[str, Any] = detail
    else:
        content = error_response("HTTP_ERROR", str(detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()]
    payload = error_response("INVALID_REQUEST", "Request validation failed.", {"fields": fields})
    return JSONResponse(status_code=400, content=payload)


@app.exception_handler(RecordNotFoundError)
async def not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
    payload = error_response("LISTING_NOT_FOUND", "Listing not found.", {"listing_id": exc.record_id})
    return JSONResponse(status_code=404, content=payload)


@app.exception_handler(UpstreamError)
async def upstream_exception_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    logger.error(
        "Upstream failure",
        extra={
            "operation": exc.operation,
            "status_code": exc.status_code,
            "retryable": exc.retryable,
            "path": request.url.path,
            "error": exc.message,
        },
    )
    payload = error_response(
        "UPSTREAM_ERROR",
        "A downstream service failed; try again later.",
        {"operation": exc.operation, "retryable": exc.retryable},
    )
    return JSONResponse(status_code=500, content=payload)


__all__ = ["app"]
