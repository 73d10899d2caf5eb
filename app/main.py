import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Dict

import sentry_sdk
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# OpenTelemetry setup
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider

from app.core.config import get_settings

__version__ = "1.0.0"

settings = get_settings()

# Initialize OpenTelemetry
resource = Resource.create({
    SERVICE_NAME: "spacex-launch-dashboard",
    SERVICE_VERSION: __version__,
})
trace.set_tracer_provider(TracerProvider(resource=resource))
tracer = trace.get_tracer(__name__)

# Error tracking is only enabled when a DSN is configured
if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        attach_stacktrace=True,
        send_default_pii=False,
        max_breadcrumbs=50,
    )

# Setup logging first
from app.core.logging_config import setup_logging
setup_logging()
logger = logging.getLogger(__name__)

from app.api import admin as admin_router
from app.api import auth as auth_router
from app.api import dashboard as dashboard_router
from app.core.cache import get_stats_cache
from app.core.errors import (
    APIError,
    api_error_handler,
    general_exception_handler,
    validation_exception_handler,
)
from app.data.fetchers.spacex import SpaceXClient
from app.db import SessionLocal, check_connection, engine
from app.services.bootstrap import create_schema, initial_sync, seed_accounts

# Prometheus metrics
REQUEST_LATENCY = Histogram(
    "sld_request_latency_seconds",
    "Request latency in seconds",
    ["method", "path", "status"],
)
REQUEST_COUNT = Counter(
    "sld_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

app = FastAPI(
    title="SpaceX Launch Dashboard API",
    version=__version__,
    description="Launch statistics and listings synchronized from the SpaceX public API",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

# Initialize FastAPI OpenTelemetry instrumentation
FastAPIInstrumentor.instrument_app(app)

# Register global error handlers
app.add_exception_handler(APIError, api_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept", "X-Request-ID"],
)


@app.middleware("http")
async def request_id_and_metrics(request: Request, call_next):
    """Attach request id, record metrics, and add OpenTelemetry tracing."""
    req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = req_id

    with tracer.start_as_current_span(
        f"{request.method} {request.url.path}",
        attributes={
            "http.method": request.method,
            "http.url": str(request.url),
            "sld.request_id": req_id,
        }
    ) as span:
        start = time.perf_counter()

        struct_logger = structlog.get_logger().bind(
            request_id=req_id,
            method=request.method,
            path=request.url.path,
            trace_id=format(span.get_span_context().trace_id, '032x'),
        )
        struct_logger.info("Request started")

        try:
            response = await call_next(request)
        except Exception as e:
            span.set_attribute("error", True)
            struct_logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                response_time_ms=(time.perf_counter() - start) * 1000,
            )
            raise

        elapsed = time.perf_counter() - start
        status = response.status_code
        # Route template keeps label cardinality bounded (/launches/{launch_id})
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)

        span.set_attribute("http.status_code", status)
        REQUEST_LATENCY.labels(request.method, path, status).observe(elapsed)
        REQUEST_COUNT.labels(request.method, path, status).inc()

        struct_logger.info(
            "Request completed",
            status_code=status,
            response_time_ms=elapsed * 1000,
        )

        response.headers["X-Request-ID"] = req_id
        return response


@app.on_event("startup")
async def startup_event():
    """Create tables, seed accounts and run the initial synchronization."""
    logger.info("Starting SpaceX launch dashboard service...")

    create_schema(engine)
    seed_accounts(SessionLocal, settings)

    if not settings.sync_on_startup:
        logger.info("Initial synchronization disabled")
        return

    def _sync() -> None:
        with SpaceXClient() as client:
            initial_sync(client, get_stats_cache(), SessionLocal, max_workers=settings.sync_max_workers)

    await asyncio.to_thread(_sync)


app.include_router(auth_router.router)
app.include_router(dashboard_router.router)
app.include_router(admin_router.router)


@app.get("/health")
def health_check() -> Dict[str, Any]:
    """Basic health check endpoint."""
    db_type = "PostgreSQL" if settings.database_url.startswith("postgresql") else "SQLite" if settings.database_url.startswith("sqlite") else "Unknown"
    database_ok = check_connection(engine)

    return {
        "status": "ok" if database_ok else "degraded",
        "checked_at": datetime.utcnow().isoformat() + "Z",
        "version": __version__,
        "environment": settings.environment,
        "database_type": db_type,
        "database": "ok" if database_ok else "unreachable",
        "stats_cache": get_stats_cache().status(),
    }


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
