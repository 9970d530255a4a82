"""Observability module for logging, metrics, and error tracking."""

import logging
import json
import sys
from typing import Any, Dict
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request, Response
import time

from .config import get_settings
from .models import utcnow

_NS = get_settings().metrics_namespace

# Prometheus metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status'],
    namespace=_NS,
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'Duration of HTTP requests in seconds',
    ['method', 'endpoint'],
    namespace=_NS,
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': utcnow().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging() -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    for handler in logging.getLogger().handlers:
        handler.setFormatter(JSONFormatter())

    logger = logging.getLogger("app")
    logger.setLevel(logging.INFO)

    logger.info("Structured JSON logging configured")


def init_sentry() -> None:
    """Initialize Sentry error tracking when SENTRY_DSN is configured."""
    settings = get_settings()
    if not settings.sentry_dsn:
        logging.getLogger("app").info("Sentry DSN not configured, skipping initialization")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    try:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            integrations=[
                FastApiIntegration(),
                SqlalchemyIntegration(),
            ],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.1,
        )
        logging.getLogger("app").info("Sentry initialized successfully")
    except Exception as e:
        logging.getLogger("app").error(f"Failed to initialize Sentry: {e}")


def setup_metrics_middleware(app):
    """Add Prometheus metrics middleware to FastAPI app."""
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time

        # Use the route template so ids don't explode label cardinality.
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        method = request.method

        http_requests_total.labels(method=method, endpoint=endpoint, status=response.status_code).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

        return response


def metrics_response() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def get_health_check() -> Dict[str, Any]:
    settings = get_settings()
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "environment": settings.environment,
        "storage_provider": settings.storage_provider,
    }
