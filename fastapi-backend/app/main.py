from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles
import logging

from .config import get_settings
from .database import async_session_factory, init_db
from .departments import seed_departments
from .errors import register_exception_handlers
from .observability import (
    setup_logging,
    init_sentry,
    setup_metrics_middleware,
    get_health_check,
    metrics_response,
)
from .routes import auth as auth_routes
from .routes import departments as department_routes
from .routes import grievances as grievance_routes
from .storage import local_storage_path

# Setup observability
setup_logging()
init_sentry()

# Application logger
logger = logging.getLogger("app")

settings = get_settings()

app = FastAPI(title="Grievance Management API")

# Setup metrics middleware
setup_metrics_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=list(settings.allowed_hosts))

register_exception_handlers(app)

app.include_router(auth_routes.router)
app.include_router(department_routes.router)
app.include_router(grievance_routes.router)

# Locally stored attachments (used when S3 is off or unavailable)
app.mount("/storage", StaticFiles(directory=str(local_storage_path())), name="storage")


@app.on_event("startup")
async def on_startup():
    logger.info("Starting grievance backend (env=%s)", settings.environment)
    await init_db()

    if settings.seed_departments:
        async with async_session_factory() as session:
            created = await seed_departments(session)
        if not created:
            logger.info("Departments table already contains routing entries; no seeding required")


@app.get("/health")
def health():
    """Health check endpoint."""
    return get_health_check()


@app.get("/metrics")
def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return metrics_response()
