"""Workdesk — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from workdesk.account.router import router as account_router
from workdesk.attendance.router import router as attendance_router
from workdesk.auth.router import router as auth_router
from workdesk.common.exceptions import register_exception_handlers
from workdesk.common.rate_limit import limiter
from workdesk.config import settings
from workdesk.dashboard.router import router as dashboard_router
from workdesk.employees.router import router as employees_router
from workdesk.leave.router import router as leave_router
from workdesk.notices.router import router as notices_router
from workdesk.notifications.router import router as notifications_router
from workdesk.search.router import router as search_router
from workdesk.tasks.router import router as tasks_router
from workdesk.workspace import build_registry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"


def configure_logging() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    # Startup
    configure_logging()
    settings.check_backend()
    if getattr(app.state, "registry", None) is None:
        app.state.registry = build_registry()
    yield
    # Shutdown
    await app.state.registry.aclose()
    app.state.registry = None


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Workdesk",
        description="Employee management: attendance, tasks, notices, leave and the employee directory",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
            "row_store": settings.ROW_STORE,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(attendance_router, prefix="/api/v1/attendance", tags=["attendance"])
    app.include_router(tasks_router, prefix="/api/v1/tasks", tags=["tasks"])
    app.include_router(notices_router, prefix="/api/v1/notices", tags=["notices"])
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])
    app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["dashboard"])
    app.include_router(search_router, prefix="/api/v1/search", tags=["search"])
    app.include_router(account_router, prefix="/api/v1/account", tags=["account"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])

    return app


app = create_app()
