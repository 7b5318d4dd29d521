import os

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .config import settings
from .db import Base, engine, SessionLocal
from .errors import ValidationFailed, VerdeError
from .logging import setup_logging, RequestIdMiddleware
from .auth.router import router as auth_router
from .routes.analytics import router as analytics_router
from .routes.electrical import router as electrical_router
from .routes.api import router as api_router
from .routes.files import router as files_router
from .routes.logs import router as logs_router
from .routes.materials import router as materials_router
from .routes.members import router as members_router
from .routes.notifications import router as notifications_router
from .routes.organizations import router as organizations_router
from .routes.projects import router as projects_router


log = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(VerdeError)
    async def _verde_error(request: Request, exc: VerdeError):
        body = {"error": exc.message}
        if isinstance(exc, ValidationFailed) and exc.field_errors:
            body["fieldErrors"] = exc.field_errors
        if exc.status_code >= 500:
            log.error("request_failed", path=request.url.path, error=exc.message)
        return JSONResponse(body, status_code=exc.status_code)

    # Routers
    app.include_router(auth_router)
    app.include_router(projects_router)
    app.include_router(materials_router)
    app.include_router(logs_router)
    app.include_router(electrical_router)
    app.include_router(analytics_router)
    app.include_router(members_router)
    app.include_router(organizations_router)
    app.include_router(files_router)
    app.include_router(notifications_router)
    app.include_router(api_router)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        log.info("startup", environment=settings.environment)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            from .services.members import seed_default_roles

            db = SessionLocal()
            try:
                added = seed_default_roles(db)
                if added:
                    log.info("roles_seeded", count=added)
            finally:
                db.close()

    return app


app = create_app()
