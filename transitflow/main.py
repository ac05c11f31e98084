import os

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .db import Base, engine
from .logging import setup_logging, RequestIdMiddleware
from .rate_limit import limiter
from .auth.router import router as auth_router
from .routes.approvals import router as approvals_router
from .routes.bls import router as bls_router
from .routes.chat import router as chat_router
from .routes.entities import router as entities_router
from .routes.reports import router as reports_router
from .routes.settings import router as settings_router
from .routes.users import router as users_router


logger = structlog.get_logger()


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

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(SQLAlchemyError)
    async def _database_error(request: Request, exc: SQLAlchemyError):
        logger.error("database_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"detail": "Database error"})

    # Routers
    app.include_router(auth_router)
    app.include_router(bls_router)
    app.include_router(entities_router)
    app.include_router(approvals_router)
    app.include_router(chat_router)
    app.include_router(users_router)
    app.include_router(settings_router)
    app.include_router(reports_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            existing = set(inspect(engine).get_table_names())
            missing = set(Base.metadata.tables.keys()) - existing
            if missing:
                Base.metadata.create_all(bind=engine)
                logger.info("tables_created", count=len(missing))
        logger.info("startup_complete", environment=settings.environment)

    return app


app = create_app()
