from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from routewatch.api.endpoints import health, subscriptions
from routewatch.core.database import build_engine, build_session_factory, init_schema
from routewatch.core.security import TokenVerifier, authenticate_request
from routewatch.core.settings import Settings

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    token_verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Build the API with its storage engine and token verifier wired onto
    ``app.state``. Missing auth configuration aborts here."""
    settings = settings or Settings()
    settings.require_auth_config()
    logger.info("config.auth domain=%s audience=%s", settings.auth0_domain, settings.auth0_audience)

    engine = engine or build_engine(settings.resolved_database_url())
    token_verifier = token_verifier or TokenVerifier.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.jwks_prefetch:
            logger.info("startup.jwks.fetch url=%s", settings.jwks_url)
            token_verifier.prime()
            logger.info("startup.jwks.ready")
        init_schema(engine, create_tables=settings.db_auto_create)
        logger.info("startup.database.ready dialect=%s", engine.dialect.name)
        yield
        engine.dispose()
        logger.info("shutdown.complete")

    app = FastAPI(title="Routewatch Subscriptions API", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.token_verifier = token_verifier

    app.middleware("http")(authenticate_request)
    # Added last so it wraps the auth gate and 401s still carry CORS headers.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Origin", "Content-Type", "Authorization"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("storage.error path=%s", request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Storage failure"})

    app.include_router(subscriptions.router, prefix="/api", tags=["subscriptions"])
    app.include_router(health.router, prefix="/api", tags=["health"])
    return app
