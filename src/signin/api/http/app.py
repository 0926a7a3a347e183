"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from src.signin.api.http.app_data import ApplicationDependencies, build_dependencies
from src.signin.api.http.routers.auth import router as auth_router
from src.signin.api.http.routers.health import router as health_router
from src.signin.api.utils.app_startup import configure_logging
from src.signin.core.errors import SignInError
from src.signin.core.services import AuthSessionService
from src.signin.core.storage import build_session_storage
from src.signin.runtime.context import AppContext, load_context


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, production: bool = False):
        super().__init__(app)
        self._production = production

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault(
            "Referrer-Policy", "strict-origin-when-cross-origin"
        )
        response.headers.setdefault(
            "Permissions-Policy", "geolocation=(), microphone=()"
        )
        # HSTS only in prod
        if self._production:
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains; preload",
            )
        return response


async def log_requests(request: Request, call_next):
    # Correlation / tracing
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    xff = request.headers.get("x-forwarded-for")
    client_ip = (
        xff.split(",")[0].strip()
        if xff
        else request.client.host
        if request.client
        else "unknown"
    )

    # Query strings carry OAuth codes and state; never log them
    base_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_ip,
        "user_agent": request.headers.get("user-agent", "unknown"),
    }

    start = time.perf_counter()

    # Everything that logs within this block inherits base_ctx
    with logger.contextualize(**base_ctx):
        try:
            logger.info("request.start")
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=response.status_code,
                duration_ms=round(duration_ms, 1),
            ).info("request.end")

            response.headers.setdefault("X-Request-ID", request_id)
            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=500,
                duration_ms=round(duration_ms, 1),
                error_type=type(exc).__name__,
            ).exception("request.error")
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )


async def sign_in_error_handler(request: Request, exc: SignInError) -> JSONResponse:
    """Report every sign-in failure the same way; the reason is only logged."""
    logger.bind(error_code=exc.code).warning("Sign-in rejected: {}", exc)
    return JSONResponse(status_code=401, content={"error": "CredentialsSignin"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    deps: ApplicationDependencies = app.state.app_dependencies
    config = deps.config
    logger.info("Starting up application in {} environment", config.app.environment)

    if config.database.create_tables:
        deps.database_service.create_all()

    if config.redis.enabled:
        storage = await build_session_storage(config)
        deps.session_storage = storage
        deps.auth_session_service = AuthSessionService(storage, config)

    try:
        yield
    finally:
        logger.info("Shutting down application")
        await deps.auth_session_service.purge_expired()
        await deps.session_storage.close()
        deps.database_service.dispose()


def create_app(
    context: AppContext | None = None,
    dependencies: ApplicationDependencies | None = None,
) -> FastAPI:
    """Build the application for ``context`` (loaded from the environment if omitted)."""
    context = context or load_context()
    config = context.config
    configure_logging(config)

    production = config.app.environment == "production"
    if production and "*" in config.app.cors.origins:
        raise RuntimeError(
            "CORS misconfigured: cannot use '*' with allow_credentials=True in production"
        )

    app = FastAPI(
        title="Sign-in Gateway",
        lifespan=lifespan,
        docs_url=None if production else "/docs",
        redoc_url=None if production else "/redoc",
    )
    app.state.context = context
    app.state.app_dependencies = dependencies or build_dependencies(config)

    app.add_middleware(SecurityHeadersMiddleware, production=production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.app.cors.origins,
        allow_credentials=config.app.cors.allow_credentials,
        allow_methods=config.app.cors.allow_methods,
        allow_headers=config.app.cors.allow_headers,
    )
    app.middleware("http")(log_requests)
    app.add_exception_handler(SignInError, sign_in_error_handler)

    app.include_router(auth_router)
    app.include_router(health_router)

    return app
