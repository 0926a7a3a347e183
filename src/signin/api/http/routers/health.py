"""Health check endpoints router for monitoring service availability."""

from typing import Any

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from src.signin.api.http.app_data import ApplicationDependencies
from src.signin.core.errors import KeySetUnavailable

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health() -> dict[str, str]:
    """Liveness probe; does not check dependencies."""
    return {"status": "healthy", "service": "signin"}


@router.get("/ready", response_model=None)
async def readiness(request: Request) -> dict[str, Any] | JSONResponse:
    """Readiness check over the service dependencies.

    Returns 200 if all critical services are ready, 503 otherwise.

    This checks:
    - Database connectivity
    - Redis (non-critical, falls back to in-memory)
    - Provider key sets (critical in production only)
    """
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    config = app_deps.config

    checks: dict[str, Any] = {}
    all_healthy = True

    db_healthy = app_deps.database_service.health_check()
    checks["database"] = {
        "status": "healthy" if db_healthy else "unhealthy",
        "type": "sqlite" if config.database.is_sqlite else "postgresql",
    }
    if not db_healthy:
        all_healthy = False

    if config.redis.enabled:
        redis_healthy = await app_deps.session_storage.ping()
        # Redis failure is not critical, auth sessions fall back to memory
        checks["redis"] = {"status": "healthy" if redis_healthy else "degraded"}
    else:
        checks["redis"] = {"status": "disabled", "type": "in-memory"}

    jwks_uris = {}
    if config.google_one_tap.enabled:
        jwks_uris[config.google_one_tap.id] = config.google_one_tap.jwks_uri
    for provider_id, provider_cfg in config.oidc.providers.items():
        jwks_uris[provider_id] = provider_cfg.jwks_uri

    provider_checks = {}
    for provider_id, jwks_uri in jwks_uris.items():
        try:
            await app_deps.jwks_service.fetch_jwks(jwks_uri)
            provider_checks[provider_id] = {"status": "healthy"}
        except KeySetUnavailable as e:
            provider_checks[provider_id] = {"status": "unhealthy", "error": str(e)}
            # Key set failures are not critical outside production
            if config.app.environment == "production":
                all_healthy = False
    if provider_checks:
        checks["providers"] = provider_checks

    response = {
        "status": "ready" if all_healthy else "not_ready",
        "environment": config.app.environment,
        "checks": checks,
    }

    if not all_healthy:
        return JSONResponse(status_code=503, content=response)
    return response
