"""FastAPI dependency implementations."""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Depends, HTTPException, Request
from sqlmodel import Session

from src.signin.api.http.app_data import ApplicationDependencies
from src.signin.core.models.session import SessionClaims
from src.signin.core.security import validate_csrf_token
from src.signin.core.services import (
    AuthSessionService,
    CredentialAuthorizationFlow,
    OAuthAccountReconciler,
    SessionTokenService,
    UserDirectoryAdapter,
)
from src.signin.runtime.config.config_data import ConfigData


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    return request.app.state.app_dependencies


def get_app_config(request: Request) -> ConfigData:
    """Get the application configuration."""
    return get_app_dependencies(request).config


def get_db_session(request: Request) -> Iterator[Session]:
    """Open a database session for the duration of the request."""
    session = get_app_dependencies(request).database_service.get_session()
    try:
        yield session
    finally:
        session.close()


def get_session_token_service(request: Request) -> SessionTokenService:
    """Get the session token service instance."""
    return get_app_dependencies(request).session_token_service


def get_auth_session_service(request: Request) -> AuthSessionService:
    """Get the Auth Session service instance."""
    return get_app_dependencies(request).auth_session_service


def get_user_directory(db: Session = Depends(get_db_session)) -> UserDirectoryAdapter:
    return UserDirectoryAdapter(db)


def get_credential_flow(
    request: Request,
    directory: UserDirectoryAdapter = Depends(get_user_directory),
) -> CredentialAuthorizationFlow:
    """Get the One Tap credential flow bound to this request's directory."""
    app_deps = get_app_dependencies(request)
    return CredentialAuthorizationFlow.from_config(
        app_deps.config.google_one_tap, app_deps.google_verifier, directory
    )


def get_account_reconciler(
    directory: UserDirectoryAdapter = Depends(get_user_directory),
) -> OAuthAccountReconciler:
    return OAuthAccountReconciler(directory)


def get_optional_session(
    request: Request,
    tokens: SessionTokenService = Depends(get_session_token_service),
) -> SessionClaims | None:
    """Decode the session cookie; ``None`` when there is no valid session."""
    cookie_name = get_app_config(request).app.session_cookie_name
    return tokens.decode(request.cookies.get(cookie_name))


def require_session(
    session: SessionClaims | None = Depends(get_optional_session),
) -> SessionClaims:
    if session is None:
        raise HTTPException(status_code=401, detail="No session found")
    return session


def require_csrf(
    request: Request,
    session: SessionClaims = Depends(require_session),
    tokens: SessionTokenService = Depends(get_session_token_service),
) -> None:
    """Require a CSRF header bound to the current session."""
    # Ignore preflight
    if request.method == "OPTIONS":
        return

    security = get_app_config(request).security
    csrf_header = request.headers.get(security.csrf_header_name)
    if not csrf_header:
        raise HTTPException(status_code=403, detail="Missing CSRF token header")

    if not validate_csrf_token(
        tokens.secret,
        session.jti,
        csrf_header,
        max_age_hours=security.csrf_token_max_age_hours,
    ):
        raise HTTPException(status_code=403, detail="Invalid CSRF token")
