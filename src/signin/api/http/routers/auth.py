"""Sign-in endpoints: One Tap credentials, OAuth redirects and the session."""

import secrets
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger

from src.signin.api.http.deps import (
    get_account_reconciler,
    get_app_config,
    get_app_dependencies,
    get_auth_session_service,
    get_credential_flow,
    get_optional_session,
    get_session_token_service,
    require_csrf,
)
from src.signin.core.errors import (
    InvalidToken,
    MissingCredential,
    OAuthAccountNotLinked,
    SignInError,
)
from src.signin.core.models.session import SessionClaims
from src.signin.core.security import (
    extract_client_fingerprint,
    generate_csrf_token,
    generate_nonce,
    generate_pkce_pair,
    generate_state,
)
from src.signin.core.services import (
    AuthSessionService,
    CredentialAuthorizationFlow,
    OAuthAccountReconciler,
    OneTapPromptTrigger,
    SessionTokenService,
)
from src.signin.entities.core.user import User
from src.signin.runtime.config.config_data import ConfigData

router = APIRouter(prefix="/api/auth", tags=["auth"])

AUTH_SESSION_COOKIE = "auth_session_id"
G_CSRF_COOKIE = "g_csrf_token"


def _cookie_settings(config: ConfigData) -> dict[str, Any]:
    """HttpOnly cookie attributes; Secure only in production."""
    return {
        "httponly": True,
        "secure": config.app.environment == "production",
        "samesite": config.security.cookie_samesite,
        "path": "/",
    }


def _user_payload(user: User) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "email": user.email, "image": user.image}


def _set_session_cookie(
    response: Response, user: User, tokens: SessionTokenService, config: ConfigData
) -> None:
    token, _ = tokens.issue(user)
    response.set_cookie(
        key=config.app.session_cookie_name,
        value=token,
        max_age=tokens.max_age,
        **_cookie_settings(config),
    )


async def _read_credential(request: Request) -> tuple[str | None, str | None, bool]:
    """Return ``(credential, g_csrf_token, is_form)`` from a JSON or form body.

    Raises:
        MissingCredential: If the submitted credential is not a string
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            return None, None, False
        if not isinstance(body, dict):
            return None, None, False
        credential = body.get("credential")
        if credential is not None and not isinstance(credential, str):
            raise MissingCredential("credential is not a string")
        return credential, None, False

    form = await request.form()
    credential = form.get("credential")
    csrf = form.get(G_CSRF_COOKIE)
    if credential is not None and not isinstance(credential, str):
        raise MissingCredential("credential is not a string")
    return credential, csrf if isinstance(csrf, str) else None, True


def _check_double_submit(request: Request, posted_csrf: str | None) -> None:
    """Redirect-mode posts must carry ``g_csrf_token`` in both body and cookie."""
    cookie_csrf = request.cookies.get(G_CSRF_COOKIE)
    if not cookie_csrf or not posted_csrf:
        raise InvalidToken("g_csrf_token missing from cookie or body")
    if not secrets.compare_digest(posted_csrf, cookie_csrf):
        raise InvalidToken("g_csrf_token does not match its cookie")


@router.post("/callback/{provider}")
async def credentials_callback(
    provider: str,
    request: Request,
    config: ConfigData = Depends(get_app_config),
    flow: CredentialAuthorizationFlow = Depends(get_credential_flow),
    tokens: SessionTokenService = Depends(get_session_token_service),
) -> JSONResponse:
    """Sign in with a One Tap ID token.

    Accepts ``{"credential": ...}`` as JSON, or the form post Google sends in
    redirect mode, in which case the posted ``g_csrf_token`` must match the
    cookie of the same name. Any sign-in failure, expected or not, is
    reported as an opaque 401 by the application's ``SignInError`` handler.
    """
    one_tap = config.google_one_tap
    if not one_tap.enabled or provider != one_tap.id:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")

    credential, posted_csrf, is_form = await _read_credential(request)
    if is_form:
        _check_double_submit(request, posted_csrf)

    try:
        user = await flow.authorize(credential)
    except SignInError:
        raise
    except Exception as exc:
        logger.exception("One Tap sign-in failed unexpectedly")
        raise SignInError("Unexpected sign-in failure") from exc

    response = JSONResponse({"ok": True, "user": _user_payload(user)})
    _set_session_cookie(response, user, tokens, config)
    return response


@router.get("/signin/{provider}")
async def oauth_signin(
    provider: str,
    request: Request,
    return_to: str | None = None,
    auth_session_service: AuthSessionService = Depends(get_auth_session_service),
) -> RedirectResponse:
    """Start the authorization code flow with PKCE, state and nonce."""
    app_deps = get_app_dependencies(request)
    client = app_deps.oauth_clients.get(provider)
    if client is None:
        raise HTTPException(status_code=400, detail=f"Unknown provider: {provider}")

    config = app_deps.config
    pkce_verifier, pkce_challenge = generate_pkce_pair()
    state = generate_state()
    nonce = generate_nonce()

    session_id = await auth_session_service.create_auth_session(
        pkce_verifier=pkce_verifier,
        state=state,
        nonce=nonce,
        provider=provider,
        return_to=return_to,
        client_fingerprint_hash=extract_client_fingerprint(request),
    )

    response = RedirectResponse(
        url=client.build_authorization_url(state, nonce, pkce_challenge),
        status_code=status.HTTP_302_FOUND,
    )
    response.set_cookie(
        key=AUTH_SESSION_COOKIE,
        value=session_id,
        max_age=config.security.auth_session_ttl_seconds,
        **_cookie_settings(config),
    )
    return response


def _oauth_failure(code: str = "OAuthSignin") -> RedirectResponse:
    response = RedirectResponse(url=f"/?error={code}", status_code=status.HTTP_302_FOUND)
    response.delete_cookie(AUTH_SESSION_COOKIE, path="/")
    return response


@router.get("/callback/{provider}")
async def oauth_callback(
    provider: str,
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    auth_session_service: AuthSessionService = Depends(get_auth_session_service),
    reconciler: OAuthAccountReconciler = Depends(get_account_reconciler),
    tokens: SessionTokenService = Depends(get_session_token_service),
) -> RedirectResponse:
    """Complete the authorization code flow and start a session.

    Every failure retires the auth session and redirects home with a
    generic error code; the reason is only logged.
    """
    app_deps = get_app_dependencies(request)
    config = app_deps.config
    client = app_deps.oauth_clients.get(provider)
    session_id = request.cookies.get(AUTH_SESSION_COOKIE)

    fingerprint = (
        extract_client_fingerprint(request)
        if config.security.enable_client_fingerprinting
        else None
    )
    auth_session = await auth_session_service.validate_auth_session(
        session_id=session_id,
        state=state,
        client_fingerprint_hash=fingerprint,
    )
    if client is None or auth_session is None or auth_session.provider != provider:
        logger.warning("Rejected OAuth callback for provider {}", provider)
        if session_id:
            await auth_session_service.delete_auth_session(session_id)
        return _oauth_failure()

    # Provider errors are only surfaced after the state has been validated
    if error or not code:
        logger.warning("OAuth provider {} returned error {}", provider, error)
        await auth_session_service.delete_auth_session(auth_session.id)
        return _oauth_failure()

    try:
        # Single-use guarantee before any outbound call
        await auth_session_service.mark_auth_session_used(auth_session.id)

        token_response = await client.exchange_code_for_tokens(
            code=code, pkce_verifier=auth_session.pkce_verifier
        )
        claims = await client.get_user_claims(token_response, nonce=auth_session.nonce)
        user = reconciler.reconcile(
            provider,
            claims,
            token_response,
            allow_email_linking=client.config.allow_dangerous_email_account_linking,
        )
    except OAuthAccountNotLinked as exc:
        logger.warning("OAuth sign-in with {} refused: {}", provider, exc)
        await auth_session_service.delete_auth_session(auth_session.id)
        return _oauth_failure(exc.code)
    except SignInError as exc:
        logger.warning("OAuth sign-in with {} failed: {} ({})", provider, exc.code, exc)
        await auth_session_service.delete_auth_session(auth_session.id)
        return _oauth_failure()
    except Exception:
        logger.exception("OAuth sign-in with {} failed", provider)
        await auth_session_service.delete_auth_session(auth_session.id)
        return _oauth_failure()

    await auth_session_service.delete_auth_session(auth_session.id)

    response = RedirectResponse(url=auth_session.return_to or "/", status_code=status.HTTP_302_FOUND)
    _set_session_cookie(response, user, tokens, config)
    response.delete_cookie(AUTH_SESSION_COOKIE, path="/")
    logger.info("OAuth sign-in with {} succeeded for user {}", provider, user.id)
    return response


@router.get("/session")
async def get_session(
    session: SessionClaims | None = Depends(get_optional_session),
    tokens: SessionTokenService = Depends(get_session_token_service),
) -> dict[str, Any]:
    """Current session, or an empty object when signed out."""
    if session is None:
        return {}

    return {
        "user": {
            "id": session.user_id,
            "name": session.name,
            "email": session.email,
            "image": session.image,
        },
        "expires": datetime.fromtimestamp(session.expires_at, UTC).isoformat(),
        "csrf_token": generate_csrf_token(tokens.secret, session.jti),
    }


@router.post("/signout", dependencies=[Depends(require_csrf)])
async def signout(
    response: Response, config: ConfigData = Depends(get_app_config)
) -> dict[str, str]:
    """Clear the session cookie."""
    response.delete_cookie(config.app.session_cookie_name, path="/")
    return {"message": "Signed out"}


@router.get("/providers")
async def list_providers(request: Request) -> dict[str, dict[str, str]]:
    """Configured sign-in providers keyed by id."""
    app_deps = get_app_dependencies(request)
    config = app_deps.config
    base = f"{request.base_url}".rstrip("/") + router.prefix

    providers: dict[str, dict[str, str]] = {}
    one_tap = config.google_one_tap
    if one_tap.enabled:
        providers[one_tap.id] = {
            "id": one_tap.id,
            "name": one_tap.name,
            "type": "credentials",
            "signin_url": f"{base}/callback/{one_tap.id}",
            "callback_url": f"{base}/callback/{one_tap.id}",
        }
    for provider_id, client in app_deps.oauth_clients.items():
        providers[provider_id] = {
            "id": provider_id,
            "name": client.config.name or provider_id,
            "type": "oauth",
            "signin_url": f"{base}/signin/{provider_id}",
            "callback_url": f"{base}/callback/{provider_id}",
        }
    return providers


@router.get("/onetap")
async def onetap_bootstrap(
    request: Request,
    config: ConfigData = Depends(get_app_config),
    session: SessionClaims | None = Depends(get_optional_session),
) -> dict[str, Any]:
    """Client bootstrap for the One Tap prompt."""
    one_tap = config.google_one_tap
    trigger = OneTapPromptTrigger(lambda: None)
    if one_tap.enabled and one_tap.client_id:
        trigger.script_loaded()
    trigger.session_changed(session)

    base = f"{request.base_url}".rstrip("/") + router.prefix
    return {
        "client_id": one_tap.client_id,
        "login_uri": f"{base}/callback/{one_tap.id}",
        "script_url": one_tap.script_url,
        "prompt": trigger.should_prompt,
    }
