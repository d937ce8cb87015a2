from __future__ import annotations

import logging
from typing import Final, Protocol

from fastapi import Request, Security
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer
from starlette.responses import Response

from usecase_catalog.errors import InternalError, InvalidCredential, MissingCredential, Unauthorized

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER: Final[str] = "Authorization"
TOKEN_COOKIE: Final[str] = "auth_token"
SESSION_MAX_AGE: Final[int] = 60 * 60 * 24 * 7

_bearer_scheme = HTTPBearer(auto_error=False)
_cookie_scheme = APIKeyCookie(name=TOKEN_COOKIE, auto_error=False)


class CredentialValidator(Protocol):
    def validate(self, token: str | None) -> None:
        """Return normally for a valid token; raise an Unauthorized subclass otherwise."""


class SharedSecretValidator:
    """Accepts exactly one token: the configured shared secret.

    Comparison is plain string equality. No trimming, no case folding.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("shared secret must not be empty")
        self._secret = secret

    def validate(self, token: str | None) -> None:
        if not token:
            raise MissingCredential()
        if token != self._secret:
            raise InvalidCredential()


def extract_token_from_request(request: Request) -> str | None:
    cookie_token = request.cookies.get(TOKEN_COOKIE)
    if cookie_token:
        return cookie_token

    auth = request.headers.get(AUTHORIZATION_HEADER)
    if not auth:
        return None

    prefix = "Bearer "
    if auth.startswith(prefix):
        return auth[len(prefix) :] or None
    return None


def get_validator(request: Request) -> CredentialValidator:
    validator = getattr(request.app.state, "credential_validator", None)
    # Fail closed. Startup should always install one.
    if validator is None:
        raise InternalError("Server auth not initialized")
    return validator


def cookie_secure(request: Request) -> bool:
    config = getattr(request.app.state, "catalog_config", None)
    return bool(config is not None and config.is_production)


async def require_session(
    request: Request,
    cookie_token: str | None = Security(_cookie_scheme),  # noqa: B008
    bearer: HTTPAuthorizationCredentials | None = Security(_bearer_scheme),  # noqa: B008
) -> str:
    """Require a valid session for data endpoints.

    Accepts either (cookie wins when both are sent):
    - Cookie: auth_token=<token>
    - Authorization: Bearer <token>
    """

    validator = get_validator(request)

    provided = cookie_token
    if not provided and bearer is not None:
        provided = bearer.credentials

    try:
        validator.validate(provided)
    except Unauthorized as exc:
        logger.warning(
            "Rejected %s %s: %s credential", request.method, request.url.path, exc.reason
        )
        raise

    return provided


def issue_session_cookie(response: Response, token: str, *, secure: bool) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=SESSION_MAX_AGE,
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict",
    )


def clear_session_cookie(response: Response, *, secure: bool) -> None:
    response.delete_cookie(
        TOKEN_COOKIE,
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict",
    )
