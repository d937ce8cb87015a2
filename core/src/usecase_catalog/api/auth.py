from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from usecase_catalog.api.models import ApiError, fail
from usecase_catalog.auth import (
    clear_session_cookie,
    cookie_secure,
    get_validator,
    issue_session_cookie,
)
from usecase_catalog.errors import InvalidCredential, MissingCredential, Unauthorized
from usecase_catalog.models import LoginRequest, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _error(status_code: int, *, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=fail(code=code, message=message).model_dump(mode="json"),
    )


@router.post(
    "/login",
    response_model=MessageResponse,
    responses={400: {"model": ApiError}, 401: {"model": ApiError}, 500: {"model": ApiError}},
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": LoginRequest.model_json_schema()}},
            "required": True,
        }
    },
)
async def login(request: Request) -> JSONResponse:
    """Exchange the shared secret for a session cookie.

    The body is read raw so that any JSON shape maps onto 400/401 instead of
    a validation error. Only an unreadable body is a 500.
    """

    validator = get_validator(request)

    try:
        body = await request.json()
    except ValueError:
        logger.warning("Login rejected: request body is not JSON")
        return _error(500, code="internal_error", message="Internal server error")

    token = body.get("token") if isinstance(body, dict) else None
    if not token:
        return _error(400, code="bad_request", message="Token is required")

    try:
        if not isinstance(token, str):
            raise InvalidCredential()
        validator.validate(token)
    except MissingCredential:
        return _error(400, code="bad_request", message="Token is required")
    except Unauthorized:
        logger.warning("Login rejected: invalid credential")
        return _error(401, code="unauthorized", message="Invalid authentication token")

    response = JSONResponse(
        status_code=200,
        content=MessageResponse(message="Authentication successful").model_dump(mode="json"),
    )
    issue_session_cookie(response, token, secure=cookie_secure(request))
    return response


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request) -> JSONResponse:
    response = JSONResponse(
        status_code=200,
        content=MessageResponse(message="Logged out").model_dump(mode="json"),
    )
    clear_session_cookie(response, secure=cookie_secure(request))
    return response
