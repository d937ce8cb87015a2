from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from starlette.responses import Response

from usecase_catalog.auth import (
    clear_session_cookie,
    cookie_secure,
    extract_token_from_request,
    get_validator,
    issue_session_cookie,
)
from usecase_catalog.errors import MissingCredential, Unauthorized, UpstreamError
from usecase_catalog.loader import RowIdentity, build_rows
from usecase_catalog.models import UseCasePage
from usecase_catalog.upstream import UpstreamClient

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["ui"])

# Record attribute -> column title, in display order.
COLUMNS: dict[str, str] = {
    "capability": "Capability",
    "business_function": "Business Function",
    "business_capability": "Business Capability",
    "stakeholder": "Stakeholder or User",
    "use_case": "AI Use Case",
    "algorithms": "AI Algorithms & Frameworks",
    "datasets": "Datasets",
    "implementation": "Action / Implementation",
    "tools": "AI Tools & Models",
    "platforms": "Digital Platforms and Tools",
    "expected_outcomes": "Expected Outcomes and Results",
}


def _flash_from_request(request: Request) -> dict[str, Any] | None:
    msg = request.query_params.get("msg")
    if not msg:
        return None
    kind = request.query_params.get("kind") or ""
    return {"message": msg, "kind": kind}


def _render_login(
    request: Request, *, error: str | None = None, status_code: int = 200
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "title": "Login • Use Case Catalog",
            "hide_nav": True,
            "flash": _flash_from_request(request),
            "error": error,
        },
        status_code=status_code,
    )


@router.get("/login", response_class=HTMLResponse)
async def ui_login(request: Request) -> HTMLResponse:
    return _render_login(request)


@router.post("/login", response_model=None)
async def ui_login_post(request: Request, token: str = Form(default="")) -> Response:
    validator = get_validator(request)

    try:
        validator.validate(token)
    except MissingCredential:
        return _render_login(request, error="Token is required", status_code=400)
    except Unauthorized:
        return _render_login(request, error="Invalid authentication token", status_code=401)

    resp = RedirectResponse(url="/", status_code=302)
    issue_session_cookie(resp, token, secure=cookie_secure(request))
    return resp


@router.post("/logout")
async def ui_logout(request: Request) -> RedirectResponse:
    resp = RedirectResponse(url="/login?msg=Logged+out&kind=ok", status_code=302)
    clear_session_cookie(resp, secure=cookie_secure(request))
    return resp


@router.get("/", response_class=HTMLResponse, response_model=None)
async def ui_catalog(
    request: Request,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> Response:
    try:
        get_validator(request).validate(extract_token_from_request(request))
    except Unauthorized:
        return RedirectResponse(url="/login", status_code=302)

    upstream: UpstreamClient = request.app.state.upstream_client
    config = request.app.state.catalog_config

    context: dict[str, Any] = {
        "title": "Use Case Catalog",
        "flash": _flash_from_request(request),
        "columns": COLUMNS,
        "page": page,
        "page_size": page_size,
        "rows": [],
        "total": None,
        "has_next": False,
        "error": None,
    }

    try:
        body = await upstream.fetch_page(str(page), str(page_size))
        result = UseCasePage.model_validate(body)
    except (UpstreamError, ValidationError) as exc:
        logger.warning("Catalog page %s failed: %s", page, exc)
        context["error"] = "Failed to load use cases. Reload the page to try again."
        return templates.TemplateResponse(request, "catalog.html", context, status_code=500)

    total = result.valid_total()
    context["rows"] = build_rows(
        result.data,
        identity=RowIdentity(config.ui.row_identity),
        page_index=page - 1,
        page_size=page_size,
    )
    context["total"] = total
    if total is not None:
        context["has_next"] = page * page_size < total
    else:
        context["has_next"] = len(result.data) == page_size

    return templates.TemplateResponse(request, "catalog.html", context)
