from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from usecase_catalog.api.models import ApiError
from usecase_catalog.auth import require_session
from usecase_catalog.models import UseCasePage
from usecase_catalog.upstream import UpstreamClient

router = APIRouter(tags=["use-cases"])


def _get_upstream(request: Request) -> UpstreamClient:
    upstream = getattr(request.app.state, "upstream_client", None)
    if upstream is None:
        raise HTTPException(status_code=500, detail="Upstream client not initialized")
    return upstream


@router.get(
    "/use-cases",
    response_model=UseCasePage,
    responses={401: {"model": ApiError}, 500: {"model": ApiError}},
    dependencies=[Depends(require_session)],
)
async def use_cases_list(
    request: Request,
    page: str | None = Query(default=None, description="1-indexed page, forwarded verbatim"),
    page_size: str | None = Query(default=None, description="Rows per page, forwarded verbatim"),
) -> JSONResponse:
    upstream = _get_upstream(request)
    body = await upstream.fetch_page(page, page_size)
    # Relay the upstream body as-is; response_model only documents the shape.
    return JSONResponse(content=body)
