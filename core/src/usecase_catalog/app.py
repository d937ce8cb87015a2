from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.staticfiles import StaticFiles

from usecase_catalog import __version__
from usecase_catalog.api.models import fail
from usecase_catalog.api.router import router as api_router
from usecase_catalog.auth import CredentialValidator, SharedSecretValidator
from usecase_catalog.config import (
    apply_env_overrides,
    load_catalog_config,
    resolve_catalog_paths,
)
from usecase_catalog.errors import CatalogError, Unauthorized
from usecase_catalog.logs import configure_file_logging
from usecase_catalog.ui.router import STATIC_DIR as UI_STATIC_DIR
from usecase_catalog.ui.router import router as ui_router
from usecase_catalog.upstream import UpstreamClient

logger = logging.getLogger(__name__)


def create_app(
    *,
    validator: CredentialValidator | None = None,
    upstream_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the catalog service.

    ``validator`` replaces the shared-secret check (e.g. hashed or rotated
    credentials). ``upstream_transport`` swaps the outbound HTTP transport.
    """

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        paths = resolve_catalog_paths()
        config = apply_env_overrides(load_catalog_config(paths))

        configure_file_logging(paths, config)

        logger.info("Use Case Catalog starting up")
        logger.info(f"Log file: {paths.log_path}")
        logger.info(f"Upstream API: {config.upstream.base_url}")

        app.state.catalog_paths = paths
        app.state.catalog_config = config
        app.state.credential_validator = (
            validator if validator is not None else SharedSecretValidator(config.auth.shared_secret)
        )
        app.state.upstream_client = UpstreamClient(config.upstream, transport=upstream_transport)

        try:
            yield
        finally:
            await app.state.upstream_client.close()

    app = FastAPI(title="Use Case Catalog", version=__version__, lifespan=_lifespan)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} - {response.status_code}")
        return response

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=fail(
                code="validation_error",
                message="Request validation failed",
                details=exc.errors(),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(CatalogError)
    async def _catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
        if isinstance(exc, Unauthorized):
            return JSONResponse(
                status_code=exc.status_code,
                content=fail(code=exc.code, message=exc.message).model_dump(mode="json"),
            )

        # Upstream and internal failures are flattened; the cause stays in the logs.
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=500,
            content=fail(code="internal_error", message="Internal server error").model_dump(
                mode="json"
            ),
        )

    def _status_to_code(status_code: int) -> str:
        if status_code == 400:
            return "bad_request"
        if status_code == 401:
            return "unauthorized"
        if status_code == 404:
            return "not_found"
        if status_code == 405:
            return "method_not_allowed"
        if 400 <= status_code < 500:
            return "client_error"
        return "internal_error"

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(
                code=_status_to_code(exc.status_code),
                message=str(exc.detail),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(
                code=_status_to_code(exc.status_code),
                message=exc.detail if isinstance(exc.detail, str) else "HTTP error",
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=fail(code="internal_error", message="Internal server error").model_dump(
                mode="json"
            ),
        )

    app.include_router(api_router)

    if UI_STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=str(UI_STATIC_DIR)), name="static")
    else:
        logger.warning(
            "UI static directory is missing (%s); /static will not be served",
            UI_STATIC_DIR,
        )
    app.include_router(ui_router)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
