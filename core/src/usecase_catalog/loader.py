"""Client-side loader for the catalog proxy.

Mirrors what the browser table does against ``/api/use-cases``:

- ``PageLoader``: discrete pages. Every load replaces the held rows.
- ``InfiniteLoader``: incremental loading. Pages are appended as the viewport
  nears the end of the held rows, until the catalog is exhausted.

Both share one state machine (``LoaderState``). A 401 at any point moves the
loader to ``REDIRECTING``, calls ``navigate`` with the login path exactly once,
and every later fetch is refused. Nothing is retried automatically.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import httpx
from pydantic import ValidationError

from usecase_catalog.models import UseCasePage, UseCaseRecord

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
DEFAULT_PAGE_SIZE = 20
DEFAULT_LOOKAHEAD = 5


class LoaderState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    LOADING_MORE = "loading_more"
    ERROR = "error"
    REDIRECTING = "redirecting"


class RowIdentity(StrEnum):
    """How a row key is derived.

    ``INDEX`` numbers rows by position across pages (1-based).
    ``CAPABILITY`` reuses the upstream capability id.
    """

    INDEX = "index"
    CAPABILITY = "capability"


class LoaderError(Exception):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SessionExpired(LoaderError):
    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status=401)


class LoginFailed(LoaderError):
    pass


@dataclass(frozen=True)
class Row:
    key: int
    record: UseCaseRecord


def row_key(
    identity: RowIdentity,
    record: UseCaseRecord,
    *,
    page_index: int,
    page_size: int,
    offset: int,
) -> int:
    if identity is RowIdentity.CAPABILITY:
        return record.capability
    return page_index * page_size + offset + 1


def build_rows(
    records: list[UseCaseRecord],
    *,
    identity: RowIdentity,
    page_index: int,
    page_size: int,
) -> list[Row]:
    return [
        Row(
            key=row_key(identity, record, page_index=page_index, page_size=page_size, offset=i),
            record=record,
        )
        for i, record in enumerate(records)
    ]


class CatalogSession:
    """HTTP session against a running catalog service.

    The session cookie issued by ``login`` lives in the underlying client's
    cookie jar, the same way a browser holds it.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        bearer_token: str | None = None,
    ) -> None:
        headers = {"accept": "application/json"}
        if bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.request_count = 0

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> CatalogSession:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def login(self, token: str) -> None:
        try:
            response = await self._client.post("/api/auth/login", json={"token": token})
        except httpx.HTTPError as exc:
            raise LoginFailed(f"Login request failed: {exc}") from exc

        if not response.is_success:
            message = "Authentication failed"
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                message = str(body["error"])
            raise LoginFailed(message, status=response.status_code)

    async def logout(self) -> None:
        try:
            await self._client.post("/api/auth/logout")
        except httpx.HTTPError as exc:
            # The local cookie is dropped either way.
            logger.warning("Logout request failed: %s", exc)
        self._client.cookies.clear()

    async def fetch_page(self, page_index: int, page_size: int) -> UseCasePage:
        """Fetch one zero-indexed page through the proxy."""

        self.request_count += 1
        try:
            response = await self._client.get(
                "/api/use-cases",
                params={"page": page_index + 1, "page_size": page_size},
            )
        except httpx.HTTPError as exc:
            raise LoaderError(f"Failed to fetch data: {exc}") from exc

        if response.status_code == 401:
            raise SessionExpired()
        if not response.is_success:
            raise LoaderError(
                f"Failed to fetch data: {response.status_code}", status=response.status_code
            )

        try:
            return UseCasePage.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise LoaderError(f"Failed to parse data: {exc}") from exc


class _BaseLoader:
    def __init__(
        self,
        session: CatalogSession,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        row_identity: RowIdentity = RowIdentity.INDEX,
        navigate: Callable[[str], None] | None = None,
        login_path: str = LOGIN_PATH,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.session = session
        self.page_size = page_size
        self.row_identity = row_identity
        self.login_path = login_path
        self._navigate = navigate

        self.state = LoaderState.IDLE
        self.rows: list[Row] = []
        self.total: int | None = None
        self.error: str | None = None

    @property
    def redirected(self) -> bool:
        return self.state is LoaderState.REDIRECTING

    def _redirect(self) -> None:
        if self.redirected:
            return
        self.state = LoaderState.REDIRECTING
        logger.info("Session rejected; redirecting to %s", self.login_path)
        if self._navigate is not None:
            self._navigate(self.login_path)

    async def _fetch(self, page_index: int) -> UseCasePage | None:
        try:
            page = await self.session.fetch_page(page_index, self.page_size)
        except SessionExpired:
            self._redirect()
            return None
        except LoaderError as exc:
            logger.warning("Error fetching page %s: %s", page_index, exc)
            self.state = LoaderState.ERROR
            self.error = str(exc)
            return None

        self.error = None
        return page

    async def logout(self) -> None:
        await self.session.logout()
        self._redirect()


class PageLoader(_BaseLoader):
    """Discrete-page mode: one fetch per page change, rows replaced each time."""

    def __init__(self, session: CatalogSession, **kwargs: Any) -> None:
        super().__init__(session, **kwargs)
        self.page = 0

    async def load(self, page: int, page_size: int | None = None) -> bool:
        if self.redirected:
            return False
        if page < 0:
            raise ValueError("page must be >= 0")
        if page_size is not None:
            if page_size < 1:
                raise ValueError("page_size must be >= 1")
            self.page_size = page_size

        self.page = page
        self.state = LoaderState.LOADING
        result = await self._fetch(page)
        if result is None:
            return False

        self.rows = build_rows(
            result.data,
            identity=self.row_identity,
            page_index=page,
            page_size=result.effective_page_size(self.page_size),
        )
        self.total = result.valid_total()
        self.state = LoaderState.READY
        return True

    async def set_pagination(self, page: int | None = None, page_size: int | None = None) -> bool:
        """Fetch only when the page or page size actually changed."""
        new_page = self.page if page is None else page
        new_size = self.page_size if page_size is None else page_size
        if (
            self.state is LoaderState.READY
            and new_page == self.page
            and new_size == self.page_size
        ):
            return False
        return await self.load(new_page, new_size)


class InfiniteLoader(_BaseLoader):
    """Infinite-scroll mode: pages are appended until the catalog is exhausted."""

    def __init__(
        self, session: CatalogSession, *, lookahead: int = DEFAULT_LOOKAHEAD, **kwargs: Any
    ) -> None:
        super().__init__(session, **kwargs)
        if lookahead < 0:
            raise ValueError("lookahead must be >= 0")
        self.lookahead = lookahead
        self.next_page = 0
        self.has_more = True
        self._in_flight = False

    @property
    def loading(self) -> bool:
        return self._in_flight

    async def start(self) -> bool:
        """Load page 0, discarding anything held."""
        if self.redirected or self._in_flight:
            return False
        self.rows = []
        self.total = None
        self.next_page = 0
        self.has_more = True
        return await self._load_next(initial=True)

    def near_end(self, last_visible_index: int) -> bool:
        return last_visible_index >= len(self.rows) - 1 - self.lookahead

    async def on_scroll(self, last_visible_index: int) -> bool:
        if not self.near_end(last_visible_index):
            return False
        return await self.load_more()

    async def load_more(self) -> bool:
        if self._in_flight or not self.has_more:
            return False
        if self.state not in (LoaderState.READY, LoaderState.ERROR):
            return False
        return await self._load_next(initial=False)

    async def load_all(self) -> list[Row]:
        if self.state is LoaderState.IDLE:
            await self.start()
        while self.state is LoaderState.READY and self.has_more:
            if not await self.load_more():
                break
        return self.rows

    async def _load_next(self, *, initial: bool) -> bool:
        page_index = self.next_page
        self._in_flight = True
        self.state = LoaderState.LOADING if initial else LoaderState.LOADING_MORE
        try:
            result = await self._fetch(page_index)
        finally:
            self._in_flight = False

        if result is None:
            return False

        effective = result.effective_page_size(self.page_size)
        self.rows.extend(
            build_rows(
                result.data,
                identity=self.row_identity,
                page_index=page_index,
                page_size=effective,
            )
        )
        self.next_page = page_index + 1

        total = result.valid_total()
        self.total = total
        if not result.data:
            self.has_more = False
        elif total is not None:
            self.has_more = len(self.rows) < total
        else:
            self.has_more = len(result.data) == effective

        self.state = LoaderState.READY
        return True
