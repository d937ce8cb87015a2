from __future__ import annotations

import asyncio

import httpx
import pytest

from usecase_catalog.loader import (
    CatalogSession,
    InfiniteLoader,
    LoaderState,
    LoginFailed,
    PageLoader,
    RowIdentity,
)

BASE_URL = "http://catalog.test"


def _session(upstream) -> CatalogSession:
    return CatalogSession(BASE_URL, transport=upstream.transport())


async def test_infinite_accumulates_until_total(upstream) -> None:
    async with _session(upstream) as session:
        loader = InfiniteLoader(session, page_size=20)
        counts: list[int] = []

        assert loader.state is LoaderState.IDLE
        assert await loader.start()
        counts.append(len(loader.rows))
        assert loader.state is LoaderState.READY

        while await loader.on_scroll(len(loader.rows) - 1):
            counts.append(len(loader.rows))

        assert counts == [20, 40, 45]
        assert loader.has_more is False
        assert loader.total == 45

        # Exhausted: further scrolling never reaches the network.
        assert await loader.on_scroll(len(loader.rows) - 1) is False
        assert await loader.load_more() is False

    pages = [r.url.params["page"] for r in upstream.page_requests]
    assert pages == ["1", "2", "3"]
    assert all(r.url.params["page_size"] == "20" for r in upstream.page_requests)


async def test_infinite_without_total_stops_on_short_page(make_upstream) -> None:
    upstream = make_upstream(45, report_total=False)
    async with _session(upstream) as session:
        loader = InfiniteLoader(session, page_size=20)
        rows = await loader.load_all()

    assert len(rows) == 45
    assert loader.total is None
    assert loader.has_more is False
    assert len(upstream.page_requests) == 3


async def test_infinite_without_total_stops_on_empty_page(make_upstream) -> None:
    upstream = make_upstream(40, report_total=False)
    async with _session(upstream) as session:
        loader = InfiniteLoader(session, page_size=20)
        rows = await loader.load_all()

    # Two full pages look like "maybe more"; the empty third page ends it.
    assert len(rows) == 40
    assert loader.has_more is False
    assert len(upstream.page_requests) == 3


@pytest.mark.parametrize("bad_total", [0, -1, "45", None])
async def test_invalid_total_falls_back_to_full_page_rule(bad_total) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "total": bad_total,
                "page": 1,
                "page_size": 20,
                "data": [{"Capability": i} for i in range(20)],
            },
        )

    async with CatalogSession(BASE_URL, transport=httpx.MockTransport(handler)) as session:
        loader = InfiniteLoader(session, page_size=20)
        await loader.start()

    assert loader.total is None
    assert loader.has_more is True


async def test_scroll_far_from_end_does_not_fetch(upstream) -> None:
    async with _session(upstream) as session:
        loader = InfiniteLoader(session, page_size=20, lookahead=5)
        await loader.start()

        assert await loader.on_scroll(0) is False
        assert await loader.on_scroll(13) is False
        assert len(upstream.page_requests) == 1

        assert await loader.on_scroll(14) is True
        assert len(upstream.page_requests) == 2


async def test_concurrent_near_bottom_events_issue_one_request(upstream) -> None:
    release = asyncio.Event()
    started = asyncio.Event()
    page_requests: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["page"] == "2":
            page_requests.append(request)
            started.set()
            await release.wait()
        return upstream(request)

    async with CatalogSession(BASE_URL, transport=httpx.MockTransport(handler)) as session:
        loader = InfiniteLoader(session, page_size=20)
        await loader.start()

        first = asyncio.create_task(loader.on_scroll(19))
        await started.wait()
        assert loader.state is LoaderState.LOADING_MORE
        assert loader.loading is True

        second = await loader.on_scroll(19)
        assert second is False

        release.set()
        assert await first is True

    assert len(page_requests) == 1
    assert len(loader.rows) == 40
    assert loader.loading is False


async def test_gathered_scroll_events_issue_one_request(upstream) -> None:
    async with _session(upstream) as session:
        loader = InfiniteLoader(session, page_size=20)
        await loader.start()

        results = await asyncio.gather(loader.on_scroll(19), loader.on_scroll(19))

    assert sorted(results) == [False, True]
    assert len(upstream.page_requests) == 2


async def test_401_during_incremental_load_redirects_once(make_upstream) -> None:
    upstream = make_upstream(45, status_for_page={2: 401})
    navigations: list[str] = []

    async with _session(upstream) as session:
        loader = InfiniteLoader(session, page_size=20, navigate=navigations.append)
        await loader.start()

        assert await loader.on_scroll(19) is False
        assert loader.state is LoaderState.REDIRECTING
        assert loader.loading is False

        # Further events never reach the network and never navigate again.
        assert await loader.on_scroll(19) is False
        assert await loader.load_more() is False
        assert await loader.start() is False

    assert navigations == ["/login"]
    assert len(upstream.page_requests) == 2
    assert len(loader.rows) == 20


async def test_401_on_initial_load_redirects(make_upstream) -> None:
    upstream = make_upstream(45, status_for_page={1: 401})
    navigations: list[str] = []

    async with _session(upstream) as session:
        loader = InfiniteLoader(session, navigate=navigations.append, login_path="/signin")
        assert await loader.start() is False

    assert loader.state is LoaderState.REDIRECTING
    assert navigations == ["/signin"]


async def test_error_is_terminal_until_user_retries(make_upstream) -> None:
    upstream = make_upstream(45, status_for_page={2: 500})

    async with _session(upstream) as session:
        loader = InfiniteLoader(session, page_size=20)
        await loader.start()

        assert await loader.on_scroll(19) is False
        assert loader.state is LoaderState.ERROR
        assert loader.error == "Failed to fetch data: 500"
        assert loader.loading is False
        assert len(loader.rows) == 20
        assert len(upstream.page_requests) == 2

        # The next explicit scroll is the retry.
        upstream.status_for_page.clear()
        assert await loader.on_scroll(19) is True
        assert loader.state is LoaderState.READY
        assert loader.error is None
        assert len(loader.rows) == 40

    assert len(upstream.page_requests) == 3


async def test_network_failure_moves_to_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with CatalogSession(BASE_URL, transport=httpx.MockTransport(handler)) as session:
        loader = InfiniteLoader(session)
        assert await loader.start() is False

    assert loader.state is LoaderState.ERROR
    assert loader.error is not None
    assert loader.loading is False


async def test_index_row_identity_spans_pages(upstream) -> None:
    async with _session(upstream) as session:
        loader = InfiniteLoader(session, page_size=20, row_identity=RowIdentity.INDEX)
        await loader.load_all()

    assert [row.key for row in loader.rows] == list(range(1, 46))


def _clamping(upstream, limit: int):
    def handler(request: httpx.Request) -> httpx.Response:
        size = min(int(request.url.params["page_size"]), limit)
        clamped = request.url.copy_set_param("page_size", str(size))
        return upstream(httpx.Request(request.method, clamped, headers=request.headers))

    return httpx.MockTransport(handler)


async def test_index_keys_follow_server_page_size(make_upstream) -> None:
    upstream = make_upstream(25)

    async with CatalogSession(BASE_URL, transport=_clamping(upstream, 10)) as session:
        loader = InfiniteLoader(session, page_size=20)
        await loader.load_all()

    assert [row.key for row in loader.rows] == list(range(1, 26))
    assert [r.url.params["page_size"] for r in upstream.page_requests] == ["10"] * 3


async def test_page_loader_keys_follow_server_page_size(make_upstream) -> None:
    upstream = make_upstream(25)

    async with CatalogSession(BASE_URL, transport=_clamping(upstream, 10)) as session:
        loader = PageLoader(session, page_size=20)
        await loader.load(1)

    assert [row.key for row in loader.rows] == list(range(11, 21))


async def test_capability_row_identity_uses_upstream_id(upstream) -> None:
    async with _session(upstream) as session:
        loader = InfiniteLoader(session, page_size=20, row_identity=RowIdentity.CAPABILITY)
        await loader.load_all()

    assert [row.key for row in loader.rows] == list(range(1000, 1045))
    assert loader.rows[0].record.use_case == "Forecast demand #1000"


async def test_page_loader_replaces_rows(upstream) -> None:
    async with _session(upstream) as session:
        loader = PageLoader(session, page_size=10)

        assert await loader.load(1)
        assert [row.key for row in loader.rows] == list(range(11, 21))
        assert loader.total == 45
        assert loader.state is LoaderState.READY

        assert await loader.load(4)
        assert [row.key for row in loader.rows] == list(range(41, 46))

    sent = upstream.page_requests
    assert str(sent[0].url) == f"{BASE_URL}/api/use-cases?page=2&page_size=10"
    assert sent[1].url.params["page"] == "5"


async def test_page_loader_capability_identity(upstream) -> None:
    async with _session(upstream) as session:
        loader = PageLoader(session, page_size=10, row_identity=RowIdentity.CAPABILITY)
        await loader.load(1)

    assert [row.key for row in loader.rows] == list(range(1010, 1020))


async def test_page_loader_fetches_once_per_change(upstream) -> None:
    async with _session(upstream) as session:
        loader = PageLoader(session, page_size=20)
        assert await loader.set_pagination(0) is True
        assert await loader.set_pagination(0, 20) is False
        assert await loader.set_pagination(page_size=50) is True
        assert len(loader.rows) == 45

    assert len(upstream.page_requests) == 2
    assert upstream.page_requests[1].url.params["page_size"] == "50"


async def test_page_loader_401_redirects_and_stops(make_upstream) -> None:
    upstream = make_upstream(45, status_for_page={1: 401})
    navigations: list[str] = []

    async with _session(upstream) as session:
        loader = PageLoader(session, navigate=navigations.append)
        assert await loader.load(0) is False
        assert await loader.load(1) is False

    assert navigations == ["/login"]
    assert len(upstream.page_requests) == 1


async def test_login_cookie_is_sent_on_later_fetches(make_upstream) -> None:
    upstream = make_upstream(45, secret="1234567890")

    async with _session(upstream) as session:
        loader = InfiniteLoader(session)
        assert await loader.start() is False
        assert loader.state is LoaderState.REDIRECTING

        await session.login("1234567890")
        fresh = InfiniteLoader(session)
        assert await fresh.start() is True
        assert len(fresh.rows) == 20


async def test_login_failure_surfaces_server_message(make_upstream) -> None:
    upstream = make_upstream(45, secret="1234567890")

    async with _session(upstream) as session:
        with pytest.raises(LoginFailed) as info:
            await session.login("nope")
        assert info.value.status == 401
        assert str(info.value) == "Invalid authentication token"

        with pytest.raises(LoginFailed) as missing:
            await session.login("")
        assert missing.value.status == 400
        assert str(missing.value) == "Token is required"


async def test_logout_navigates_to_login(make_upstream) -> None:
    upstream = make_upstream(45, secret="1234567890")
    navigations: list[str] = []

    async with _session(upstream) as session:
        await session.login("1234567890")
        loader = InfiniteLoader(session, navigate=navigations.append)
        await loader.start()

        await loader.logout()

        assert navigations == ["/login"]
        assert loader.state is LoaderState.REDIRECTING
        assert [r.url.path for r in upstream.requests][-1] == "/api/auth/logout"


async def test_bearer_session_needs_no_login() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"total": 0, "page": 1, "page_size": 20, "data": []})

    async with CatalogSession(
        BASE_URL, transport=httpx.MockTransport(handler), bearer_token="abc"
    ) as session:
        loader = PageLoader(session)
        await loader.load(0)

    assert seen[0].headers["authorization"] == "Bearer abc"
    assert loader.rows == []
    assert loader.total is None


async def test_loader_rejects_bad_sizes(upstream) -> None:
    async with _session(upstream) as session:
        with pytest.raises(ValueError):
            InfiniteLoader(session, page_size=0)
        with pytest.raises(ValueError):
            InfiniteLoader(session, lookahead=-1)
