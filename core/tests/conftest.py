"""Shared fixtures.

``FakeUpstream`` plays the upstream use-case API (and, since the proxy relays
bodies unchanged, the proxy itself when the loader is under test). It is a
plain ``httpx.MockTransport`` handler that records every request.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

UPSTREAM_URL = "https://upstream.test"

_ENV_VARS = (
    "USECASE_CATALOG_ENV",
    "USECASE_CATALOG_TOKEN",
    "USECASE_CATALOG_UPSTREAM_URL",
    "USECASE_CATALOG_BIND",
    "USECASE_CATALOG_PORT",
)


def make_record(capability: int) -> dict[str, Any]:
    return {
        "Capability": capability,
        "Business Function": "Finance",
        "Business Capability": f"Capability {capability}",
        "Stakeholder or User": "Analyst",
        "AI Use Case": f"Forecast demand #{capability}",
        "AI Algorithms & Frameworks": "Gradient boosting",
        "Datasets": "Ledger history",
        "Action / Implementation": "Nightly batch",
        "AI Tools & Models": "XGBoost",
        "Digital Platforms and Tools": "Databricks",
        "Expected Outcomes and Results": "Fewer stockouts",
    }


class FakeUpstream:
    def __init__(
        self,
        count: int = 45,
        *,
        report_total: bool = True,
        first_capability: int = 1000,
        status_for_page: dict[int, int] | None = None,
        secret: str | None = None,
    ) -> None:
        self.records = [make_record(first_capability + i) for i in range(count)]
        self.report_total = report_total
        self.status_for_page = dict(status_for_page or {})
        self.secret = secret
        self.requests: list[httpx.Request] = []

    @property
    def page_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/use-cases")]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path == "/api/auth/login":
            return self._login(request)
        if request.url.path == "/api/auth/logout":
            return httpx.Response(
                200,
                json={"message": "Logged out"},
                headers={"set-cookie": 'auth_token=""; Max-Age=0; Path=/'},
            )

        expected_cookie = f"auth_token={self.secret}"
        if self.secret is not None and request.headers.get("cookie") != expected_cookie:
            return httpx.Response(401, json={"error": "Unauthorized: Invalid token"})

        page = int(request.url.params.get("page", "1"))
        page_size = int(request.url.params.get("page_size", "20"))

        status = self.status_for_page.get(page)
        if status is not None:
            return httpx.Response(status, json={"error": "boom"})

        start = (page - 1) * page_size
        return httpx.Response(
            200,
            json={
                "total": len(self.records) if self.report_total else None,
                "page": page,
                "page_size": page_size,
                "data": self.records[start : start + page_size],
            },
        )

    def _login(self, request: httpx.Request) -> httpx.Response:
        token = json.loads(request.content or b"{}").get("token")
        if not token:
            return httpx.Response(400, json={"error": "Token is required"})
        if token != self.secret:
            return httpx.Response(401, json={"error": "Invalid authentication token"})
        return httpx.Response(
            200,
            json={"message": "Authentication successful"},
            headers={"set-cookie": f"auth_token={token}; Path=/; HttpOnly; SameSite=strict"},
        )


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def catalog_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("USECASE_CATALOG_HOME", str(tmp_path))
    monkeypatch.setenv("USECASE_CATALOG_UPSTREAM_URL", UPSTREAM_URL)
    return tmp_path


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_upstream() -> type[FakeUpstream]:
    return FakeUpstream
