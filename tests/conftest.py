from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urlparse

import pytest
import requests


@dataclass
class FakeResponse:
    status_code: int = 200
    payload: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def content(self) -> bytes:
        return b"" if self.payload is None else json.dumps(self.payload).encode()

    @property
    def text(self) -> str:
        return self.content.decode()

    def json(self) -> Any:
        return self.payload


Route = Callable[[dict[str, Any]], FakeResponse]


class FakeJira:
    """Stands in for `requests.request`, routing by method and path."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Route] = {}
        self.calls: list[tuple[str, str, dict[str, Any], Any]] = []

    def on(self, method: str, path: str, route: Route) -> None:
        self.routes[(method, path)] = route

    def __call__(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        path = urlparse(url).path
        params = dict(kwargs.get("params") or {})
        self.calls.append((method, path, params, kwargs.get("json")))
        route = self.routes.get((method, path))
        if route is None:
            return FakeResponse(status_code=404, payload={"errorMessages": [f"no route {path}"]})
        return route(params)


def _issues_page(keys: list[str], total: int | None = None) -> FakeResponse:
    return FakeResponse(
        payload={
            "issues": [{"key": k} for k in keys],
            "total": len(keys) if total is None else total,
        }
    )


@pytest.fixture
def fake_jira(monkeypatch: pytest.MonkeyPatch) -> FakeJira:
    fake = FakeJira()
    monkeypatch.setattr(requests, "request", fake)
    return fake


@pytest.fixture
def issues_page() -> Callable[..., FakeResponse]:
    return _issues_page


@pytest.fixture
def respond() -> Callable[..., FakeResponse]:
    def _respond(payload: Any, status_code: int = 200, headers: dict[str, str] | None = None) -> FakeResponse:
        return FakeResponse(status_code=status_code, payload=payload, headers=headers or {})

    return _respond
