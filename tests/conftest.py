from __future__ import annotations

from typing import Any

import pytest
import requests

from context_server.llm.service import ModelAdapter
from context_server.storage.context_store import ContextStore


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: str | None = None) -> None:
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else str(body)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(
                f"{self.status_code} Server Error: boom for url: http://model.test/v1",
                response=self,
            )

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    """Stands in for `requests.Session`; records every outbound POST."""

    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or FakeResponse(body={"completion": "ok"})
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def last_payload(self) -> dict[str, Any]:
        return self.calls[-1]["json"]


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_adapter(fake_session: FakeSession):
    def _make(provider: str = "generic", api_key: str | None = None, session: FakeSession | None = None):
        return ModelAdapter(
            endpoint="http://model.test/v1/completions",
            api_key=api_key,
            provider=provider,
            session=session or fake_session,
        )

    return _make


@pytest.fixture
def store(tmp_path) -> ContextStore:
    store = ContextStore(str(tmp_path / "data" / "context_db.json"))
    store.ensure_initialized()
    return store
