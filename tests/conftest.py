"""
Shared pytest fixtures and fakes.

- FakeSession: stands in for aiohttp.ClientSession, routing requests by API
  path to plain (or async) handler functions and recording every call.
- make_settings: Settings factory isolated from the process environment.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from utils.config import Settings

BASE_URL = "https://wecom.test/cgi-bin"


@dataclass
class FakeCall:
    method: str
    path: str
    params: dict[str, Any]
    json: Any = None
    proxy: str | None = None


class FakeResponse:
    def __init__(self, payload: dict[str, Any]) -> None:
        self.payload = payload
        self.status = 200

    def raise_for_status(self) -> None:
        return None

    async def json(self, content_type: str | None = "application/json") -> dict[str, Any]:
        return self.payload


class _FakeRequest:
    def __init__(self, session: "FakeSession", call: FakeCall) -> None:
        self.session = session
        self.call = call

    async def __aenter__(self) -> FakeResponse:
        self.session.calls.append(self.call)
        handler = self.session.routes[self.call.path]
        result = handler(self.call)
        if inspect.isawaitable(result):
            result = await result
        return FakeResponse(result)

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


@dataclass
class FakeSession:
    routes: dict[str, Callable[[FakeCall], Any]]
    calls: list[FakeCall] = field(default_factory=list)

    def get(self, url: str, params: dict[str, Any] | None = None, proxy: str | None = None) -> _FakeRequest:
        return _FakeRequest(self, FakeCall("GET", self._path(url), dict(params or {}), proxy=proxy))

    def post(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        proxy: str | None = None,
    ) -> _FakeRequest:
        return _FakeRequest(self, FakeCall("POST", self._path(url), dict(params or {}), json=json, proxy=proxy))

    def calls_to(self, path: str) -> list[FakeCall]:
        return [call for call in self.calls if call.path == path]

    @staticmethod
    def _path(url: str) -> str:
        assert url.startswith(BASE_URL), url
        return url[len(BASE_URL):]


@pytest.fixture()
def make_settings(tmp_path) -> Callable[..., Settings]:
    """Build Settings that ignore the real environment and .env files."""

    def factory(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "ENV": "local",
            "HTTPS_PROXY": None,
            "WECOM_API_BASE": BASE_URL,
            "CROP_ID": "corp-id",
            "CROP_SECRET": "corp-secret",
            "DEPARTMENT_IDS": "",
            "TAG_IDS": "",
            "REPORT_TIMEZONE": "UTC",
            "LOCAL_OUTPUT_DIR": str(tmp_path),
            "SFTP_HOST": "",
            "SFTP_USERNAME": "",
            "SFTP_PASSWORD": "",
            "SFTP_KEY_PATH": None,
            "SFTP_PATH": "/upload",
            "RUN_ONCE": False,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory
