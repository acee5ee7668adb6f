from pathlib import Path

import pytest


@pytest.fixture
def repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


@pytest.fixture(autouse=True)
def _clear_rpc_env(monkeypatch):
    for name in ("CTV_RPC_URL", "CTV_RPC_COOKIE", "CTV_RPC_TIMEOUT_S"):
        monkeypatch.delenv(name, raising=False)


class FakeResponse:
    def __init__(self, body=None, status_code=200):
        self._body = body
        self.status_code = status_code

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    """Stands in for requests.Session; replies are popped in order."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.posts = []
        self.headers = {}
        self.auth = None
        self.closed = False

    def post(self, url, json=None, timeout=None):
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def close(self):
        self.closed = True


@pytest.fixture
def fake_session_factory():
    return FakeSession


@pytest.fixture
def fake_response_factory():
    return FakeResponse
