"""
Tests for avatar downloads: timeout, retries, and giving up quietly.
"""

import asyncio

import aiohttp

from avatars import MAX_AVATAR_BYTES, fetch_avatar


class FakeResponse:
    def __init__(self, status=200, body=b"avatar"):
        self.status = status
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def read(self):
        return self._body


class FakeSession:
    """Replays a scripted list of responses or exceptions, one per request."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def fetch(session, url="https://a.ppy.sh/2", **kwargs):
    kwargs.setdefault("backoff", 0)
    return asyncio.run(fetch_avatar(session, url, **kwargs))


class TestFetchAvatar:

    def test_success(self):
        session = FakeSession(FakeResponse(body=b"png-bytes"))
        assert fetch(session) == b"png-bytes"
        assert len(session.calls) == 1

    def test_timeout_is_applied(self):
        session = FakeSession(FakeResponse())
        fetch(session, timeout=2.5)
        _, timeout = session.calls[0]
        assert isinstance(timeout, aiohttp.ClientTimeout)
        assert timeout.total == 2.5

    def test_retries_after_errors(self):
        session = FakeSession(aiohttp.ClientConnectionError("reset"),
                              asyncio.TimeoutError(),
                              FakeResponse(body=b"third time"))
        assert fetch(session, retries=2) == b"third time"
        assert len(session.calls) == 3

    def test_server_error_is_retried(self):
        session = FakeSession(FakeResponse(status=503), FakeResponse(body=b"ok"))
        assert fetch(session, retries=1) == b"ok"

    def test_gives_up_after_retries(self):
        session = FakeSession(*[aiohttp.ClientConnectionError("down")] * 3)
        assert fetch(session, retries=2) is None
        assert len(session.calls) == 3

    def test_not_found_is_not_retried(self):
        session = FakeSession(FakeResponse(status=404), FakeResponse())
        assert fetch(session, retries=3) is None
        assert len(session.calls) == 1

    def test_empty_url(self):
        session = FakeSession()
        assert fetch(session, url=None) is None
        assert fetch(session, url="") is None
        assert session.calls == []

    def test_empty_body_is_none(self):
        assert fetch(FakeSession(FakeResponse(body=b""))) is None

    def test_oversized_body_is_dropped(self):
        session = FakeSession(FakeResponse(body=b"x" * (MAX_AVATAR_BYTES + 1)))
        assert fetch(session) is None
