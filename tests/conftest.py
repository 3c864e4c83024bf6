"""
Cloud config test fixtures

HTTP is served by httpx.MockTransport; every request the fetcher makes is
recorded so tests can look at the headers that went out.

Run with: pytest tests/ -v
"""
import gzip

import httpx
import pytest

from cloudconfig.fetcher import ConfigFetcher
from cloudconfig.identity import StaticUserConfig


CONFIG_URL = "http://config.test/cloud.yaml.gz"
FRONTED_URL = "http://fronted.test/cloud.yaml.gz"


class FakeConfig:
    """Minimal live config: remembers what it was asked to merge."""

    def __init__(self, url=CONFIG_URL, fronted_url=FRONTED_URL, fail_with=None):
        self.cloud_config_url = url
        self.fronted_cloud_config_url = fronted_url
        self.merged = []
        self.fail_with = fail_with

    def update_from_bytes(self, raw):
        if self.fail_with is not None:
            raise self.fail_with
        self.merged.append(raw)


class RecordingStream(httpx.AsyncByteStream):
    """Response body that notes whether it was closed."""

    def __init__(self, data=b"", fail_on_close=False):
        self.data = data
        self.closed = False
        self.fail_on_close = fail_on_close

    async def __aiter__(self):
        yield self.data

    async def aclose(self):
        self.closed = True
        if self.fail_on_close:
            raise RuntimeError("close failed")


class Server:
    """Scripted responses for the mock transport."""

    def __init__(self):
        self.requests = []
        self.responses = []

    def push(self, response_or_exc):
        self.responses.append(response_or_exc)

    def handler(self, request):
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"unexpected request to {request.url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item


def ok(body=b"hello", etag="abc123", **kwargs):
    headers = {"X-Lantern-Etag": etag} if etag is not None else {}
    return httpx.Response(200, headers=headers, content=gzip.compress(body), **kwargs)


@pytest.fixture
def server():
    return Server()


@pytest.fixture
def client(server):
    return httpx.AsyncClient(transport=httpx.MockTransport(server.handler))


@pytest.fixture
def user():
    return StaticUserConfig()


@pytest.fixture
def fetcher(user, client):
    return ConfigFetcher(user, client)


@pytest.fixture
def cfg():
    return FakeConfig()
