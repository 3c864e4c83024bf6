"""Tests for cloudconfig.worker: the owning poll loop."""

import asyncio
import random

import httpx

from cloudconfig.config import LiveConfig
from cloudconfig.errors import MergeError
from cloudconfig.fetcher import ConfigFetcher
from cloudconfig.poller import ConfigPoller
from cloudconfig.worker import ConfigWorker

from conftest import CONFIG_URL, FRONTED_URL, FakeConfig, ok


def _worker(fetcher, config, sticky=False, interval=0.01):
    poller = ConfigPoller(fetcher, poll_interval=interval, rng=random.Random(3))
    return ConfigWorker(poller, config, sticky=sticky)


class TestRunOnce:

    def test_applies_new_config(self, server, fetcher):
        live = LiveConfig(CONFIG_URL, FRONTED_URL)
        server.push(ok(b"a: 1"))

        outcome = asyncio.run(_worker(fetcher, live).run_once())

        assert outcome.error is None
        assert live.raw == b"a: 1"
        assert live.revision == 1

    def test_fetch_error_is_not_fatal(self, server, fetcher):
        live = LiveConfig(CONFIG_URL, FRONTED_URL)
        server.push(httpx.Response(503))

        outcome = asyncio.run(_worker(fetcher, live).run_once())

        assert outcome.error is not None
        assert live.raw is None

    def test_merge_error_is_not_fatal(self, server, fetcher):
        cfg = FakeConfig(fail_with=MergeError("bad"))
        server.push(ok(b"x"))

        outcome = asyncio.run(_worker(fetcher, cfg).run_once())
        assert outcome.error is None

    def test_sticky_skips_network(self, server, fetcher):
        live = LiveConfig(CONFIG_URL, FRONTED_URL)
        asyncio.run(_worker(fetcher, live, sticky=True).run_once())
        assert server.requests == []


class TestLoop:

    def test_keeps_polling_through_errors_until_stopped(self, server, fetcher):
        live = LiveConfig(CONFIG_URL, FRONTED_URL)
        worker = _worker(fetcher, live)

        def stop_after(request):
            worker.stop()
            return httpx.Response(304)

        server.push(httpx.ConnectError("refused"))
        server.push(httpx.Response(500))
        server.push(ok(b"v1", etag="e1"))
        server.push(stop_after)

        asyncio.run(asyncio.wait_for(worker.start(), timeout=5))

        assert len(server.requests) == 4
        assert live.raw == b"v1"
        assert server.requests[3].headers["X-Lantern-If-None-Match"] == "e1"

    def test_stop_interrupts_long_wait(self, server, fetcher):
        live = LiveConfig("", "")
        worker = _worker(fetcher, live, interval=3600.0)

        async def scenario():
            task = asyncio.create_task(worker.start())
            await asyncio.sleep(0.05)
            worker.stop()
            await asyncio.wait_for(task, timeout=2)

        asyncio.run(scenario())
        assert server.requests == []


class BrokenOnceFetcher(ConfigFetcher):
    """Raises a plain RuntimeError on its first fetch, then behaves."""

    def __init__(self, user, client):
        super().__init__(user, client)
        self.calls = 0

    async def fetch(self, cfg):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("unexpected failure")
        return await super().fetch(cfg)


class TestUnexpectedErrors:

    def test_unencodable_fronted_url_is_reported(self, server, fetcher):
        live = LiveConfig(CONFIG_URL, "http://frönted.test/cloud.yaml.gz")

        outcome = asyncio.run(_worker(fetcher, live).run_once())

        assert outcome.error is not None
        assert outcome.error.op == "fetch-cloud-config"
        assert server.requests == []

    def test_loop_survives_non_fetch_error(self, server, client, user):
        fetcher = BrokenOnceFetcher(user, client)
        live = LiveConfig(CONFIG_URL, FRONTED_URL)
        worker = _worker(fetcher, live)

        def stop_after(request):
            worker.stop()
            return ok(b"v2")

        server.push(stop_after)

        asyncio.run(asyncio.wait_for(worker.start(), timeout=5))

        assert fetcher.calls == 2
        assert len(server.requests) == 1
        assert live.raw == b"v2"
