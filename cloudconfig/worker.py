"""
Owns the live config: polls for cloud config, applies what comes back, sleeps.
"""

import asyncio

import structlog

from .fetcher import ConfigSnapshot
from .poller import ConfigPoller, PollOutcome

logger = structlog.get_logger(__name__)


class ConfigWorker:
    """Runs poll cycles one after another until stopped."""

    def __init__(self, poller: ConfigPoller, config: ConfigSnapshot, sticky: bool = False):
        self.poller = poller
        self.config = config
        self.sticky = sticky
        self._lock = asyncio.Lock()
        self._stopped = asyncio.Event()

    async def start(self):
        """Poll until stop() is called. Errors only skip a cycle."""
        logger.info("config_worker_started", url=self.config.cloud_config_url, sticky=self.sticky)
        self._stopped.clear()
        while not self._stopped.is_set():
            try:
                wait = (await self.run_once()).wait
            except Exception as e:
                logger.error("config_poll_cycle_failed", error=str(e), exc_info=True)
                wait = self.poller.next_wait_duration()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=wait)
            except asyncio.TimeoutError:
                pass
        logger.info("config_worker_stopped")

    def stop(self):
        self._stopped.set()

    async def run_once(self) -> PollOutcome:
        outcome = await self.poller.poll_once(self.config, self.sticky)
        if outcome.error is not None:
            logger.error("cloud_config_fetch_failed", error=str(outcome.error), exc_info=outcome.error)

        if not outcome.mutation.is_noop:
            async with self._lock:
                try:
                    outcome.mutation(self.config)
                except Exception as e:
                    logger.error("cloud_config_merge_failed", error=str(e), exc_info=True)

        logger.debug("next_config_poll", wait_seconds=round(outcome.wait, 3))
        return outcome
