"""
Decides, once per cycle, whether to fetch the cloud config and what the
owner should merge afterwards.
"""
import random
from dataclasses import dataclass
from typing import Optional

import structlog

from .errors import FetchError
from .fetcher import ConfigFetcher, ConfigSnapshot

logger = structlog.get_logger(__name__)

# Seconds between checks for new global configuration settings
CLOUD_CONFIG_POLL_INTERVAL = 60.0


@dataclass(frozen=True)
class ConfigMutation:
    """Raw bytes to merge into the live config, or nothing at all."""

    raw: Optional[bytes] = None

    @property
    def is_noop(self) -> bool:
        return self.raw is None

    def __call__(self, cfg: ConfigSnapshot) -> None:
        if self.raw is None:
            return
        logger.debug("merging_cloud_configuration", size=len(self.raw))
        cfg.update_from_bytes(self.raw)


NO_UPDATE = ConfigMutation()


@dataclass(frozen=True)
class PollOutcome:
    mutation: ConfigMutation
    wait: float
    error: Optional[FetchError] = None


class ConfigPoller:
    def __init__(
        self,
        fetcher: ConfigFetcher,
        poll_interval: float = CLOUD_CONFIG_POLL_INTERVAL,
        rng: Optional[random.Random] = None,
    ):
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.fetcher = fetcher
        self.poll_interval = poll_interval
        self.rng = rng or random.Random()

    def next_wait_duration(self) -> float:
        """Randomize the poll interval so requests are less distinguishing
        on the network. Uniform in [interval/2, interval*1.5)."""
        return self.poll_interval / 2 + self.rng.random() * self.poll_interval

    async def poll_once(self, cfg: ConfigSnapshot, sticky: bool = False) -> PollOutcome:
        logger.debug("polling_for_config")
        wait = self.next_wait_duration()

        if not cfg.cloud_config_url:
            logger.debug("no_cloud_config_url")
            return PollOutcome(NO_UPDATE, wait)
        if sticky:
            logger.debug("sticky_config_set_skipping_download")
            return PollOutcome(NO_UPDATE, wait)

        try:
            raw = await self.fetcher.fetch(cfg)
        except FetchError as e:
            err = FetchError(e.message, op="fetch-cloud-config", **e.context)
            err.__cause__ = e
            return PollOutcome(NO_UPDATE, wait, err)

        if raw is None:
            logger.debug("config_not_modified")
            return PollOutcome(NO_UPDATE, wait)
        return PollOutcome(ConfigMutation(raw), wait)
