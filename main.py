"""
Entrypoint: load settings, set up logging, poll the cloud config until interrupted
"""

import asyncio
import logging
import sys

import httpx
import structlog
from dotenv import load_dotenv

from cloudconfig.config import Config, LiveConfig
from cloudconfig.fetcher import ConfigFetcher
from cloudconfig.identity import StaticUserConfig
from cloudconfig.poller import ConfigPoller
from cloudconfig.worker import ConfigWorker


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, str(level).upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


async def main():
    """Initialize dependencies and start polling"""
    load_dotenv()

    settings = Config()
    setup_logging(settings.logging.get('level', 'INFO'))
    logger = structlog.get_logger(__name__)

    timeout = float(settings.fetcher.get('timeout', 30.0))
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as client:
        fetcher = ConfigFetcher(StaticUserConfig.from_settings(settings), client)
        poller = ConfigPoller(fetcher, poll_interval=settings.poll_interval)
        worker = ConfigWorker(poller, LiveConfig.from_settings(settings), sticky=settings.sticky)

        logger.info(
            "starting_config_poller",
            url=settings.cloud_config_url,
            fronted_url=settings.fronted_cloud_config_url,
            poll_interval=settings.poll_interval,
        )
        try:
            await worker.start()
        finally:
            worker.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
