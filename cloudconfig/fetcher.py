"""
Fetches the cloud config over HTTP.

Each request carries a cache-buster, the fronted url for the local proxy
and the last etag we saw, so an unchanged config costs a 304 and nothing else.
"""
import gzip
import uuid
import zlib
from typing import Dict, Optional, Protocol

import httpx
import structlog

from .errors import (
    DecompressionError,
    RequestConstructionError,
    TransportError,
    UnexpectedStatusError,
)

logger = structlog.get_logger(__name__)

ETAG_HEADER = "X-Lantern-Etag"
IF_NONE_MATCH_HEADER = "X-Lantern-If-None-Match"
USER_ID_HEADER = "X-Lantern-User-Id"
TOKEN_HEADER = "X-Lantern-Pro-Token"
FRONTED_URL_HEADER = "Lantern-Fronted-URL"

CHAINED_CLOUD_CONFIG_URL = "http://config.getiantem.org/cloud.yaml.gz"

# Plain HTTP: proxies only forward X-Forwarded-For without TLS, and falling
# back to domain fronting through the local proxy only works for HTTP.
FRONTED_CLOUD_CONFIG_URL = "http://d2wi0vwulmtn99.cloudfront.net/cloud.yaml.gz"


class UserConfig(Protocol):
    """Custom user info sent along with the config request."""

    def get_user_id(self) -> str:
        ...

    def get_token(self) -> str:
        ...


class ConfigSnapshot(Protocol):
    cloud_config_url: str
    fronted_cloud_config_url: str

    def update_from_bytes(self, raw: bytes) -> None:
        ...


class ConfigFetcher:
    """Conditional GET of the cloud config, remembering etags per url."""

    def __init__(self, user: UserConfig, client: httpx.AsyncClient):
        self.user = user
        self.client = client
        self.last_etags: Dict[str, str] = {}

    async def fetch(self, cfg: ConfigSnapshot) -> Optional[bytes]:
        """Fetch the config document.

        Returns:
            The decompressed bytes, or None when the server says the
            config has not changed since the last fetch.

        Raises:
            FetchError: on any failure. Only a 200 updates the etag cache.
        """
        url = cfg.cloud_config_url
        logger.debug("fetching_cloud_config", url=url, fronted_url=cfg.fronted_cloud_config_url)

        cache_buster = "?" + uuid.uuid4().hex
        nocache = url + cache_buster

        headers = {
            "Accept": "application/x-gzip",
            # Keep domain fronters from caching the content
            "Cache-Control": "no-cache",
            # Lets the local proxy race chained and domain fronted servers
            FRONTED_URL_HEADER: cfg.fronted_cloud_config_url + cache_buster,
            # Reused connections gave spurious EOFs on later polls
            "Connection": "close",
        }
        etag = self.last_etags.get(url)
        if etag:
            headers[IF_NONE_MATCH_HEADER] = etag

        user_id = self.user.get_user_id()
        if user_id:
            headers[USER_ID_HEADER] = user_id
        token = self.user.get_token()
        if token:
            headers[TOKEN_HEADER] = token

        try:
            request = self.client.build_request("GET", nocache, headers=headers)
        except (httpx.InvalidURL, ValueError) as e:
            # ValueError covers header values that are not ASCII
            raise RequestConstructionError(str(e), op="new-request", url=nocache) from e

        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(str(e), op="fetch-cloud-config", url=url) from e

        try:
            return await self._read_response(url, response)
        finally:
            await self._close(response)

    async def _read_response(self, url: str, response: httpx.Response) -> Optional[bytes]:
        logger.debug(
            "cloud_config_response",
            url=url,
            status=response.status_code,
            headers=dict(response.headers),
        )

        if response.status_code == 304:
            logger.debug("config_unchanged_in_cloud", url=url)
            return None
        if response.status_code != 200:
            raise UnexpectedStatusError(response, url=url)

        self.last_etags[url] = response.headers.get(ETAG_HEADER, "")

        try:
            body = await response.aread()
        except httpx.HTTPError as e:
            raise TransportError(str(e), op="read-body", url=url) from e

        if not body:
            raise DecompressionError("empty gzip body", op="gunzip", url=url)

        try:
            data = gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as e:
            raise DecompressionError(str(e), op="gunzip", url=url) from e

        logger.debug("fetched_cloud_config", url=url, size=len(data))
        return data

    async def _close(self, response: httpx.Response):
        try:
            await response.aclose()
        except Exception as e:
            logger.debug("error_closing_response_body", error=str(e))
