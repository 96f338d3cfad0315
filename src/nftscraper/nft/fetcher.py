"""Fetching of metadata documents and images from HTTP, IPFS and data URIs"""

import json
import logging
from typing import Any, List, Optional, Sequence, Tuple

from nftscraper import LOGGER_NAME
from nftscraper.core.data_clients import (
    DataClient,
    DataUriDataClient,
    HttpDataClient,
    IpfsDataClient,
    ProtocolError,
)
from nftscraper.core.errors import ScraperError, ErrorKind
from nftscraper.core.stats import StatsService

DEFAULT_GATEWAYS: Tuple[str, ...] = (
    "https://ipfs.io/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
    "https://dweb.link/ipfs/",
)
"""IPFS gateways in fallback order"""

USER_AGENT = "NFT-Scraper/1.0"
JSON_TIMEOUT = 10.0
BINARY_TIMEOUT = 15.0
DEFAULT_IMAGE_CONTENT_TYPE = "image/jpeg"


def normalize_gateway(gateway: str) -> str:
    """Get the gateway base with the trailing slash the content identifier is appended to"""
    return gateway if gateway.endswith("/") else f"{gateway}/"


class ResourceFetchError(ScraperError):
    error_kind = ErrorKind.HTTP_FETCH_FAILED


class HttpFetchFailed(ResourceFetchError):
    error_kind = ErrorKind.HTTP_FETCH_FAILED


class AllGatewaysFailed(ResourceFetchError):
    error_kind = ErrorKind.ALL_GATEWAYS_FAILED

    def __init__(self, message: str, last_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__last_error = last_error

    @property
    def last_error(self) -> Optional[BaseException]:
        return self.__last_error


class MetadataShapeInvalid(ScraperError):
    error_kind = ErrorKind.METADATA_SHAPE_INVALID


class ResourceFetcher:
    """
    Fetches resources referenced by token metadata. `ipfs://` URIs are tried against
    each gateway in order until one succeeds, `data:` URIs are decoded in place and
    anything else gets a single direct GET.

    :param stats_service: Service receiving request statistics
    :param gateways: Ordered IPFS gateway bases. A trailing slash is added to any
        base without one.
    :param json_timeout: Seconds allowed for each metadata request
    :param binary_timeout: Seconds allowed for each image request
    :param user_agent: User-Agent header sent with every request
    """

    STAT_GATEWAY_ATTEMPT = "fetch.gateway-attempt"
    STAT_GATEWAY_FAILED = "fetch.gateway-failed"
    STAT_DIRECT_FAILED = "fetch.direct-failed"

    def __init__(
        self,
        stats_service: StatsService,
        gateways: Sequence[str] = DEFAULT_GATEWAYS,
        json_timeout: float = JSON_TIMEOUT,
        binary_timeout: float = BINARY_TIMEOUT,
        user_agent: str = USER_AGENT,
    ) -> None:
        if not gateways:
            raise ValueError("At least one IPFS gateway is required")
        self.__stats_service = stats_service
        self.__gateways: Tuple[str, ...] = tuple(normalize_gateway(gateway) for gateway in gateways)
        self.__logger = logging.getLogger(LOGGER_NAME)
        json_headers = {"Accept": "application/json", "User-Agent": user_agent}
        binary_headers = {"User-Agent": user_agent}
        self.__json_http_client = HttpDataClient(
            json_timeout, stats_service, headers=json_headers
        )
        self.__binary_http_client = HttpDataClient(
            binary_timeout, stats_service, headers=binary_headers
        )
        self.__json_gateway_clients = [
            IpfsDataClient(gateway, json_timeout, stats_service, headers=json_headers)
            for gateway in self.__gateways
        ]
        self.__binary_gateway_clients = [
            IpfsDataClient(gateway, binary_timeout, stats_service, headers=binary_headers)
            for gateway in self.__gateways
        ]
        self.__data_uri_client = DataUriDataClient(stats_service)

    @property
    def gateways(self) -> Tuple[str, ...]:
        return self.__gateways

    async def fetch_json(self, uri: str) -> Any:
        """
        Fetch and parse a JSON document

        :raises: AllGatewaysFailed, HttpFetchFailed, MetadataShapeInvalid
        """
        self.__logger.info(f"Fetching metadata from: {uri}")
        _, data = await self.__fetch(uri, self.__json_http_client, self.__json_gateway_clients)
        try:
            return json.loads(data)
        except ValueError as e:
            raise MetadataShapeInvalid(f"Metadata from {uri} is not valid JSON") from e

    async def fetch_binary(self, uri: str) -> Tuple[bytes, str]:
        """
        Fetch a binary payload and its content type, which defaults to
        `image/jpeg` when the server does not provide one

        :raises: AllGatewaysFailed, HttpFetchFailed
        """
        self.__logger.info(f"Downloading image from: {uri}")
        content_type, data = await self.__fetch(
            uri, self.__binary_http_client, self.__binary_gateway_clients
        )
        return data, content_type or DEFAULT_IMAGE_CONTENT_TYPE

    @staticmethod
    async def __read(data_client: DataClient, uri: str) -> Tuple[Optional[str], bytes]:
        async with data_client.get(uri) as (content_type, data_reader):
            data = await data_reader.read()
        return content_type, data

    async def __fetch(
        self,
        uri: str,
        http_client: HttpDataClient,
        gateway_clients: List[IpfsDataClient],
    ) -> Tuple[Optional[str], bytes]:
        if DataUriDataClient.handles(uri):
            try:
                return await self.__read(self.__data_uri_client, uri)
            except ProtocolError as e:
                raise HttpFetchFailed(str(e)) from e

        if IpfsDataClient.handles(uri):
            return await self.__fetch_from_gateways(uri, gateway_clients)

        try:
            return await self.__read(http_client, uri)
        except (ProtocolError, ValueError) as e:
            self.__stats_service.increment(self.STAT_DIRECT_FAILED)
            self.__logger.error(f"Error fetching {uri}: {e}")
            raise HttpFetchFailed(f"Unable to fetch {uri}: {e}") from e

    async def __fetch_from_gateways(
        self, uri: str, gateway_clients: List[IpfsDataClient]
    ) -> Tuple[Optional[str], bytes]:
        last_error: Optional[ProtocolError] = None
        for gateway_client in gateway_clients:
            self.__stats_service.increment(self.STAT_GATEWAY_ATTEMPT)
            self.__logger.debug(f"Using IPFS gateway: {gateway_client.translate(uri)}")
            try:
                return await self.__read(gateway_client, uri)
            except ProtocolError as e:
                self.__stats_service.increment(self.STAT_GATEWAY_FAILED)
                self.__logger.warning(f"IPFS gateway {gateway_client.base_uri} failed: {e}")
                last_error = e

        self.__logger.error(f"All IPFS gateways failed for {uri}")
        raise AllGatewaysFailed(
            f"All {len(gateway_clients)} IPFS gateways failed for {uri}: {last_error}", last_error
        ) from last_error
