"""RPC provider table and resolution of a live EVM RPC client"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, List

from nftscraper import LOGGER_NAME
from nftscraper.core.errors import ScraperError, ErrorKind
from nftscraper.core.rpc import RpcError
from nftscraper.core.stats import StatsService
from nftscraper.evm.rpc import EvmRpcClient


def _infura_url(api_key: Optional[str]) -> str:
    return f"https://mainnet.infura.io/v3/{api_key or ''}"


def _alchemy_url(api_key: Optional[str]) -> str:
    return f"https://eth-mainnet.g.alchemy.com/v2/{api_key or ''}"


def _ankr_url(_: Optional[str]) -> str:
    return "https://rpc.ankr.com/eth"


def _cloudflare_url(_: Optional[str]) -> str:
    return "https://cloudflare-eth.com"


def _public_url(_: Optional[str]) -> str:
    return "https://ethereum-rpc.publicnode.com"


@dataclass(frozen=True)
class ProviderConfig:
    provider_id: str
    url_builder: Callable[[Optional[str]], str]
    requires_api_key: bool

    def url(self, api_key: Optional[str]) -> str:
        return self.url_builder(api_key)


PROVIDERS: Tuple[ProviderConfig, ...] = (
    ProviderConfig("infura", _infura_url, True),
    ProviderConfig("alchemy", _alchemy_url, True),
    ProviderConfig("ankr", _ankr_url, False),
    ProviderConfig("cloudflare", _cloudflare_url, False),
    ProviderConfig("public", _public_url, False),
)
"""Providers in fallback order"""

DEFAULT_PROVIDER_ID = "infura"

PROVIDER_IDS: Tuple[str, ...] = tuple(provider.provider_id for provider in PROVIDERS)


class AllProvidersFailed(ScraperError):
    error_kind = ErrorKind.ALL_PROVIDERS_FAILED

    def __init__(self, message: str, last_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__last_error = last_error

    @property
    def last_error(self) -> Optional[BaseException]:
        return self.__last_error


class ChainClientResolver:
    """
    Produces an `EvmRpcClient` that has answered a liveness probe. The requested
    provider is tried first and the remaining providers follow in table order. Every
    candidate gets exactly one `eth_blockNumber` probe.

    :param stats_service: Stats service handed to each client created
    :param providers: Ordered provider table
    :param default_provider_id: Provider used when the requested one is unknown
    :param request_timeout: Timeout in seconds for each RPC request of a client
    """

    STAT_PROVIDER_ATTEMPT = "provider.attempt"
    STAT_PROVIDER_FAILED = "provider.failed"
    STAT_PROVIDER_FALLBACK = "provider.fallback"

    def __init__(
        self,
        stats_service: StatsService,
        providers: Sequence[ProviderConfig] = PROVIDERS,
        default_provider_id: str = DEFAULT_PROVIDER_ID,
        request_timeout: float = 10.0,
    ) -> None:
        self.__stats_service = stats_service
        self.__providers: Tuple[ProviderConfig, ...] = tuple(providers)
        self.__default_provider_id = default_provider_id
        self.__request_timeout = request_timeout
        self.__logger = logging.getLogger(LOGGER_NAME)
        if self.get_provider(default_provider_id) is None:
            raise ValueError(f"Default provider {default_provider_id} is not in the provider table")

    @property
    def providers(self) -> Tuple[ProviderConfig, ...]:
        return self.__providers

    def get_provider(self, provider_id: str) -> Optional[ProviderConfig]:
        for provider in self.__providers:
            if provider.provider_id == provider_id:
                return provider
        return None

    def candidates(self, primary_provider_id: str) -> List[ProviderConfig]:
        """
        The providers in the order they will be attempted for `primary_provider_id`
        """
        primary = self.get_provider(primary_provider_id)
        if primary is None:
            self.__logger.warning(
                f"Unknown RPC provider {primary_provider_id}, "
                f"using {self.__default_provider_id} instead"
            )
            primary = self.get_provider(self.__default_provider_id)
        return [primary] + [p for p in self.__providers if p.provider_id != primary.provider_id]

    def _create_client(self, url: str) -> EvmRpcClient:
        return EvmRpcClient(url, self.__stats_service, self.__request_timeout)

    async def resolve(self, primary_provider_id: str, api_key: Optional[str]) -> EvmRpcClient:
        """
        Get a client for the first provider that answers the liveness probe

        :param primary_provider_id: Identifier of the provider to try first
        :param api_key: API key for providers requiring one. May be None when only
            keyless providers are expected to succeed.

        :raises: AllProvidersFailed
        """
        last_error: Optional[BaseException] = None
        for attempt, provider in enumerate(self.candidates(primary_provider_id)):
            if attempt > 0:
                self.__stats_service.increment(self.STAT_PROVIDER_FALLBACK)
                self.__logger.info(f"Trying fallback provider: {provider.provider_id}")
            if provider.requires_api_key and not api_key:
                self.__logger.warning(
                    f"No API key provided for RPC provider {provider.provider_id}"
                )
            self.__stats_service.increment(self.STAT_PROVIDER_ATTEMPT)
            client = self._create_client(provider.url(api_key))
            try:
                block_number = await client.get_block_number()
            except RpcError as e:
                self.__stats_service.increment(self.STAT_PROVIDER_FAILED)
                self.__logger.error(f"Error connecting to {provider.provider_id}: {e}")
                last_error = e
                continue
            self.__logger.debug(
                f"Connected to {provider.provider_id} at block {block_number.int_value:,}"
            )
            return client

        raise AllProvidersFailed("All RPC providers failed", last_error) from last_error
