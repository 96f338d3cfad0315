import logging
from typing import Dict, Optional, Tuple, Union

from nftscraper import LOGGER_NAME
from nftscraper.core.errors import ScraperError, ErrorKind
from nftscraper.core.rpc import RpcError, RpcDecodeError
from nftscraper.core.stats import StatsService
from nftscraper.core.types import HexInt
from nftscraper.evm.providers import ChainClientResolver, AllProvidersFailed, DEFAULT_PROVIDER_ID
from nftscraper.evm.rpc import EvmRpcClient, EthCall
from nftscraper.evm.types import Function, Erc721MetadataFunctions, Erc1155MetadataUriFunctions

TokenId = Union[int, str, HexInt]
CacheKey = Tuple[str, int]

ERC1155_ID_PLACEHOLDER = "{id}"


class MetadataPointerUnresolvable(ScraperError):
    error_kind = ErrorKind.METADATA_POINTER_UNRESOLVABLE


def normalize_token_id(token_id: TokenId) -> int:
    if isinstance(token_id, HexInt):
        return token_id.int_value
    if isinstance(token_id, str) and token_id.lower().startswith("0x"):
        return int(token_id, 16)
    return int(token_id)


class TokenUriCache:
    """
    In-memory map of resolved metadata pointers. Entries are never evicted, so the
    lifetime of a cache is the lifetime of whatever owns it.
    """

    def __init__(self) -> None:
        self.__entries: Dict[CacheKey, str] = {}

    @staticmethod
    def key(contract_address: str, token_id: TokenId) -> CacheKey:
        return contract_address.lower(), normalize_token_id(token_id)

    def get(self, contract_address: str, token_id: TokenId) -> Optional[str]:
        return self.__entries.get(self.key(contract_address, token_id))

    def set(self, contract_address: str, token_id: TokenId, token_uri: str) -> None:
        self.__entries[self.key(contract_address, token_id)] = token_uri

    def clear(self) -> None:
        self.__entries.clear()

    def __len__(self) -> int:
        return len(self.__entries)

    def __contains__(self, key: CacheKey) -> bool:
        contract_address, token_id = key
        return self.key(contract_address, token_id) in self.__entries


def substitute_erc1155_id(uri: str, token_id: int) -> str:
    """
    Replace the ERC-1155 `{id}` placeholder with the lower case hexadecimal token ID
    zero-padded to 64 characters
    """
    return uri.replace(ERC1155_ID_PLACEHOLDER, HexInt(token_id).padded_hex(64, prefix=False))


class TokenUriResolver:
    """
    Resolves the metadata pointer of a token through `tokenURI(uint256)` with a
    fallback to the ERC-1155 `uri(uint256)`.

    :param chain_client_resolver: Source of a live RPC client for each resolution
    :param stats_service: Service receiving cache and call statistics
    :param cache: Cache of resolved pointers. A new, empty cache is created when
        none is provided.
    """

    STAT_CACHE_HIT = "token_uri.cache-hit"
    STAT_CACHE_MISS = "token_uri.cache-miss"
    STAT_TOKEN_URI_FALLBACK = "token_uri.uri-fallback"
    STAT_UNRESOLVABLE = "token_uri.unresolvable"

    def __init__(
        self,
        chain_client_resolver: ChainClientResolver,
        stats_service: StatsService,
        cache: Optional[TokenUriCache] = None,
    ) -> None:
        self.__chain_client_resolver = chain_client_resolver
        self.__stats_service = stats_service
        self.__cache = TokenUriCache() if cache is None else cache
        self.__logger = logging.getLogger(LOGGER_NAME)

    @property
    def cache(self) -> TokenUriCache:
        return self.__cache

    @staticmethod
    async def __call_for_string(
        rpc_client: EvmRpcClient, contract_address: str, function: Function, token_id: int
    ) -> str:
        (value,) = await rpc_client.call(
            EthCall(to=contract_address, function=function, parameters=[token_id])
        )
        if not isinstance(value, str) or not value.strip():
            raise RpcDecodeError(f"{function.description} returned no metadata pointer")
        return value.strip()

    async def resolve(
        self,
        contract_address: str,
        token_id: TokenId,
        api_key: Optional[str],
        primary_provider_id: str = DEFAULT_PROVIDER_ID,
    ) -> str:
        """
        Get the metadata pointer for a token

        :raises: MetadataPointerUnresolvable
        """
        token_id = normalize_token_id(token_id)
        cached = self.__cache.get(contract_address, token_id)
        if cached is not None:
            self.__stats_service.increment(self.STAT_CACHE_HIT)
            return cached
        self.__stats_service.increment(self.STAT_CACHE_MISS)

        try:
            rpc_client = await self.__chain_client_resolver.resolve(primary_provider_id, api_key)
        except AllProvidersFailed as e:
            self.__stats_service.increment(self.STAT_UNRESOLVABLE)
            self.__logger.error(f"Error getting tokenURI for token {token_id}: {e}")
            raise MetadataPointerUnresolvable(
                f"No RPC provider available to resolve token {token_id}"
            ) from e

        try:
            token_uri = await self.__call_for_string(
                rpc_client, contract_address, Erc721MetadataFunctions.TOKEN_URI, token_id
            )
        except RpcError as token_uri_error:
            self.__logger.debug(
                f"tokenURI failed for token {token_id}, trying uri -- {token_uri_error}"
            )
            self.__stats_service.increment(self.STAT_TOKEN_URI_FALLBACK)
            try:
                uri = await self.__call_for_string(
                    rpc_client, contract_address, Erc1155MetadataUriFunctions.URI, token_id
                )
            except RpcError as uri_error:
                self.__stats_service.increment(self.STAT_UNRESOLVABLE)
                self.__logger.error(
                    f"Error getting tokenURI for token {token_id}: "
                    f"tokenURI -- {token_uri_error}; uri -- {uri_error}"
                )
                raise MetadataPointerUnresolvable(
                    f"Neither tokenURI nor uri resolved for token {token_id}"
                ) from uri_error
            token_uri = substitute_erc1155_id(uri, token_id)

        self.__cache.set(contract_address, token_id, token_uri)
        return token_uri
