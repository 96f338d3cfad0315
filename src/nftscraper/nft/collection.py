import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from nftscraper import LOGGER_NAME
from nftscraper.core.rpc import RpcError
from nftscraper.evm.providers import ChainClientResolver, AllProvidersFailed, DEFAULT_PROVIDER_ID
from nftscraper.evm.rpc import EvmRpcClient, EthCall
from nftscraper.evm.types import Erc721MetadataFunctions, Function


@dataclass(frozen=True)
class CollectionInfo:
    name: Optional[str] = None
    symbol: Optional[str] = None


class CollectionInfoReader:
    """Best effort read of the ERC-721 metadata extension `name()` and `symbol()`"""

    def __init__(self, chain_client_resolver: ChainClientResolver) -> None:
        self.__chain_client_resolver = chain_client_resolver
        self.__logger = logging.getLogger(LOGGER_NAME)

    async def __get_string(
        self, rpc_client: EvmRpcClient, contract_address: str, function: Function
    ) -> Optional[str]:
        try:
            (value,) = await rpc_client.call(
                EthCall(to=contract_address, function=function)
            )
        except RpcError as e:
            self.__logger.debug(f"{function.description} failed for {contract_address} -- {e}")
            return None
        return value if isinstance(value, str) else None

    async def read(
        self,
        contract_address: str,
        api_key: Optional[str],
        primary_provider_id: str = DEFAULT_PROVIDER_ID,
    ) -> CollectionInfo:
        try:
            rpc_client = await self.__chain_client_resolver.resolve(primary_provider_id, api_key)
        except AllProvidersFailed as e:
            self.__logger.warning(f"Unable to read collection info for {contract_address}: {e}")
            return CollectionInfo()

        name, symbol = await asyncio.gather(
            self.__get_string(rpc_client, contract_address, Erc721MetadataFunctions.NAME),
            self.__get_string(rpc_client, contract_address, Erc721MetadataFunctions.SYMBOL),
        )
        return CollectionInfo(name=name, symbol=symbol)
