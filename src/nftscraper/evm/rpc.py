"""EVM specific RPC Clients"""

from dataclasses import dataclass
from typing import Any, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import decode_hex

from .types import Function
from ..core.types import HexInt
from ..core.rpc import RpcClient, RpcDecodeError


@dataclass(frozen=True)
class EthCall:
    """
    A read-only call of a contract function, executed against the latest block

    :param to: Address of the contract whose function will be called
    :param function: The function to call
    :param parameters: Ordered function parameters
    """

    to: str
    function: Function
    parameters: Sequence[Any] = ()


class EvmRpcClient(RpcClient):
    """RPC Client for EVM RPC calls"""

    STAT_GET_BLOCK_NUMBER = "rpc.eth.block_number"
    """Stat name for counts of `eth_blockNumber` RPC calls"""

    STAT_CALL = "rpc.eth.call"
    """Stat name for counts of `eth_call` RPC calls"""

    async def get_block_number(self) -> HexInt:
        """Get the current block height via
        `eth_blockNumber <https://ethereum.org/en/developers/docs/apis/json-rpc/#eth_blocknumber>`_

        :raises: RpcDecodeError when the node answers with anything but a hex quantity
        """

        self._stats_service.increment(self.STAT_GET_BLOCK_NUMBER)
        result = await self.send("eth_blockNumber")
        try:
            return HexInt(result)
        except (TypeError, ValueError) as e:
            raise RpcDecodeError(f"Invalid block number returned: {result!r}") from e

    async def call(self, request: EthCall) -> Tuple[Any, ...]:
        """
        Call a view function on a smart contract via
        `eth_call <https://ethereum.org/en/developers/docs/apis/json-rpc/#eth_call>`_
        and decode its return values, for example::

            (token_uri,) = await rpc_client.call(request)

        An empty result, as returned by contracts without the function, decodes
        to `(None,)`.

        :raises: RpcServerError, RpcDecodeError, RpcTransportError
        """
        selector = bytes(request.function.function_signature_hash).hex()
        arguments = (
            encode(request.function.param_types, list(request.parameters)).hex()
            if request.parameters
            else ""
        )
        transaction = {"to": request.to, "data": f"0x{selector}{arguments}"}
        self._stats_service.increment(self.STAT_CALL)
        result = await self.send("eth_call", transaction, "latest")

        try:
            result_bytes = decode_hex(result)
            if not result_bytes:
                return (None,)
            return tuple(decode(request.function.return_types, result_bytes))
        except Exception as e:
            raise RpcDecodeError(f"Unable to decode {request.function.description} result") from e
