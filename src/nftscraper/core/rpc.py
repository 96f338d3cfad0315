import asyncio
import logging
import uuid
from typing import Any, Dict

import aiohttp
from aiohttp import ClientError

from nftscraper import LOGGER_NAME
from nftscraper.core.stats import StatsService


class RpcError(Exception):
    pass


class RpcTransportError(RpcError):
    pass


class RpcDecodeError(RpcError):
    pass


class RpcServerError(RpcError):
    def __init__(self, rpc_version, request_id, error_code, error_message) -> None:
        super().__init__(f"RPC {rpc_version} - Req {request_id} - {error_code}: {error_message}")
        self.__rpc_version = rpc_version
        self.__request_id = request_id
        self.__error_code = error_code
        self.__error_message = error_message

    @property
    def rpc_version(self):
        return self.__rpc_version

    @property
    def request_id(self):
        return self.__request_id

    @property
    def error_code(self):
        return self.__error_code

    @property
    def error_message(self):
        return self.__error_message


class RpcClient:
    """
    JSON-RPC client sending each request as an HTTP POST to a single provider URL.
    Each request uses its own session, so an instance holds no open connections
    and needs no context manager.

    :param provider_url: The HTTP(S) endpoint of the RPC node
    :param stats_service: Service receiving request counts and timings
    :param request_timeout: Total seconds allowed for a request and its response
    """

    STAT_REQUEST_SENT = "rpc.request-sent"
    STAT_REQUEST_MS = "rpc.request-ms"
    STAT_RESPONSE_RECEIVED = "rpc.response-received"
    STAT_RESPONSE_ERROR = "rpc.response-error"
    STAT_TRANSPORT_ERROR = "rpc.transport-error"

    def __init__(
        self,
        provider_url: str,
        stats_service: StatsService,
        request_timeout: float = 10.0,
    ) -> None:
        self._stats_service = stats_service
        self.__provider_url = provider_url
        self.__timeout = aiohttp.ClientTimeout(total=request_timeout)
        self.__nonce: int = 0
        self.__instance: uuid.UUID = uuid.uuid1()
        self.__logger = logging.getLogger(LOGGER_NAME)

    @property
    def provider_url(self) -> str:
        return self.__provider_url

    def __get_rpc_request(self, method, params) -> Dict[str, Any]:
        self.__nonce += 1
        data = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": f"{self.__instance}-{self.__nonce}",
        }
        return data

    def __get_result(self, response: Any) -> Any:
        if not isinstance(response, dict):
            raise RpcDecodeError(f"Unexpected response returned: {response}")

        if "error" in response:
            self._stats_service.increment(self.STAT_RESPONSE_ERROR)
            try:
                raise RpcServerError(
                    response.get("jsonrpc"),
                    response.get("id"),
                    response["error"]["code"],
                    response["error"]["message"],
                )
            except (KeyError, TypeError) as e:
                raise RpcDecodeError(f"Invalid error response received -- {response}") from e

        if "result" not in response:
            raise RpcDecodeError(f"No result or error in response: {response}")

        return response["result"]

    async def send(self, method, *params) -> Any:
        request = self.__get_rpc_request(method, list(params))
        self._stats_service.increment(self.STAT_REQUEST_SENT)
        self._stats_service.increment(f"{self.STAT_REQUEST_SENT}.{method}")
        with self._stats_service.ms_counter(self.STAT_REQUEST_MS):
            try:
                async with aiohttp.ClientSession(timeout=self.__timeout) as session:
                    async with session.post(self.__provider_url, json=request) as response:
                        response.raise_for_status()
                        rpc_response = await response.json(content_type=None)
            except (ClientError, asyncio.TimeoutError) as e:
                self._stats_service.increment(self.STAT_TRANSPORT_ERROR)
                self.__logger.debug(f"{self.__instance}:Transport error for {method} -- {e!r}")
                raise RpcTransportError(f"Error sending {method}: {e!r}") from e
            except ValueError as e:
                raise RpcDecodeError(f"Response for {method} was not valid JSON") from e

        self._stats_service.increment(self.STAT_RESPONSE_RECEIVED)
        return self.__get_result(rpc_response)
