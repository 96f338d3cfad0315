import abc
import asyncio
import base64
import binascii
import re
from contextlib import asynccontextmanager
from re import Pattern
from typing import AsyncIterator, Mapping, Optional, cast
from urllib.parse import unquote_to_bytes

import aiohttp
from aiohttp.streams import StreamReader
from multidict import CIMultiDict

from nftscraper.core.stats import StatsService


class ProtocolError(Exception):
    def __init__(self, *args: object, status: Optional[int] = None) -> None:
        super().__init__(*args)
        self.__status = status

    @property
    def status(self) -> Optional[int]:
        """HTTP status of the failed response or None when no response was received"""
        return self.__status


class UnsupportedProtocolError(ProtocolError):
    pass


class ProtocolTimeoutError(ProtocolError):
    pass


class ResourceNotFoundProtocolError(ProtocolError):
    pass


class InvalidRequestProtocolError(ProtocolError):
    pass


class TooManyRequestsProtocolError(ProtocolError):
    def __init__(self, *args: object, retry_after: int) -> None:
        super().__init__(*args, status=429)
        self.__retry_after = retry_after

    @property
    def retry_after(self):
        return self.__retry_after


class DataReader(abc.ABC):
    @abc.abstractmethod
    async def read(self, size: int = -1) -> bytes:
        raise NotImplementedError


class StreamReaderDataReader(DataReader):
    def __init__(self, stream_reader: StreamReader) -> None:
        self.__stream_reader = stream_reader

    async def read(self, size: int = -1) -> bytes:
        return await self.__stream_reader.read(size)


class BytesDataReader(DataReader):
    def __init__(self, bytes_data: bytes) -> None:
        if bytes_data is None:
            raise ValueError("bytes_data must be bytes")
        self.__bytes_data = bytes_data
        self.__current_index = 0

    async def read(self, size: int = -1) -> bytes:
        if size == -1:
            end_index = len(self.__bytes_data)
        else:
            end_index = min(self.__current_index + size, len(self.__bytes_data))
        data = self.__bytes_data[self.__current_index : end_index]  # NOQA: E203
        self.__current_index = end_index
        return data


class DataClient(abc.ABC):
    # noinspection PyUnreachableCode
    @asynccontextmanager
    @abc.abstractmethod
    async def get(self, uri: str) -> AsyncIterator:
        """
        Get the data from the URI and yield a tuple containing the response
        Content-Type, which is None when the server did not send one, and a
        DataReader for the response body
        """
        raise NotImplementedError
        yield None  # Unreachable but a workaround for typing


class HttpDataClient(DataClient):
    STAT_GET = "http_client_get"
    STAT_GET_MS = "http_client_get_ms"

    def __init__(
        self,
        request_timeout: float,
        stats_service: StatsService,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.__timeout = aiohttp.ClientTimeout(total=request_timeout)
        self.__stats_service = stats_service
        self.__headers = dict(headers) if headers else {}

    @asynccontextmanager
    async def get(self, uri: str) -> AsyncIterator:
        with self.__stats_service.ms_counter(self.STAT_GET_MS):
            async with aiohttp.ClientSession(
                timeout=self.__timeout, headers=self.__headers
            ) as session:
                try:
                    async with session.get(uri) as response:
                        response.raise_for_status()
                        content_type = response.headers.get("Content-Type")
                        data_reader = StreamReaderDataReader(response.content)
                        yield content_type, data_reader

                except asyncio.TimeoutError:
                    raise ProtocolTimeoutError(
                        f"A timeout occurred for URI {uri} after {self.__timeout.total} seconds"
                    )
                except aiohttp.ClientError as e:
                    status = e.status if isinstance(e, aiohttp.ClientResponseError) else None
                    if status == 404:
                        raise ResourceNotFoundProtocolError(e, status=status)
                    elif status == 400:
                        raise InvalidRequestProtocolError(e, status=status)
                    elif status == 429:
                        try:
                            response_error = cast(aiohttp.ClientResponseError, e)
                            headers = cast(CIMultiDict, response_error.headers)
                            retry = int(headers.getone("Retry-After", 0))
                        except (KeyError, TypeError, ValueError, AttributeError):
                            retry = 0
                        raise TooManyRequestsProtocolError(e, retry_after=retry)
                    raise ProtocolError(
                        f"An error occurred getting data for URI {uri}: {e}", status=status
                    )
                finally:
                    self.__stats_service.increment(self.STAT_GET)


class UriTranslatingDataClient(HttpDataClient):
    def __init__(
        self,
        base_uri: str,
        regex_pattern: Pattern,
        request_timeout: float,
        stats_service: StatsService,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super(UriTranslatingDataClient, self).__init__(
            request_timeout=request_timeout,
            stats_service=stats_service,
            headers=headers,
        )
        self.__base_uri: str = base_uri
        self.__regex_pattern: Pattern = regex_pattern

    @property
    def base_uri(self) -> str:
        return self.__base_uri

    def translate(self, uri: str) -> str:
        match = self.__regex_pattern.fullmatch(uri)
        if not match:
            raise UnsupportedProtocolError(f"URI {uri} is not supported by {self.__base_uri}")
        return f"{self.__base_uri}{match.group(1)}"

    @asynccontextmanager
    async def get(self, uri: str) -> AsyncIterator:
        async with super().get(self.translate(uri)) as result:
            yield result


class IpfsDataClient(UriTranslatingDataClient):
    """
    Data client for `ipfs://` URIs served through one HTTP gateway. The gateway base
    is used verbatim, so it must end where the content identifier begins, for
    example `https://ipfs.io/ipfs/`.
    """

    STAT_GET = "ipfs_client_get"
    STAT_GET_MS = "ipfs_client_get_ms"
    URI_REGEX = re.compile(r"^ipfs://(?:ipfs/)?(.+)$")

    def __init__(
        self,
        gateway_uri: str,
        request_timeout: float,
        stats_service: StatsService,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super(IpfsDataClient, self).__init__(
            base_uri=gateway_uri,
            regex_pattern=self.URI_REGEX,
            request_timeout=request_timeout,
            stats_service=stats_service,
            headers=headers,
        )

    @classmethod
    def handles(cls, uri: str) -> bool:
        return cls.URI_REGEX.fullmatch(uri) is not None


class DataUriDataClient(DataClient):
    STAT_GET = "data_uri_client_get"
    URI_REGEX = re.compile(
        r"^data:(?P<mime_type>[^,;]+)?(?P<parameters>(?:;[^,;]+)*?)(?:;(?P<encoding>base64))?,"
        r"(?P<data>.*)$",
        re.DOTALL,
    )

    def __init__(self, stats_service: StatsService) -> None:
        self.__stats_service = stats_service

    @classmethod
    def handles(cls, uri: str) -> bool:
        return uri.startswith("data:")

    @asynccontextmanager
    async def get(self, uri: str) -> AsyncIterator:
        match = self.URI_REGEX.match(uri)
        if not match:
            raise ProtocolError(f"Invalid Data URI: {uri[:64]}")
        match_dict = match.groupdict()
        content_type = (
            match_dict["mime_type"] if match_dict["mime_type"] is not None else "text/plain"
        )
        data = match_dict["data"]
        if match_dict["encoding"] == "base64":
            try:
                decoded = base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ProtocolError(f"Data URI data not base64 encoded: {uri[:64]}") from e
        else:
            decoded = unquote_to_bytes(data)
        self.__stats_service.increment(self.STAT_GET)
        yield content_type, BytesDataReader(decoded)
