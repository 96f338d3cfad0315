from typing import Callable, Dict, Optional
from unittest import TestCase
from unittest.mock import MagicMock, AsyncMock, patch

import aiohttp


class AsyncContextManager:
    """
    Helper for mocking
    """

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


def async_context_manager_mock():
    return MagicMock(AsyncContextManager)


def response_context_mock(
    status: int = 200,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    json=None,
):
    """
    Async context manager mock yielding an aiohttp response mock. Statuses of 400
    and above make `raise_for_status` raise like aiohttp does.
    """
    response = MagicMock()
    response.status = status
    response.headers = {} if headers is None else headers
    if status >= 400:
        response.raise_for_status = MagicMock(
            side_effect=aiohttp.ClientResponseError(
                request_info=MagicMock(),
                history=(),
                status=status,
                message=f"HTTP {status}",
                headers=response.headers,
            )
        )
    else:
        response.raise_for_status = MagicMock()
    response.content.read = AsyncMock(return_value=body)
    response.json = AsyncMock(return_value=json)
    context = async_context_manager_mock()
    context.__aenter__.return_value = response
    return context


def patch_client_session(test_case: TestCase) -> MagicMock:
    """
    Patch aiohttp.ClientSession for the duration of a test and return the session
    object produced when entering it. Set `session.get.side_effect` or
    `session.post.side_effect` to a callable returning `response_context_mock`.
    """
    patcher = patch("aiohttp.ClientSession", new=async_context_manager_mock())
    client_session = patcher.start()
    test_case.addCleanup(patcher.stop)
    session = MagicMock()
    session.get = MagicMock()
    session.post = MagicMock()
    client_session.return_value.__aenter__.return_value = session
    session.client_session = client_session
    return session


def responses_by_uri(responses: Dict[str, Callable[[], MagicMock]]):
    def side_effect(uri, *args, **kwargs):
        return responses[uri]()

    return side_effect
