"""JSON-RPC 2.0 client bound to one node's control port."""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Dict, Optional, Sequence, Type, TypeVar

import aiohttp

from .logging_utils import get_module_logger

T = TypeVar("T")

JSON_CONTENT_TYPE = "application/json"


class RpcError(Exception):
    """Base class for recoverable RPC call failures."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method


class RpcTransportError(RpcError):
    """The request could not be sent or the reply could not be read."""


class RpcEmptyResult(RpcError):
    """The reply decoded but carried no ``result``."""


class RpcTypeMismatch(RpcError):
    """The reply carried a ``result`` of an unexpected type."""

    def __init__(self, method: str, expected: Type, actual: Any) -> None:
        super().__init__(
            method,
            f"expected {expected.__name__} result, got {type(actual).__name__}",
        )
        self.expected = expected
        self.actual = actual


def _matches(value: Any, expected: Type) -> bool:
    # bool is an int subclass; keep string/bool/mapping strictly apart
    if expected is bool:
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    return isinstance(value, expected)


class RpcClient:
    """Issues named JSON-RPC calls against ``http://host:port``.

    The underlying ``aiohttp.ClientSession`` is opened lazily on the first
    call, so a client can be built outside the event loop (during chain
    resolution) and used later from inside it. No retries happen here.
    """

    def __init__(self, host: str, port: int, *, timeout: float = 10.0) -> None:
        if not host or any(ch.isspace() for ch in host) or '/' in host:
            raise ValueError(f"Invalid RPC host: {host!r}")
        if not isinstance(port, int) or not 0 < port < 65536:
            raise ValueError(f"Invalid RPC port: {port!r}")
        if timeout <= 0:
            raise ValueError(f"RPC timeout must be positive, got {timeout}")

        self.host = host
        self.port = port
        self.url = f"http://{host}:{port}"
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._ids = itertools.count(1)
        self._session: Optional[aiohttp.ClientSession] = None
        self.logger = get_module_logger(f"RpcClient.{port}")

    def __repr__(self) -> str:
        return f"RpcClient({self.url})"

    def _build_request(self, method: str, params: Sequence[Any]) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _send(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._get_session()
        try:
            async with session.post(
                self.url,
                json=payload,
                headers={"Content-Type": JSON_CONTENT_TYPE},
            ) as response:
                response.raise_for_status()
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise RpcTransportError(method, f"{type(exc).__name__}: {exc}") from exc

        if not isinstance(body, dict):
            raise RpcTransportError(method, f"malformed response: {body!r}")
        return body

    async def call(self, method: str, params: Sequence[Any], result_type: Type[T]) -> T:
        """Call ``method`` and return its ``result`` as ``result_type``.

        Raises:
            RpcTransportError: connection, HTTP or decoding failure.
            RpcEmptyResult: the response had no (or a null) ``result``.
            RpcTypeMismatch: ``result`` was not a ``result_type``.
        """
        payload = self._build_request(method, params)
        self.logger.debug("-> %s id=%s params=%s", method, payload["id"], payload["params"])

        body = await self._send(method, payload)

        result = body.get("result")
        if result is None:
            error = body.get("error")
            if isinstance(error, dict):
                detail = error.get("message") or error
                raise RpcEmptyResult(method, f"no response (error: {detail})")
            raise RpcEmptyResult(method, "no response")

        if not _matches(result, result_type):
            raise RpcTypeMismatch(method, result_type, result)

        return result

    async def call_string(self, method: str, params: Sequence[Any] = ()) -> str:
        return await self.call(method, params, str)

    async def call_bool(self, method: str, params: Sequence[Any] = ()) -> bool:
        return await self.call(method, params, bool)

    async def call_mapping(self, method: str, params: Sequence[Any] = ()) -> Dict[str, Any]:
        return await self.call(method, params, dict)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


__all__ = [
    "RpcClient",
    "RpcEmptyResult",
    "RpcError",
    "RpcTransportError",
    "RpcTypeMismatch",
]
