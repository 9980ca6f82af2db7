import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import Protocol, Union, runtime_checkable


class TransportError(Exception):
    """DNS failure, timeout, connection reset, undecodable body: no usable HTTP response."""

    def __init__(self, cause: BaseException):
        super().__init__(str(cause) or type(cause).__name__)
        self.cause = cause


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class Transport(Protocol):
    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Union[bytes, None],
        timeout: float,
    ) -> TransportResponse: ...


# ---------- httpx (async) ----------
class HttpxTransport:
    """Default transport. Owns an ``httpx.AsyncClient`` unless one is passed in."""

    def __init__(self, client=None, **client_kwargs):
        self.client = client
        self._own_client = client is None
        self._client_kwargs = client_kwargs

    def _get_client(self):
        if self.client is None:
            import httpx  # noqa: PLC0415

            self.client = httpx.AsyncClient(**self._client_kwargs)
        return self.client

    async def send(self, method, url, headers, body, timeout) -> TransportResponse:
        import httpx  # noqa: PLC0415

        client = self._get_client()
        try:
            resp = await client.request(
                method, url, headers=headers, content=body, timeout=timeout
            )
        except httpx.RequestError as e:
            raise TransportError(e) from e
        return TransportResponse(resp.status_code, resp.content, dict(resp.headers))

    async def aclose(self):
        if self._own_client and self.client is not None:
            with contextlib.suppress(Exception):
                await self.client.aclose()
            self.client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False


# ---------- aiohttp (async) ----------
class AiohttpTransport:
    """Transport over an ``aiohttp.ClientSession`` (created lazily inside the loop)."""

    def __init__(self, session=None):
        self.session = session
        self._own_session = session is None

    def _get_session(self):
        if self.session is None:
            import aiohttp  # noqa: PLC0415

            self.session = aiohttp.ClientSession()
        return self.session

    async def send(self, method, url, headers, body, timeout) -> TransportResponse:
        import aiohttp  # noqa: PLC0415

        session = self._get_session()
        try:
            async with session.request(
                method,
                url,
                headers=headers,
                data=body,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                payload = await resp.read()
                return TransportResponse(resp.status, payload, dict(resp.headers))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(e) from e

    async def aclose(self):
        if self._own_session and self.session is not None:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False


# ---------- requests (sync, run in a worker thread) ----------
class RequestsTransport:
    """Blocking ``requests.Session`` driven from a worker thread so the loop stays free."""

    def __init__(self, session=None):
        self.session = session
        self._own_session = session is None

    def _get_session(self):
        if self.session is None:
            import requests  # noqa: PLC0415

            self.session = requests.Session()
        return self.session

    async def send(self, method, url, headers, body, timeout) -> TransportResponse:
        import requests  # noqa: PLC0415

        sess = self._get_session()
        try:
            resp = await asyncio.to_thread(
                sess.request, method, url, headers=headers, data=body, timeout=timeout
            )
        except requests.RequestException as e:
            raise TransportError(e) from e
        return TransportResponse(resp.status_code, resp.content, dict(resp.headers))

    async def aclose(self):
        if self._own_session and self.session is not None:
            with contextlib.suppress(Exception):
                self.session.close()
            self.session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False


def coerce_transport(transport: Union[object, None]) -> Transport:
    """Turn None | "httpx" | "aiohttp" | "requests" | Transport into a Transport."""
    if transport is None:
        return HttpxTransport()
    if isinstance(transport, str):
        name = transport.lower()
        if name == "httpx":
            return HttpxTransport()
        if name == "aiohttp":
            return AiohttpTransport()
        if name == "requests":
            return RequestsTransport()
        raise ValueError("Unknown transport string. Use 'httpx', 'aiohttp' or 'requests'.")
    if callable(getattr(transport, "send", None)):
        return transport
    raise TypeError("transport must be None, a transport name, or an object with async send()")
