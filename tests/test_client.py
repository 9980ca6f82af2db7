import logging
from dataclasses import dataclass
from unittest.mock import AsyncMock

import pytest
from fakes import RecordingSleep, ScriptedTransport, reply

from authpipe import (
    ApiClient,
    ClientConfig,
    CredentialPair,
    Endpoint,
    InMemoryCredentialStore,
    RetryPolicy,
    ServerError,
    Success,
)

CONFIG = ClientConfig("https://api.example.com", retry_policy="conservative")


@dataclass
class Balance:
    points: int


def _client(transport, **kw):
    store = InMemoryCredentialStore(CredentialPair("a", "r"))
    return ApiClient(CONFIG, store=store, transport=transport, sleep=RecordingSleep(), **kw)


@pytest.mark.asyncio
async def test_call_decodes_expected_shape():
    transport = ScriptedTransport([reply(200, {"points": 40, "tier": "gold"})])
    client = _client(transport)
    out = await client.call(Endpoint("/rewards/balance"), Balance)
    assert out == Success(Balance(40), 200)


@pytest.mark.asyncio
async def test_call_uses_client_default_policy_and_per_call_override():
    transport = ScriptedTransport([reply(500)])
    client = _client(transport)
    assert await client.call(Endpoint("/x")) == ServerError(500, "Server error")
    # conservative: 1 + 2 retries
    assert len(transport.calls) == 3  # noqa: PLR2004

    transport.calls.clear()
    await client.call(Endpoint("/x"), retry_policy=RetryPolicy(max_retries=0))
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_call_requires_auth_override():
    transport = ScriptedTransport([reply(200, {})])
    client = _client(transport)
    await client.call(Endpoint("/public"), requires_auth=False)
    assert "Authorization" not in transport.calls[0]["headers"]


@pytest.mark.asyncio
async def test_sugar_methods_encode_json():
    transport = ScriptedTransport([reply(201, {"id": "s1"})])
    client = _client(transport)
    out = await client.post("/health/samples", json={"steps": 1200}, headers={"X-Day": "mon"})
    assert out == Success({"id": "s1"}, 201)
    call = transport.calls[0]
    assert call["method"] == "POST"
    assert call["body"] == b'{"steps":1200}'
    assert call["headers"]["X-Day"] == "mon"
    await client.get("/health/samples")
    await client.put("/profile", json={"name": "n"})
    await client.delete("/profile")
    assert [c["method"] for c in transport.calls] == ["POST", "GET", "PUT", "DELETE"]


@pytest.mark.asyncio
async def test_owned_transport_closed_injected_left_open():
    injected = AsyncMock()
    async with ApiClient(CONFIG, transport=injected):
        pass
    injected.aclose.assert_not_called()

    client = ApiClient(CONFIG, transport="httpx")
    client.transport = AsyncMock()
    await client.aclose()
    client.transport.aclose.assert_awaited_once()


def test_log_level_applied():
    _client(ScriptedTransport([reply(200, {})]), log_level=logging.DEBUG)
    assert logging.getLogger("authpipe").level == logging.DEBUG
    logging.getLogger("authpipe").setLevel(logging.NOTSET)


@pytest.mark.asyncio
async def test_logs_never_contain_tokens(caplog):
    transport = ScriptedTransport([reply(200, {})])
    client = _client(transport)
    with caplog.at_level(logging.DEBUG, logger="authpipe"):
        await client.get("/rewards")
    assert "req done method=GET path=/rewards status=200" in caplog.text
    assert "Bearer" not in caplog.text
