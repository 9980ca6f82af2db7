import asyncio
import random

import pytest
from fakes import RecordingSleep, ScriptedTransport, pair_reply, reply

from authpipe import (
    DEFAULT_POLICY,
    ClientConfig,
    ClientError,
    CredentialPair,
    Endpoint,
    InMemoryCredentialStore,
    Malformed,
    RateLimited,
    RequestExecutor,
    RetryingRequestExecutor,
    RetryPolicy,
    ServerError,
    Success,
    TransportError,
    TransportFailure,
    Unauthorized,
)
from authpipe.state import AttemptState

CONFIG = ClientConfig("https://api.example.com")


def _retrying(transport, sleep):
    store = InMemoryCredentialStore(CredentialPair("old", "r1"))
    executor = RequestExecutor(store, transport, CONFIG)
    return RetryingRequestExecutor(executor, sleep=sleep, rng=random.Random(7))


@pytest.mark.asyncio
async def test_503_503_200_succeeds_after_two_retries():
    sleep = RecordingSleep()
    transport = ScriptedTransport([reply(503), reply(503), reply(200, {"ok": 1})])
    out = await _retrying(transport, sleep).execute_with_retry(Endpoint("/sync"), DEFAULT_POLICY)
    assert out == Success({"ok": 1}, 200)
    assert len(transport.calls) == 3  # noqa: PLR2004
    assert len(sleep.delays) == 2  # noqa: PLR2004
    assert 0.9 <= sleep.delays[0] <= 1.1  # noqa: PLR2004
    assert 1.8 <= sleep.delays[1] <= 2.2  # noqa: PLR2004
    assert sleep.delays == sorted(sleep.delays)


@pytest.mark.asyncio
async def test_exhaustion_returns_last_concrete_outcome():
    sleep = RecordingSleep()
    transport = ScriptedTransport([reply(502, {"message": "bad gateway"})])
    out = await _retrying(transport, sleep).execute_with_retry(Endpoint("/sync"), "conservative")
    assert out == ServerError(502, "bad gateway")
    assert len(transport.calls) == 3  # noqa: PLR2004
    assert len(sleep.delays) == 2  # noqa: PLR2004


@pytest.mark.asyncio
async def test_transport_failures_are_retried():
    sleep = RecordingSleep()
    transport = ScriptedTransport(
        [TransportError(TimeoutError("timed out")), reply(200, {"ok": 1})]
    )
    out = await _retrying(transport, sleep).execute_with_retry(Endpoint("/sync"))
    assert isinstance(out, Success)
    assert len(sleep.delays) == 1

    transport = ScriptedTransport([TransportError(OSError("down"))])
    out = await _retrying(transport, RecordingSleep()).execute_with_retry(
        Endpoint("/sync"), RetryPolicy(max_retries=1, initial_delay=0.0)
    )
    assert isinstance(out, TransportFailure)
    assert len(transport.calls) == 2  # noqa: PLR2004


@pytest.mark.asyncio
async def test_rate_limit_retry_after_overrides_backoff():
    sleep = RecordingSleep()
    transport = ScriptedTransport(
        [reply(429, {"error": "rate", "message": "slow", "retryAfter": 5}), reply(200, {})]
    )
    out = await _retrying(transport, sleep).execute_with_retry(Endpoint("/sync"))
    assert isinstance(out, Success)
    assert sleep.delays == [5.0]


@pytest.mark.asyncio
async def test_long_rate_limit_is_surfaced_immediately():
    sleep = RecordingSleep()
    transport = ScriptedTransport(
        [reply(429, {"error": "rate", "message": "slow", "retryAfter": 120})]
    )
    out = await _retrying(transport, sleep).execute_with_retry(Endpoint("/sync"))
    assert out == RateLimited("slow", 120.0)
    assert len(transport.calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_rate_limit_without_hint_uses_backoff():
    sleep = RecordingSleep()
    transport = ScriptedTransport([reply(429), reply(200, {})])
    await _retrying(transport, sleep).execute_with_retry(Endpoint("/sync"))
    assert 0.9 <= sleep.delays[0] <= 1.1  # noqa: PLR2004


@pytest.mark.asyncio
async def test_malformed_success_body_not_retried():
    sleep = RecordingSleep()
    transport = ScriptedTransport([reply(200, raw=b"{broken")])
    out = await _retrying(transport, sleep).execute_with_retry(Endpoint("/sync"), "aggressive")
    assert isinstance(out, Malformed)
    assert len(transport.calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_client_error_not_retried():
    sleep = RecordingSleep()
    transport = ScriptedTransport([reply(422, {"code": "V", "message": "invalid steps"})])
    out = await _retrying(transport, sleep).execute_with_retry(Endpoint("/sync"), "aggressive")
    assert out == ClientError(422, "invalid steps")
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_refresh_happens_at_most_once_across_backoff_retries():
    sleep = RecordingSleep()
    transport = ScriptedTransport(
        [reply(401), reply(503), reply(401)],
        refresh=[pair_reply("new", "r2"), pair_reply("newer", "r3")],
    )
    state = AttemptState()
    out = await _retrying(transport, sleep).execute_with_retry(Endpoint("/sync"), state=state)
    assert out == Unauthorized()
    assert len(transport.refresh_calls) == 1
    assert len(transport.calls) == 3  # noqa: PLR2004
    assert state.attempt_index == 1
    assert (state.primary_calls, state.refresh_calls) == (3, 1)


@pytest.mark.asyncio
async def test_cancelling_the_call_stops_the_retry_loop():
    transport = ScriptedTransport([reply(503)])
    store = InMemoryCredentialStore(CredentialPair("old", "r1"))
    retrying = RetryingRequestExecutor(RequestExecutor(store, transport, CONFIG))
    policy = RetryPolicy(max_retries=5, initial_delay=10.0, jitter_fraction=0.0)
    task = asyncio.ensure_future(retrying.execute_with_retry(Endpoint("/sync"), policy))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(transport.calls) == 1
