import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Union

from .adapters import Transport, TransportError
from .classifier import Decoder, classify
from .outcomes import Outcome, RateLimited, Success, TransportFailure, Unauthorized
from .policies import RetryPolicy, coerce_policy
from .refresher import RefreshError, TokenRefresher
from .state import AttemptState
from .store import CredentialStore
from .types import JSON_MEDIA_TYPE, ClientConfig, Endpoint

SessionExpiredHook = Callable[[RefreshError], None]


def build_headers(
    endpoint: Endpoint, logger: Union[logging.Logger, None] = None
) -> dict[str, str]:
    """JSON defaults first, then the caller's headers; last write wins per name."""
    merged: dict[str, tuple[str, str]] = {
        "content-type": ("Content-Type", JSON_MEDIA_TYPE),
        "accept": ("Accept", JSON_MEDIA_TYPE),
    }
    defaults = set(merged)
    for name, value in endpoint.extra_headers:
        key = name.lower()
        if key in defaults and logger is not None:
            logger.debug(f"caller header {name} overrides default {merged[key][1]!r}")
        merged[key] = (name, value)
    return dict(merged.values())


class RequestExecutor:
    """One logical call: build, authenticate, send, classify, refresh once on 401.

    The refresh-and-reissue path is a bounded loop over :class:`~authpipe.state.AttemptPhase`;
    once a call has used its refresh it can only return, never refresh again.
    """

    def __init__(
        self,
        store: CredentialStore,
        transport: Transport,
        config: ClientConfig,
        refresher: Union[TokenRefresher, None] = None,
        logger: Union[logging.Logger, None] = None,
        on_session_expired: Union[SessionExpiredHook, None] = None,
    ):
        self.store = store
        self.transport = transport
        self.config = config
        self._logger = logger or logging.getLogger("authpipe")
        self.refresher = refresher or TokenRefresher(store, transport, config, self._logger)
        self.on_session_expired = on_session_expired

    def _wants_bearer(self, endpoint: Endpoint) -> bool:
        return endpoint.requires_auth and not self.config.auth.is_auth_endpoint(endpoint.path)

    async def _send_once(
        self, endpoint: Endpoint, decode: Decoder, token: Union[str, None]
    ) -> Outcome:
        headers = build_headers(endpoint, self._logger)
        if token:
            auth = self.config.auth
            for name in [n for n in headers if n.lower() == auth.header.lower()]:
                del headers[name]
            headers[auth.header] = auth.header_value(token)
        method = endpoint.method.value
        url = self.config.url_for(endpoint.path)
        self._logger.debug(f"req start method={method} path={endpoint.path}")
        try:
            resp = await self.transport.send(method, url, headers, endpoint.body, self.config.timeout)
        except TransportError as e:
            self._logger.warning(f"request error method={method} path={endpoint.path}: {e}")
            return TransportFailure(e.cause)
        self._logger.debug(
            f"req done method={method} path={endpoint.path} status={resp.status_code}"
        )
        return classify(resp.status_code, resp.body, decode, resp.headers)

    async def execute(
        self,
        endpoint: Endpoint,
        decode: Decoder = None,
        *,
        is_retry: bool = False,
        state: Union[AttemptState, None] = None,
    ) -> Outcome:
        if state is None:
            state = AttemptState()
        if is_retry:
            state.mark_refreshed()
        wants_bearer = self._wants_bearer(endpoint)

        while True:
            # absent token: send unauthenticated and let the server answer 401
            token = self.store.get_access_token() if wants_bearer else None
            state.primary_calls += 1
            outcome = await self._send_once(endpoint, decode, token)

            if not (isinstance(outcome, Unauthorized) and wants_bearer):
                return outcome
            if not state.may_refresh():
                self._logger.info(f"401 after refresh on path={endpoint.path}; giving up")
                return outcome

            state.refresh_calls += 1
            result = await self.refresher.refresh(rejected_token=token)
            if isinstance(result, RefreshError):
                if result.is_definitive and self.on_session_expired is not None:
                    self.on_session_expired(result)
                return Unauthorized(session_expired=result.is_definitive)
            state.mark_refreshed()
            self._logger.info(f"retrying path={endpoint.path} with refreshed token")


Sleep = Callable[[float], Awaitable[None]]


class RetryingRequestExecutor:
    """Wraps :class:`RequestExecutor` with a :class:`RetryPolicy` for transient failures."""

    def __init__(
        self,
        executor: RequestExecutor,
        sleep: Union[Sleep, None] = None,
        rng: Union[random.Random, None] = None,
        logger: Union[logging.Logger, None] = None,
    ):
        self.executor = executor
        self._sleep = sleep or asyncio.sleep
        self._rng = rng
        self._logger = logger or logging.getLogger("authpipe")

    async def execute_with_retry(
        self,
        endpoint: Endpoint,
        policy: Union[RetryPolicy, str, None] = None,
        decode: Decoder = None,
        state: Union[AttemptState, None] = None,
    ) -> Outcome:
        policy = coerce_policy(policy)
        if state is None:
            state = AttemptState()
        outcome: Outcome
        for attempt in range(policy.max_retries + 1):
            state.attempt_index = attempt
            outcome = await self.executor.execute(endpoint, decode, state=state)
            if isinstance(outcome, Success) or not policy.should_retry(outcome, attempt):
                return outcome

            if isinstance(outcome, RateLimited) and outcome.retry_after is not None:
                # the server's instruction replaces our own backoff
                delay = outcome.retry_after
            else:
                delay = policy.delay_for(attempt + 1, self._rng)
            self._logger.info(
                f"retrying path={endpoint.path} after {type(outcome).__name__} "
                f"(attempt {attempt + 1}/{policy.max_retries}) in {delay:.2f}s"
            )
            # cancellation of the calling task lands here and ends the loop
            await self._sleep(delay)
        return outcome
