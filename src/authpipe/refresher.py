import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .adapters import Transport, TransportError
from .classifier import classify
from .outcomes import ClientError, Outcome, Success, TransportFailure, Unauthorized
from .store import CredentialStore
from .types import JSON_MEDIA_TYPE, ClientConfig, CredentialPair


class RefreshFailure(Enum):
    NO_REFRESH_TOKEN = "no_refresh_token"
    # the refresh endpoint answered 401/4xx: the refresh token itself is no good
    REJECTED = "rejected"
    # network, 5xx, throttling or an unreadable body; the token may still be fine
    TRANSIENT = "transient"
    STORE_FAILED = "store_failed"
    # the stored pair was cleared or replaced while the exchange was in flight
    SIGNED_OUT = "signed_out"


@dataclass(frozen=True)
class RefreshError:
    reason: RefreshFailure
    outcome: Union[Outcome, None] = None

    @property
    def is_definitive(self) -> bool:
        return self.reason in (RefreshFailure.NO_REFRESH_TOKEN, RefreshFailure.REJECTED)


def _decode_pair(payload) -> CredentialPair:
    if not isinstance(payload, dict):
        raise TypeError("refresh response is not a JSON object")
    access, refresh = payload.get("accessToken"), payload.get("refreshToken")
    if not (isinstance(access, str) and access and isinstance(refresh, str) and refresh):
        raise ValueError("refresh response lacks accessToken/refreshToken")
    return CredentialPair(access, refresh)


class TokenRefresher:
    """Exchanges the stored refresh token for a new pair, one exchange at a time.

    Concurrent callers that hit 401 together share a single in-flight
    exchange. Against a backend that rotates refresh tokens, a second
    parallel exchange would present an already-spent token and fail.
    """

    def __init__(
        self,
        store: CredentialStore,
        transport: Transport,
        config: ClientConfig,
        logger: Union[logging.Logger, None] = None,
    ):
        self.store = store
        self.transport = transport
        self.config = config
        self._logger = logger or logging.getLogger("authpipe")
        self._inflight: Union[asyncio.Task, None] = None
        self.network_calls = 0

    async def refresh(
        self, rejected_token: Union[str, None] = None
    ) -> Union[CredentialPair, RefreshError]:
        """Install a fresh pair; return it, or a RefreshError leaving the store untouched.

        ``rejected_token`` is the access token the server just refused. If the
        store already holds a different one, a concurrent refresh has won and
        its pair is returned without another exchange.
        """
        if self._inflight is None and rejected_token is not None:
            current = self.store.get_access_token()
            refresh_token = self.store.get_refresh_token()
            if current and refresh_token and current != rejected_token:
                self._logger.debug("access token already rotated by another call; reusing it")
                return CredentialPair(current, refresh_token)

        # no await between the check and the assignment, so this is atomic on the loop
        if self._inflight is None:
            task = asyncio.ensure_future(self._exchange())
            self._inflight = task
            task.add_done_callback(self._clear_inflight)
        # shield: one waiter being cancelled must not cancel the shared exchange
        return await asyncio.shield(self._inflight)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _exchange(self) -> Union[CredentialPair, RefreshError]:
        refresh_token = self.store.get_refresh_token()
        if not refresh_token:
            self._logger.warning("token refresh skipped: no refresh token stored")
            return RefreshError(RefreshFailure.NO_REFRESH_TOKEN)

        url = self.config.url_for(self.config.auth.refresh_path)
        headers = {"Content-Type": JSON_MEDIA_TYPE, "Accept": JSON_MEDIA_TYPE}
        body = json.dumps({"refreshToken": refresh_token}).encode("utf-8")
        self.network_calls += 1
        self._logger.info("refreshing access token")
        try:
            resp = await self.transport.send("POST", url, headers, body, self.config.timeout)
        except TransportError as e:
            self._logger.warning(f"token refresh failed: transport error {e}")
            return RefreshError(RefreshFailure.TRANSIENT, TransportFailure(e.cause))

        outcome = classify(resp.status_code, resp.body, _decode_pair, resp.headers)
        if isinstance(outcome, Success):
            pair: CredentialPair = outcome.value
            if self.store.get_refresh_token() != refresh_token:
                self._logger.info("token refresh discarded: credentials changed during the exchange")
                return RefreshError(RefreshFailure.SIGNED_OUT, outcome)
            if not self.store.save(pair.access_token, pair.refresh_token):
                self._logger.warning("token refresh succeeded but the credential store refused it")
                return RefreshError(RefreshFailure.STORE_FAILED, outcome)
            self._logger.info("access token refreshed")
            return pair

        reason = (
            RefreshFailure.REJECTED
            if isinstance(outcome, (Unauthorized, ClientError))
            else RefreshFailure.TRANSIENT
        )
        self._logger.warning(
            f"token refresh failed: {reason.value} ({type(outcome).__name__}); "
            "stored credentials left unchanged"
        )
        return RefreshError(reason, outcome)
