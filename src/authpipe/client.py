import contextlib
import logging
import random
from typing import Any, Union

from .adapters import Transport, coerce_transport
from .classifier import Decoder
from .executor import RequestExecutor, RetryingRequestExecutor, SessionExpiredHook, Sleep
from .outcomes import Outcome
from .policies import RetryPolicy, coerce_policy
from .refresher import TokenRefresher
from .store import CredentialStore, InMemoryCredentialStore
from .types import ClientConfig, Endpoint, HTTPMethod


class ApiClient:
    """The single entry point feature code talks to.

    Construct one per process and hand it to every call site; store and
    transport are explicit so tests can pass fakes.

    Other keywords for kwargs:
    - log_level: int
    - on_session_expired: callable(RefreshError), called when the refresh token
      is definitively rejected. Credentials are never cleared automatically.
    - sleep: async callable(seconds) used between retries
    - rng: random.Random used for backoff jitter
    """

    def __init__(
        self,
        config: ClientConfig,
        store: Union[CredentialStore, None] = None,
        transport: Union[Transport, str, None] = None,
        **kwargs,
    ):
        self.config = config
        self.store = store if store is not None else InMemoryCredentialStore()
        self._own_transport = transport is None or isinstance(transport, str)
        self.transport = coerce_transport(transport)
        self.default_policy = coerce_policy(config.retry_policy)
        self._logger = logging.getLogger("authpipe")
        log_level = kwargs.get("log_level")
        if log_level is not None:
            self._logger.setLevel(log_level)
        on_expired: Union[SessionExpiredHook, None] = kwargs.get("on_session_expired")
        sleep: Union[Sleep, None] = kwargs.get("sleep")
        rng: Union[random.Random, None] = kwargs.get("rng")

        self.refresher = TokenRefresher(self.store, self.transport, config, self._logger)
        self.executor = RequestExecutor(
            self.store,
            self.transport,
            config,
            refresher=self.refresher,
            logger=self._logger,
            on_session_expired=on_expired,
        )
        self.retrying = RetryingRequestExecutor(
            self.executor, sleep=sleep, rng=rng, logger=self._logger
        )

    @classmethod
    def from_env(cls, prefix: str = "AUTHPIPE_", env_path: Union[str, None] = None, **kwargs):
        from .env import load_client_config_from_env  # noqa: PLC0415

        store = kwargs.pop("store", None)
        if store is None:
            store = InMemoryCredentialStore.from_env(prefix=prefix, env_path=env_path)
        config = load_client_config_from_env(prefix=prefix, env_path=env_path)
        return cls(config, store=store, **kwargs)

    async def aclose(self):
        if self._own_transport:
            closer = getattr(self.transport, "aclose", None)
            if closer is not None:
                with contextlib.suppress(Exception):
                    await closer()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    async def call(
        self,
        endpoint: Endpoint,
        decode: Decoder = None,
        requires_auth: Union[bool, None] = None,
        retry_policy: Union[RetryPolicy, str, None] = None,
    ) -> Outcome:
        """Run one logical call and return its classified Outcome.

        ``requires_auth=None`` keeps the endpoint's own flag. ``retry_policy``
        is a preset name or a RetryPolicy; None means the client's default.
        """
        if requires_auth is not None:
            endpoint = endpoint.with_auth(requires_auth)
        policy = coerce_policy(retry_policy) if retry_policy is not None else self.default_policy
        return await self.retrying.execute_with_retry(endpoint, policy, decode)

    # sugar
    async def request(
        self,
        method: Union[HTTPMethod, str],
        path: str,
        json: Any = None,
        headers=None,
        decode: Decoder = None,
        requires_auth: bool = True,
        retry_policy: Union[RetryPolicy, str, None] = None,
    ) -> Outcome:
        if json is not None:
            endpoint = Endpoint.json(path, json, method, headers, requires_auth)
        else:
            endpoint = Endpoint(path, method, None, headers, requires_auth)
        return await self.call(endpoint, decode, retry_policy=retry_policy)

    async def get(self, path: str, **kw) -> Outcome:
        return await self.request("GET", path, **kw)

    async def post(self, path: str, **kw) -> Outcome:
        return await self.request("POST", path, **kw)

    async def put(self, path: str, **kw) -> Outcome:
        return await self.request("PUT", path, **kw)

    async def delete(self, path: str, **kw) -> Outcome:
        return await self.request("DELETE", path, **kw)
