import threading
from typing import Protocol, Union, runtime_checkable

from .types import CredentialPair


@runtime_checkable
class CredentialStore(Protocol):
    """Holds the current access/refresh token pair.

    Implementations back onto whatever secure storage the host platform has.
    ``save`` must replace both tokens together; a reader must never see a new
    access token next to an old refresh token.
    """

    def get_access_token(self) -> str | None: ...

    def get_refresh_token(self) -> str | None: ...

    def save(self, access_token: str, refresh_token: str) -> bool: ...

    def clear(self) -> None: ...

    def has_valid_tokens(self) -> bool: ...


class InMemoryCredentialStore:
    """Process-local store; the pair is one immutable object swapped under a lock."""

    def __init__(self, pair: Union[CredentialPair, None] = None):
        self._pair = pair
        self._lock = threading.Lock()

    @property
    def pair(self) -> Union[CredentialPair, None]:
        # single attribute read: always a whole pair or None
        return self._pair

    def get_access_token(self) -> str | None:
        pair = self._pair
        return pair.access_token if pair else None

    def get_refresh_token(self) -> str | None:
        pair = self._pair
        return pair.refresh_token if pair else None

    def save(self, access_token: str, refresh_token: str) -> bool:
        if not access_token or not refresh_token:
            return False
        new = CredentialPair(access_token, refresh_token)
        with self._lock:
            self._pair = new
        return True

    def clear(self) -> None:
        with self._lock:
            self._pair = None

    def has_valid_tokens(self) -> bool:
        pair = self._pair
        return pair is not None and bool(pair.access_token) and bool(pair.refresh_token)

    @classmethod
    def from_env(cls, prefix: str = "AUTHPIPE_", env_path: Union[str, None] = None):
        from .env import load_credentials_from_env  # noqa: PLC0415

        return cls(load_credentials_from_env(prefix=prefix, env_path=env_path))
