from dataclasses import dataclass
from typing import Any, Union

from .client import ApiClient
from .outcomes import Malformed, Outcome, Success
from .policies import NO_RETRY_POLICY, RetryPolicy
from .refresher import RefreshError
from .types import CredentialPair, Endpoint

IDENTITY_EXCHANGE_PATH = "/auth/firebase/verify"
LOGIN_PATH = "/auth/login"


@dataclass(frozen=True)
class AuthResult:
    access_token: str
    refresh_token: str
    user: Union[dict, None] = None

    def __repr__(self) -> str:
        return f"AuthResult(user={self.user!r})"


def _decode_auth(payload: Any) -> AuthResult:
    if not isinstance(payload, dict):
        raise TypeError("auth response is not a JSON object")
    access, refresh = payload.get("accessToken"), payload.get("refreshToken")
    if not (isinstance(access, str) and access and isinstance(refresh, str) and refresh):
        raise ValueError("auth response lacks accessToken/refreshToken")
    user = payload.get("user")
    return AuthResult(access, refresh, user if isinstance(user, dict) else None)


class AuthSession:
    """Sign-in, sign-out and explicit refresh on top of an :class:`ApiClient`.

    Sign-in endpoints live under the auth path marker, so they never carry a
    bearer and a 401 from them is returned as-is rather than refreshed.
    """

    def __init__(
        self,
        client: ApiClient,
        identity_path: str = IDENTITY_EXCHANGE_PATH,
        login_path: str = LOGIN_PATH,
        retry_policy: Union[RetryPolicy, str] = NO_RETRY_POLICY,
    ):
        self.client = client
        self.identity_path = identity_path
        self.login_path = login_path
        self.retry_policy = retry_policy

    @property
    def is_authenticated(self) -> bool:
        return self.client.store.has_valid_tokens()

    async def _sign_in(self, path: str, payload: dict) -> Outcome:
        endpoint = Endpoint.json(path, payload, requires_auth=False)
        outcome = await self.client.call(endpoint, _decode_auth, retry_policy=self.retry_policy)
        if isinstance(outcome, Success):
            result: AuthResult = outcome.value
            if not self.client.store.save(result.access_token, result.refresh_token):
                return Malformed("credential store refused the new tokens", outcome.status)
        return outcome

    async def exchange_identity_token(self, id_token: str) -> Outcome:
        """Trade an identity-provider token for backend credentials."""
        if not id_token:
            raise ValueError("id_token is required")
        return await self._sign_in(self.identity_path, {"idToken": id_token})

    async def login(self, email: str, password: str) -> Outcome:
        return await self._sign_in(self.login_path, {"email": email, "password": password})

    async def refresh(self) -> Union[CredentialPair, RefreshError]:
        """Force an exchange now; returns the new pair or why it failed."""
        return await self.client.refresher.refresh()

    def sign_out(self) -> None:
        self.client.store.clear()
