import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

JSON_MEDIA_TYPE = "application/json"


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass(frozen=True)
class CredentialPair:
    access_token: str
    refresh_token: str

    def __repr__(self) -> str:
        # never leak token material into logs or tracebacks
        return "CredentialPair(access_token=***, refresh_token=***)"


HeaderInput = Union[Mapping[str, str], Iterable[tuple[str, str]], None]


def _coerce_headers(headers: HeaderInput) -> tuple[tuple[str, str], ...]:
    if headers is None:
        return ()
    items = headers.items() if isinstance(headers, Mapping) else headers
    out = []
    for item in items:
        name, value = item
        if not isinstance(name, str) or not isinstance(value, str):
            raise TypeError("extra_headers names and values must be str")
        out.append((name, value))
    return tuple(out)


@dataclass(frozen=True)
class Endpoint:
    """One logical backend call.

    ``extra_headers`` keeps the caller's order; when the wire request is built
    they are applied after the JSON content-negotiation defaults, so a caller
    header with the same (case-insensitive) name replaces the default.
    """

    path: str
    method: HTTPMethod = HTTPMethod.GET
    body: bytes | None = None
    extra_headers: tuple[tuple[str, str], ...] = ()
    requires_auth: bool = True

    def __post_init__(self):
        if not isinstance(self.path, str) or not self.path.startswith("/"):
            raise ValueError(f"Endpoint path must start with '/': {self.path!r}")
        try:
            method = HTTPMethod(str(getattr(self.method, "value", self.method)).upper())
        except ValueError:
            raise ValueError(
                f"Unsupported method {self.method!r}; use GET, POST, PUT or DELETE"
            ) from None
        object.__setattr__(self, "method", method)
        if self.body is not None and not isinstance(self.body, (bytes, bytearray)):
            raise TypeError("Endpoint body must be bytes or None; use Endpoint.json for payloads")
        if isinstance(self.body, bytearray):
            object.__setattr__(self, "body", bytes(self.body))
        object.__setattr__(self, "extra_headers", _coerce_headers(self.extra_headers))

    @classmethod
    def json(
        cls,
        path: str,
        payload: Any,
        method: Union[HTTPMethod, str] = HTTPMethod.POST,
        extra_headers: HeaderInput = None,
        requires_auth: bool = True,
    ) -> "Endpoint":
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return cls(
            path=path,
            method=method,
            body=body,
            extra_headers=_coerce_headers(extra_headers),
            requires_auth=requires_auth,
        )

    def with_auth(self, requires_auth: bool) -> "Endpoint":
        if requires_auth == self.requires_auth:
            return self
        return Endpoint(self.path, self.method, self.body, self.extra_headers, requires_auth)


@dataclass(frozen=True)
class AuthConfig:
    header: str = "Authorization"
    scheme: str = "Bearer"
    # paths containing this marker are authentication endpoints and never carry a bearer
    auth_path_marker: str = "/auth/"
    refresh_path: str = "/auth/refresh"

    def is_auth_endpoint(self, path: str) -> bool:
        return bool(self.auth_path_marker) and self.auth_path_marker in path

    def header_value(self, token: str) -> str:
        return f"{self.scheme} {token}".strip()


@dataclass(frozen=True)
class ClientConfig:
    base_url: str
    timeout: float = 30.0
    auth: AuthConfig = field(default_factory=AuthConfig)
    # preset name or RetryPolicy instance; resolved by policies.coerce_policy
    retry_policy: object = "default"

    def __post_init__(self):
        if not self.base_url:
            raise ValueError("ClientConfig.base_url is required")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.timeout <= 0:
            raise ValueError("ClientConfig.timeout must be positive")

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"
