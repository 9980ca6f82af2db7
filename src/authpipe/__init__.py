from .adapters import (
    AiohttpTransport,
    HttpxTransport,
    RequestsTransport,
    Transport,
    TransportError,
    TransportResponse,
)
from .classifier import classify
from .client import ApiClient
from .env import load_client_config_from_env, load_credentials_from_env
from .executor import RequestExecutor, RetryingRequestExecutor
from .outcomes import (
    ClientError,
    Malformed,
    Outcome,
    RateLimited,
    ServerError,
    Success,
    TransportFailure,
    Unauthorized,
)
from .policies import (
    AGGRESSIVE_POLICY,
    CONSERVATIVE_POLICY,
    DEFAULT_POLICY,
    RetryPolicy,
    coerce_policy,
)
from .refresher import RefreshError, RefreshFailure, TokenRefresher
from .session import AuthSession
from .state import AttemptPhase, AttemptState
from .store import CredentialStore, InMemoryCredentialStore
from .types import AuthConfig, ClientConfig, CredentialPair, Endpoint, HTTPMethod

__all__ = [
    "ApiClient",
    "AuthSession",
    "ClientConfig",
    "AuthConfig",
    "Endpoint",
    "HTTPMethod",
    "CredentialPair",
    "CredentialStore",
    "InMemoryCredentialStore",
    "Transport",
    "TransportError",
    "TransportResponse",
    "HttpxTransport",
    "AiohttpTransport",
    "RequestsTransport",
    "Outcome",
    "Success",
    "Unauthorized",
    "RateLimited",
    "ClientError",
    "ServerError",
    "TransportFailure",
    "Malformed",
    "classify",
    "RetryPolicy",
    "DEFAULT_POLICY",
    "AGGRESSIVE_POLICY",
    "CONSERVATIVE_POLICY",
    "coerce_policy",
    "RequestExecutor",
    "RetryingRequestExecutor",
    "TokenRefresher",
    "RefreshError",
    "RefreshFailure",
    "AttemptPhase",
    "AttemptState",
    "load_client_config_from_env",
    "load_credentials_from_env",
]
