import os
from collections.abc import Mapping

from .types import AuthConfig, ClientConfig, CredentialPair

DEFAULT_PREFIX = "AUTHPIPE_"


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export ") :].lstrip()
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        # a missing .env is the common case in production
        pass
    return values


def _env_map(env_path: str | None) -> dict[str, str]:
    # actual environment takes precedence over the .env file
    file_env = _parse_env_file(env_path) if env_path else {}
    return {**file_env, **os.environ}


def _lookup(env: Mapping[str, str], prefix: str, name: str) -> str | None:
    value = env.get(f"{prefix}{name}")
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_client_config_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: str | None = None,
    **overrides,
) -> ClientConfig:
    """Build a ClientConfig from ``{prefix}*`` variables.

    Recognised names (after the prefix): BASE_URL (required unless passed in
    ``overrides``), TIMEOUT, RETRY_POLICY, AUTH_HEADER, AUTH_SCHEME,
    AUTH_PATH_MARKER, REFRESH_PATH. Keyword overrides win over both sources.
    """
    env = _env_map(env_path)

    base_url = overrides.pop("base_url", None) or _lookup(env, prefix, "BASE_URL")
    if not base_url:
        raise ValueError(f"{prefix}BASE_URL is not set")

    timeout_raw = _lookup(env, prefix, "TIMEOUT")
    try:
        timeout = float(overrides.pop("timeout", timeout_raw or 30.0))
    except ValueError:
        raise ValueError(f"{prefix}TIMEOUT must be a number, got {timeout_raw!r}") from None

    defaults = AuthConfig()
    auth = overrides.pop("auth", None) or AuthConfig(
        header=_lookup(env, prefix, "AUTH_HEADER") or defaults.header,
        scheme=_lookup(env, prefix, "AUTH_SCHEME") or defaults.scheme,
        auth_path_marker=_lookup(env, prefix, "AUTH_PATH_MARKER") or defaults.auth_path_marker,
        refresh_path=_lookup(env, prefix, "REFRESH_PATH") or defaults.refresh_path,
    )
    retry_policy = overrides.pop("retry_policy", None) or _lookup(env, prefix, "RETRY_POLICY")
    if overrides:
        raise TypeError(f"unexpected overrides: {sorted(overrides)}")
    return ClientConfig(
        base_url=base_url,
        timeout=timeout,
        auth=auth,
        retry_policy=retry_policy or "default",
    )


def load_credentials_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: str | None = None,
) -> CredentialPair | None:
    """Seed credentials from ``{prefix}ACCESS_TOKEN`` / ``{prefix}REFRESH_TOKEN``.

    Both must be present; a lone token is ignored, since a partial pair is
    never stored.
    """
    env = _env_map(env_path)
    access = _lookup(env, prefix, "ACCESS_TOKEN")
    refresh = _lookup(env, prefix, "REFRESH_TOKEN")
    if not (access and refresh):
        return None
    return CredentialPair(access, refresh)
