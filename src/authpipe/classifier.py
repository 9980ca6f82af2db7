"""Map a raw HTTP status and body onto one :mod:`authpipe.outcomes` value.

Backend error payloads are not guaranteed to follow a single schema, so
every error branch degrades through a chain of progressively looser parsers
instead of raising.
"""

import dataclasses
import email.utils as eut
import json
import math
import time
from collections.abc import Callable, Mapping
from typing import Any, Union

from .outcomes import (
    ClientError,
    Malformed,
    Outcome,
    RateLimited,
    ServerError,
    Success,
    Unauthorized,
)

GENERIC_RATE_LIMIT_MESSAGE = "Rate limit exceeded"
GENERIC_CLIENT_ERROR_MESSAGE = "Request error"
GENERIC_SERVER_ERROR_MESSAGE = "Server error"

Decoder = Union[Callable[[Any], Any], type, None]


class _Undecodable(Exception):
    pass


def _parse_json(body: bytes) -> Any:
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise _Undecodable(f"invalid JSON: {e}") from e


def decode_payload(payload: Any, decode: Decoder) -> Any:
    """Apply the caller's result shape to an already-parsed JSON value."""
    if decode is None:
        return payload
    if dataclasses.is_dataclass(decode) and isinstance(decode, type):
        if not isinstance(payload, Mapping):
            raise TypeError(f"expected a JSON object for {decode.__name__}")
        names = {f.name for f in dataclasses.fields(decode) if f.init}
        return decode(**{k: v for k, v in payload.items() if k in names})
    return decode(payload)


def parse_retry_after_header(headers: Union[Mapping[str, str], None], now: float) -> float | None:
    if not headers:
        return None
    ra = None
    for k, v in headers.items():
        if k.lower() == "retry-after":
            ra = v
            break
    if ra is None:
        return None
    try:
        return max(0.0, float(ra))
    except ValueError:
        # HTTP-date per RFC 7231
        try:
            ts = eut.parsedate_to_datetime(ra)
        except (TypeError, ValueError):
            return None
        if ts is None:
            return None
        # round up so a short wait is never cut below what the server asked for
        return max(0.0, float(math.ceil(ts.timestamp() - now)))


def _structured_error_message(payload: Any) -> str | None:
    # {code, message}
    if (
        isinstance(payload, dict)
        and isinstance(payload.get("code"), (str, int))
        and isinstance(payload.get("message"), str)
    ):
        return payload["message"]
    return None


def _scan_message(payload: Any) -> str | None:
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return None


def extract_error_message(body: bytes, generic: str) -> str:
    try:
        payload = _parse_json(body)
    except _Undecodable:
        return generic
    return _structured_error_message(payload) or _scan_message(payload) or generic


def _rate_limit_body(body: bytes) -> tuple[str, float] | None:
    # {error, message, retryAfter}
    try:
        payload = _parse_json(body)
    except _Undecodable:
        return None
    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    retry_after = payload.get("retryAfter")
    if not isinstance(message, str):
        return None
    if isinstance(retry_after, bool) or not isinstance(retry_after, (int, float)):
        return None
    if retry_after < 0 or not math.isfinite(retry_after):
        return None
    return message, float(retry_after)


def classify(
    status_code: int,
    body: bytes,
    decode: Decoder = None,
    headers: Union[Mapping[str, str], None] = None,
    now: Union[float, None] = None,
) -> Outcome:
    body = body or b""
    if 200 <= status_code <= 299:  # noqa: PLR2004
        return _classify_success(status_code, body, decode)
    if status_code == 401:  # noqa: PLR2004
        return Unauthorized()
    if status_code == 429:  # noqa: PLR2004
        parsed = _rate_limit_body(body)
        if parsed is not None:
            return RateLimited(parsed[0], parsed[1])
        hint = parse_retry_after_header(headers, time.time() if now is None else now)
        return RateLimited(GENERIC_RATE_LIMIT_MESSAGE, hint)
    if 400 <= status_code <= 499:  # noqa: PLR2004
        return ClientError(status_code, extract_error_message(body, GENERIC_CLIENT_ERROR_MESSAGE))
    if 500 <= status_code <= 599:  # noqa: PLR2004
        return ServerError(status_code, extract_error_message(body, GENERIC_SERVER_ERROR_MESSAGE))
    return Malformed(f"unexpected status {status_code}", status_code)


def _classify_success(status_code: int, body: bytes, decode: Decoder) -> Outcome:
    if status_code == 204 or (not body.strip() and decode is None):  # noqa: PLR2004
        return Success(None, status_code)
    try:
        payload = _parse_json(body)
        return Success(decode_payload(payload, decode), status_code)
    except _Undecodable as e:
        return Malformed(str(e), status_code)
    except (TypeError, ValueError, KeyError) as e:
        return Malformed(f"could not decode result: {e}", status_code)
