from unittest.mock import MagicMock

import pytest

from authpipe import RequestsTransport, TransportError


@pytest.mark.asyncio
async def test_requests_send_runs_session_request():
    sess = MagicMock()
    resp = MagicMock()
    resp.status_code = 200
    resp.content = b"[]"
    resp.headers = {"Content-Type": "application/json"}
    sess.request.return_value = resp

    out = await RequestsTransport(session=sess).send(
        "DELETE", "https://example.com/d", {"Accept": "application/json"}, None, 2.0
    )
    assert out.status_code == 200  # noqa: PLR2004
    assert out.body == b"[]"
    args, kwargs = sess.request.call_args
    assert args == ("DELETE", "https://example.com/d")
    assert kwargs["timeout"] == 2.0  # noqa: PLR2004
    assert kwargs["data"] is None


@pytest.mark.asyncio
async def test_requests_exceptions_are_wrapped():
    import requests  # noqa: PLC0415

    sess = MagicMock()
    sess.request.side_effect = requests.ConnectionError("dns")
    with pytest.raises(TransportError):
        await RequestsTransport(session=sess).send("GET", "https://example.com", {}, None, 1.0)
