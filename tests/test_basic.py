import pytest

from authpipe import ApiClient, ClientConfig, HttpxTransport, InMemoryCredentialStore


def test_construct_with_defaults():
    client = ApiClient(ClientConfig("https://api.example.com/api/v1/"))
    assert isinstance(client.store, InMemoryCredentialStore)
    assert isinstance(client.transport, HttpxTransport)
    assert client.config.base_url == "https://api.example.com/api/v1"


@pytest.mark.asyncio
async def test_construct_async_context():
    async with ApiClient(ClientConfig("https://api.example.com"), transport="aiohttp") as client:
        assert client.default_policy.max_retries == 3  # noqa: PLR2004


def test_bad_config_rejected():
    with pytest.raises(ValueError):
        ClientConfig("")
    with pytest.raises(ValueError):
        ClientConfig("https://api.example.com", timeout=0)
    with pytest.raises(ValueError):
        ApiClient(ClientConfig("https://api.example.com", retry_policy="reckless"))
