"""
Unit tests for the identity provider client, using httpx.MockTransport.
"""
from __future__ import annotations

import httpx
import pytest

from store_api.errors import Unauthorized
from store_api.services.identity import HostedIdentityProvider, parse_bearer


def _provider(handler) -> HostedIdentityProvider:
    return HostedIdentityProvider(
        base_url="http://identity.test/",
        api_key="anon-key",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_resolve_returns_user_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(200, json={"id": "user-42", "email": "a@b.c"})

    user_id = await _provider(handler).resolve("tok")

    assert user_id == "user-42"
    assert seen == {
        "url": "http://identity.test/auth/v1/user",
        "auth": "Bearer tok",
        "apikey": "anon-key",
    }


@pytest.mark.asyncio
async def test_rejected_token_is_unauthorized():
    provider = _provider(lambda request: httpx.Response(401, json={"msg": "invalid JWT"}))

    with pytest.raises(Unauthorized):
        await provider.resolve("expired")


@pytest.mark.asyncio
async def test_response_without_id_is_unauthorized():
    provider = _provider(lambda request: httpx.Response(200, json={"user": None}))

    with pytest.raises(Unauthorized):
        await provider.resolve("tok")


@pytest.mark.asyncio
async def test_non_json_response_is_unauthorized():
    provider = _provider(lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(Unauthorized):
        await provider.resolve("tok")


@pytest.mark.asyncio
async def test_transport_error_is_unauthorized():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(Unauthorized):
        await _provider(handler).resolve("tok")


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer", "Bearer   "])
def test_parse_bearer_rejects_malformed_headers(header):
    with pytest.raises(Unauthorized):
        parse_bearer(header)


def test_parse_bearer_extracts_token():
    assert parse_bearer("Bearer abc.def.ghi") == "abc.def.ghi"
