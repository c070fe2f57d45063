"""
Unit Tests for the Shopify GraphQL client, using httpx.MockTransport
"""

import json

import httpx
import pytest

from app.errors import GraphQLError, TransportError, UserErrorsError
from app.store_client import ShopifyClient, check_user_errors, strip_gid, to_gid

URL = "https://test-shop.myshopify.com/admin/api/2024-04/graphql.json"


def client_for(handler) -> tuple[ShopifyClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ShopifyClient(http, URL, "shpat_test"), http


class TestGlobalIds:
    def test_to_gid(self):
        assert to_gid("Order", 1001) == "gid://shopify/Order/1001"
        assert to_gid("Order", "gid://shopify/Order/1001") == "gid://shopify/Order/1001"

    def test_strip_gid(self):
        assert strip_gid("gid://shopify/ProductVariant/42") == "42"
        assert strip_gid(" 42 ") == "42"


class TestCheckUserErrors:
    def test_empty_list_passes(self):
        payload = {"userErrors": [], "product": {"id": "p"}}
        assert check_user_errors("op", payload) is payload

    def test_errors_raise(self):
        with pytest.raises(UserErrorsError) as exc:
            check_user_errors("op", {"userErrors": [{"field": ["x"], "message": "nope"}]})
        assert exc.value.user_errors[0]["message"] == "nope"

    def test_missing_payload_raises(self):
        with pytest.raises(UserErrorsError):
            check_user_errors("op", None)


class TestShopifyClient:
    @pytest.mark.asyncio
    async def test_posts_query_with_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["token"] = request.headers["X-Shopify-Access-Token"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"shop": {"name": "Test"}}})

        client, http = client_for(handler)
        data = await client.query("query ShopName { shop { name } }", {"a": 1})
        await http.aclose()

        assert data == {"shop": {"name": "Test"}}
        assert seen["token"] == "shpat_test"
        assert seen["body"]["variables"] == {"a": 1}

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        client, http = client_for(
            lambda r: httpx.Response(200, json={"errors": [{"message": "Throttled"}]})
        )
        with pytest.raises(GraphQLError):
            await client.query("query X { shop { name } }")
        await http.aclose()

    @pytest.mark.asyncio
    async def test_http_error_is_transport_error(self):
        client, http = client_for(lambda r: httpx.Response(502, text="bad gateway"))
        with pytest.raises(TransportError):
            await client.mutate("mutation X { a }")
        await http.aclose()

    @pytest.mark.asyncio
    async def test_non_json_is_transport_error(self):
        client, http = client_for(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(TransportError):
            await client.query("query X { a }")
        await http.aclose()

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client, http = client_for(handler)
        with pytest.raises(TransportError):
            await client.query("query X { a }")
        await http.aclose()
