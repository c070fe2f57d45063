"""
Inventory Sync Service — リモートストア (Shopify Admin GraphQL) クライアント

  query()   → data を返す。errors があれば GraphQLError
  mutate()  → data を返す。ミューテーション結果の userErrors は
              呼び出し側が check_user_errors() で明示的に確認する
              （通信エラーが無いことは成功を意味しない）

タイムアウトは httpx クライアント側の設定に従う。
"""

import logging

import httpx

from .errors import GraphQLError, TransportError, UserErrorsError

logger = logging.getLogger(__name__)

GID_PREFIX = "gid://shopify/"


def to_gid(resource: str, value: str | int) -> str:
    """数値 ID をグローバル ID に変換する。既に gid ならそのまま返す。"""
    text = str(value).strip()
    if text.startswith(GID_PREFIX):
        return text
    return f"{GID_PREFIX}{resource}/{text}"


def strip_gid(value: str) -> str:
    """'gid://shopify/ProductVariant/123' → '123'"""
    text = str(value).strip()
    if text.startswith(GID_PREFIX):
        return text.rsplit("/", 1)[-1]
    return text


def check_user_errors(operation: str, payload: dict | None) -> dict:
    if payload is None:
        raise UserErrorsError(operation, [{"message": "empty mutation payload"}])
    errors = payload.get("userErrors") or []
    if errors:
        raise UserErrorsError(operation, errors)
    return payload


class ShopifyClient:
    def __init__(self, http: httpx.AsyncClient, graphql_url: str, access_token: str) -> None:
        self.http = http
        self.graphql_url = graphql_url
        self.access_token = access_token

    async def _execute(self, document: str, variables: dict | None) -> dict:
        try:
            resp = await self.http.post(
                self.graphql_url,
                headers={
                    "X-Shopify-Access-Token": self.access_token,
                    "Content-Type": "application/json",
                },
                json={"query": document, "variables": variables or {}},
            )
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as e:
            raise TransportError(str(e)) from e
        except ValueError as e:
            raise TransportError(f"Non-JSON response from store: {e}") from e

        if not isinstance(body, dict):
            raise TransportError("Unexpected response shape from store")
        if body.get("errors"):
            logger.error("Shopify GraphQL errors: %s", body["errors"])
            raise GraphQLError(body["errors"])
        data = body.get("data")
        if data is None:
            raise GraphQLError([{"message": "response carried no data"}])
        return data

    async def query(self, document: str, variables: dict | None = None) -> dict:
        return await self._execute(document, variables)

    async def mutate(self, document: str, variables: dict | None = None) -> dict:
        return await self._execute(document, variables)
