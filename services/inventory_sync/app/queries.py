"""
Inventory Sync Service — クエリ (リモートストアの Read 側)

すべて名前付き GraphQL オペレーションとして発行する。
"""

import logging
from decimal import Decimal, InvalidOperation

from pydantic import ValidationError

from .config import METAFIELD_NAMESPACE, PROCESSED_KEY, STARTER_VARIANT_KEY
from .errors import GraphQLError
from .models import ProductNode, ProductPage, VariantNode
from .store_client import ShopifyClient, to_gid

logger = logging.getLogger(__name__)

PRODUCTS_PAGE_SIZE = 20
VARIANTS_PER_PRODUCT = 250


PRIMARY_LOCATION = """
query PrimaryLocation {
  locations(first: 1) {
    edges { node { id } }
  }
}
"""

ORDER_PROCESSED_MARKER = """
query OrderProcessedMarker($id: ID!, $namespace: String!, $key: String!) {
  order(id: $id) {
    metafield(namespace: $namespace, key: $key) { value }
  }
}
"""

VARIANT_STARTER_POINTER = """
query VariantStarterPointer($id: ID!, $namespace: String!, $key: String!) {
  productVariant(id: $id) {
    id
    metafield(namespace: $namespace, key: $key) { value }
  }
}
"""

VARIANT_INVENTORY_ITEM = """
query VariantInventoryItem($id: ID!) {
  productVariant(id: $id) {
    id
    inventoryItem { id }
  }
}
"""

FIRST_VARIANT = """
query FirstVariant($id: ID!) {
  product(id: $id) {
    variants(first: 1) {
      edges { node { id price inventoryItem { id } } }
    }
  }
}
"""

VARIANT_PRICE = """
query VariantPrice($id: ID!) {
  productVariant(id: $id) { id price }
}
"""

PRODUCTS_PAGE = """
query ProductsPage($cursor: String, $first: Int!, $variantsFirst: Int!) {
  products(first: $first, after: $cursor) {
    edges {
      node {
        id
        variants(first: $variantsFirst) {
          edges {
            node {
              id
              title
              createdAt
              selectedOptions { value }
            }
          }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

SHOP_NAME = """
query ShopName {
  shop { name }
}
"""


def _edges(connection: dict | None) -> list[dict]:
    if not connection:
        return []
    return [edge["node"] for edge in connection.get("edges") or [] if edge.get("node")]


async def get_primary_location_id(client: ShopifyClient) -> str:
    data = await client.query(PRIMARY_LOCATION)
    nodes = _edges(data.get("locations"))
    if not nodes:
        raise GraphQLError([{"message": "store has no locations"}])
    location_id = nodes[0]["id"]
    logger.info("Using location %s", location_id)
    return location_id


async def is_order_processed(client: ShopifyClient, order_id: str | int) -> bool:
    data = await client.query(
        ORDER_PROCESSED_MARKER,
        {"id": to_gid("Order", order_id), "namespace": METAFIELD_NAMESPACE, "key": PROCESSED_KEY},
    )
    order = data.get("order")
    if order is None:
        raise GraphQLError([{"message": f"order {order_id} not visible to the store"}])
    return order.get("metafield") is not None


async def get_starter_pointer(client: ShopifyClient, variant_id: str | int) -> str | None:
    """
    一時バリアントに付与された starter_variant_id メタフィールドを読む。
    バリアントが既に削除されている場合も None を返す。
    """
    data = await client.query(
        VARIANT_STARTER_POINTER,
        {
            "id": to_gid("ProductVariant", variant_id),
            "namespace": METAFIELD_NAMESPACE,
            "key": STARTER_VARIANT_KEY,
        },
    )
    variant = data.get("productVariant")
    if not variant or not variant.get("metafield"):
        return None
    value = (variant["metafield"].get("value") or "").strip()
    return value or None


async def get_variant_inventory_item(client: ShopifyClient, variant_id: str | int) -> str | None:
    data = await client.query(VARIANT_INVENTORY_ITEM, {"id": to_gid("ProductVariant", variant_id)})
    variant = data.get("productVariant")
    if not variant or not variant.get("inventoryItem"):
        return None
    return variant["inventoryItem"].get("id")


async def get_first_variant(client: ShopifyClient, product_id: str | int) -> dict | None:
    """ストアの並び順で先頭のバリアント {id, price, inventoryItem} を返す。"""
    data = await client.query(FIRST_VARIANT, {"id": to_gid("Product", product_id)})
    nodes = _edges((data.get("product") or {}).get("variants"))
    return nodes[0] if nodes else None


async def get_variant_price(client: ShopifyClient, variant_id: str | int) -> Decimal | None:
    data = await client.query(VARIANT_PRICE, {"id": to_gid("ProductVariant", variant_id)})
    variant = data.get("productVariant")
    if not variant:
        return None
    return parse_price(variant.get("price"))


def parse_price(raw) -> Decimal | None:
    try:
        return Decimal(str(raw))
    except (InvalidOperation, TypeError):
        return None


async def list_products_page(client: ShopifyClient, cursor: str | None) -> ProductPage:
    data = await client.query(
        PRODUCTS_PAGE,
        {"cursor": cursor, "first": PRODUCTS_PAGE_SIZE, "variantsFirst": VARIANTS_PER_PRODUCT},
    )
    connection = data.get("products") or {}
    try:
        products = [
            ProductNode(
                id=node["id"],
                variants=[
                    VariantNode(
                        id=v["id"],
                        title=v.get("title") or "",
                        created_at=v["createdAt"],
                        option_values=[o.get("value") or "" for o in v.get("selectedOptions") or []],
                    )
                    for v in _edges(node.get("variants"))
                ],
            )
            for node in _edges(connection)
        ]
        page_info = connection.get("pageInfo") or {}
    except (KeyError, TypeError, AttributeError, ValidationError) as e:
        raise GraphQLError([{"message": f"unexpected catalog page shape: {e}"}]) from e
    return ProductPage(
        products=products,
        has_next_page=bool(page_info.get("hasNextPage")),
        end_cursor=page_info.get("endCursor"),
    )


async def get_shop_name(client: ShopifyClient) -> str:
    data = await client.query(SHOP_NAME)
    return (data.get("shop") or {}).get("name", "")


PRODUCT_OPTIONS = """
query ProductOptions($id: ID!) {
  product(id: $id) {
    id
    options { id name }
  }
}
"""


async def get_product_options(client: ShopifyClient, product_id: str | int) -> list[dict] | None:
    data = await client.query(PRODUCT_OPTIONS, {"id": to_gid("Product", product_id)})
    product = data.get("product")
    if product is None:
        return None
    return product.get("options") or []
