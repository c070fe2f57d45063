"""
Inventory Sync Service — コマンド (リモートストアの Write 側)

在庫は常に相対デルタで調整する（絶対値の set は使わない）。
他の経路からの同時調整と可換に保つため。

ミューテーションの userErrors は check_user_errors() で必ず確認する。
"""

import logging
from decimal import Decimal

from .config import METAFIELD_NAMESPACE, PROCESSED_KEY, STARTER_VARIANT_KEY
from .errors import UserErrorsError
from .store_client import ShopifyClient, check_user_errors, to_gid

logger = logging.getLogger(__name__)


ADJUST_INVENTORY = """
mutation AdjustInventory($input: InventoryAdjustQuantitiesInput!) {
  inventoryAdjustQuantities(input: $input) {
    inventoryAdjustmentGroup { createdAt }
    userErrors { field message }
  }
}
"""

SET_METAFIELD = """
mutation SetMetafield($input: MetafieldsSetInput!) {
  metafieldsSet(metafields: [$input]) {
    metafields { id }
    userErrors { field message }
  }
}
"""

DELETE_VARIANTS = """
mutation DeleteVariants($productId: ID!, $variantsIds: [ID!]!) {
  productVariantsBulkDelete(productId: $productId, variantsIds: $variantsIds) {
    product { id }
    userErrors { field message }
  }
}
"""

RENAME_OPTION = """
mutation RenameOption($productId: ID!, $option: OptionUpdateInput!) {
  productOptionUpdate(productId: $productId, option: $option) {
    product { id }
    userErrors { field message }
  }
}
"""

CREATE_VARIANT = """
mutation CreateVariant($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkCreate(productId: $productId, variants: $variants) {
    productVariants { id title inventoryItem { id } }
    userErrors { field message }
  }
}
"""

REGISTER_WEBHOOK = """
mutation RegisterWebhook($callbackUrl: URL!) {
  webhookSubscriptionCreate(
    topic: ORDERS_PAID
    webhookSubscription: { callbackUrl: $callbackUrl, format: JSON }
  ) {
    webhookSubscription { id }
    userErrors { field message }
  }
}
"""


async def adjust_inventory(
    client: ShopifyClient,
    inventory_item_id: str,
    location_id: str,
    delta: int,
) -> None:
    data = await client.mutate(
        ADJUST_INVENTORY,
        {
            "input": {
                "reason": "correction",
                "name": "available",
                "changes": [
                    {
                        "inventoryItemId": inventory_item_id,
                        "locationId": location_id,
                        "delta": delta,
                    }
                ],
            }
        },
    )
    check_user_errors("inventoryAdjustQuantities", data.get("inventoryAdjustQuantities"))
    logger.info("Adjusted inventory %s at %s by %d", inventory_item_id, location_id, delta)


async def mark_order_processed(client: ShopifyClient, order_id: str | int) -> None:
    """処理済みマーカーを立てる。一方向のフラグで解除操作は持たない。"""
    data = await client.mutate(
        SET_METAFIELD,
        {
            "input": {
                "namespace": METAFIELD_NAMESPACE,
                "key": PROCESSED_KEY,
                "value": "true",
                "type": "boolean",
                "ownerId": to_gid("Order", order_id),
            }
        },
    )
    check_user_errors("metafieldsSet", data.get("metafieldsSet"))
    logger.info("Order %s marked as processed", order_id)


async def delete_variants(client: ShopifyClient, product_id: str, variant_ids: list[str]) -> None:
    data = await client.mutate(
        DELETE_VARIANTS,
        {"productId": to_gid("Product", product_id), "variantsIds": variant_ids},
    )
    check_user_errors("productVariantsBulkDelete", data.get("productVariantsBulkDelete"))


async def rename_option(client: ShopifyClient, product_id: str | int, option_id: str, name: str) -> None:
    data = await client.mutate(
        RENAME_OPTION,
        {"productId": to_gid("Product", product_id), "option": {"id": option_id, "name": name}},
    )
    check_user_errors("productOptionUpdate", data.get("productOptionUpdate"))


async def create_temporary_variant(
    client: ShopifyClient,
    product_id: str | int,
    option_name: str,
    label: str,
    price: Decimal,
    location_id: str,
    starter_variant_gid: str,
) -> dict:
    """
    一時バリアントを作成する。

    - 在庫ポリシーは CONTINUE、配送ロケーションの在庫は 0
    - starter_variant_id メタフィールドで元バリアントを指す
    """
    data = await client.mutate(
        CREATE_VARIANT,
        {
            "productId": to_gid("Product", product_id),
            "variants": [
                {
                    "optionValues": [{"optionName": option_name, "name": label}],
                    "price": str(price),
                    "inventoryPolicy": "CONTINUE",
                    "inventoryQuantities": [{"availableQuantity": 0, "locationId": location_id}],
                    "metafields": [
                        {
                            "namespace": METAFIELD_NAMESPACE,
                            "key": STARTER_VARIANT_KEY,
                            "type": "single_line_text_field",
                            "value": starter_variant_gid,
                        }
                    ],
                }
            ],
        },
    )
    payload = check_user_errors("productVariantsBulkCreate", data.get("productVariantsBulkCreate"))
    variants = payload.get("productVariants") or []
    if not variants:
        raise UserErrorsError("productVariantsBulkCreate", [{"message": "no variant returned"}])
    return variants[0]


async def register_orders_paid_webhook(client: ShopifyClient, callback_url: str) -> str:
    data = await client.mutate(REGISTER_WEBHOOK, {"callbackUrl": callback_url})
    payload = check_user_errors("webhookSubscriptionCreate", data.get("webhookSubscriptionCreate"))
    subscription = payload.get("webhookSubscription") or {}
    return subscription.get("id", "")
