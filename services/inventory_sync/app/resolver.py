"""
Inventory Sync Service — バリアントリゾルバ

行アイテムが減算すべき在庫アイテム（元バリアントの在庫）を決める。
手掛かりは優先順に:

  ByAnnotation       購入された一時バリアントの starter_variant_id メタフィールド
  ByLegacyProperty   行アイテムのプロパティに埋め込まれた旧形式の ID
  ByFirstVariant     商品の先頭バリアント（アノテーション導入前の注文向け）

ByFirstVariant は元バリアントを経由せず、その場で在庫を減算して
Resolution.deducted=True を返す。呼び出し側は通常の減算を行わない。
"""

import logging
from dataclasses import dataclass

from . import commands, queries
from .errors import NotFound
from .models import LineItem
from .store_client import ShopifyClient, strip_gid, to_gid

logger = logging.getLogger(__name__)

LEGACY_STARTER_PROPERTIES = ("_starter_variant_id", "_starterVariantId")


@dataclass(frozen=True)
class ByAnnotation:
    variant_id: str


@dataclass(frozen=True)
class ByLegacyProperty:
    variant_id: str


@dataclass(frozen=True)
class ByFirstVariant:
    product_id: str | None


StarterSource = ByAnnotation | ByLegacyProperty | ByFirstVariant


@dataclass(frozen=True)
class Resolution:
    inventory_item_id: str
    source: StarterSource
    deducted: bool = False


def legacy_starter_id(item: LineItem) -> str | None:
    raw = item.property_value(*LEGACY_STARTER_PROPERTIES)
    if raw is None:
        return None
    value = strip_gid(raw)
    return value or None


class VariantResolver:
    def __init__(self, client: ShopifyClient) -> None:
        self.client = client

    async def locate_starter(self, item: LineItem) -> StarterSource:
        if item.variant_id is not None:
            pointer = await queries.get_starter_pointer(self.client, item.variant_id)
            if pointer:
                return ByAnnotation(pointer)

        legacy = legacy_starter_id(item)
        if legacy:
            return ByLegacyProperty(legacy)

        return ByFirstVariant(str(item.product_id) if item.product_id is not None else None)

    async def resolve(self, item: LineItem, location_id: str) -> Resolution:
        source = await self.locate_starter(item)

        if isinstance(source, (ByAnnotation, ByLegacyProperty)):
            starter_gid = to_gid("ProductVariant", source.variant_id)
            inventory_item_id = await queries.get_variant_inventory_item(self.client, starter_gid)
            if not inventory_item_id:
                raise NotFound(
                    f"Starter variant {starter_gid} for line item {item.id} has no inventory item"
                )
            logger.info(
                "Line item %s resolved via %s to %s", item.id, type(source).__name__, inventory_item_id
            )
            return Resolution(inventory_item_id, source)

        if isinstance(source, ByFirstVariant):
            return await self._deduct_first_variant(item, source, location_id)

        raise TypeError(f"Unhandled starter source: {source!r}")

    async def _deduct_first_variant(
        self, item: LineItem, source: ByFirstVariant, location_id: str
    ) -> Resolution:
        if source.product_id is None:
            raise NotFound(f"Line item {item.id} has no product to fall back to")

        first = await queries.get_first_variant(self.client, source.product_id)
        inventory_item_id = ((first or {}).get("inventoryItem") or {}).get("id")
        if not inventory_item_id:
            raise NotFound(f"Product {source.product_id} has no variant with an inventory item")

        logger.warning(
            "Line item %s has no starter reference, deducting first variant of product %s",
            item.id,
            source.product_id,
        )
        await commands.adjust_inventory(self.client, inventory_item_id, location_id, -item.quantity)
        return Resolution(inventory_item_id, source, deducted=True)
