"""
Inventory Sync Service — 一時バリアントの作成

ストアフロントで寸法を選んだ時点で、その寸法を表す一時バリアントを作る。
価格は元バリアントの単価（m または m² あたり）から算出し、
在庫は持たせない（在庫ポリシー CONTINUE、在庫 0）。
元バリアントへのポインタをメタフィールドに残し、支払い後の照合で使う。
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from . import commands, queries
from .config import Settings
from .dimensions import build_variant_label, unit_price
from .errors import Malformed, NotFound, StoreError, UpstreamFailure
from .events import TemporaryVariantCreated
from .journal import Journal
from .store_client import ShopifyClient, to_gid

logger = logging.getLogger(__name__)

DEFAULT_OPTION_NAME = "Title"
DIMENSION_OPTION_NAME = "Size"


@dataclass
class ProvisionedVariant:
    variant_id: str
    starter_variant_id: str
    label: str
    price: Decimal


def _positive(value: Decimal | None, name: str) -> Decimal | None:
    if value is None:
        return None
    if not value.is_finite() or value <= 0:
        raise Malformed(f"{name} must be a positive number of millimetres")
    return value


class VariantProvisioner:
    def __init__(
        self,
        settings: Settings,
        client: ShopifyClient,
        journal: Journal | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.journal = journal
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def provision(
        self,
        product_id: str,
        length_mm: Decimal | None = None,
        width_mm: Decimal | None = None,
        length_label: str = "Length",
        width_label: str = "Width",
        starter_variant_id: str | None = None,
    ) -> ProvisionedVariant:
        length_mm = _positive(length_mm, "length_mm")
        width_mm = _positive(width_mm, "width_mm")
        if length_mm is None and width_mm is None:
            raise Malformed("Missing dimension (length_mm or width_mm)")

        product_gid = to_gid("Product", product_id)
        label = build_variant_label(length_mm, width_mm, length_label, width_label)

        try:
            starter_gid, base_price = await self._starter(product_gid, starter_variant_id)
            option_name = await self._dimension_option(product_gid)
            location_id = await queries.get_primary_location_id(self.client)
            price = unit_price(base_price, length_mm, width_mm)
            variant = await commands.create_temporary_variant(
                self.client, product_gid, option_name, label, price, location_id, starter_gid
            )
        except StoreError as e:
            raise UpstreamFailure(f"Variant creation failed for {product_gid}: {e}") from e

        logger.info("Created temporary variant %s (%s) at %s", variant["id"], label, price)
        if self.journal is not None:
            await self.journal.record(
                product_gid,
                "Product",
                TemporaryVariantCreated(
                    product_id=product_gid,
                    variant_id=variant["id"],
                    starter_variant_id=starter_gid,
                    label=label,
                    price=str(price),
                    timestamp=self.clock(),
                ),
            )
        return ProvisionedVariant(
            variant_id=variant["id"], starter_variant_id=starter_gid, label=label, price=price
        )

    async def _starter(self, product_gid: str, starter_variant_id: str | None) -> tuple[str, Decimal]:
        if starter_variant_id:
            starter_gid = to_gid("ProductVariant", starter_variant_id)
            price = await queries.get_variant_price(self.client, starter_gid)
        else:
            first = await queries.get_first_variant(self.client, product_gid)
            if first is None:
                raise NotFound(f"Product {product_gid} has no variants")
            starter_gid = first["id"]
            price = queries.parse_price(first.get("price"))
        if price is None:
            raise NotFound(f"Starter variant {starter_gid} has no usable price")
        return starter_gid, price

    async def _dimension_option(self, product_gid: str) -> str:
        """商品が既定の Title オプションしか持たなければ Size に改名して使う。"""
        options = await queries.get_product_options(self.client, product_gid)
        if options is None:
            raise NotFound(f"Product {product_gid} not found")
        if not options:
            return DIMENSION_OPTION_NAME
        if len(options) == 1 and options[0].get("name") == DEFAULT_OPTION_NAME:
            await commands.rename_option(
                self.client, product_gid, options[0]["id"], DIMENSION_OPTION_NAME
            )
            return DIMENSION_OPTION_NAME
        return options[0]["name"]
