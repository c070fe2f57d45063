"""
Inventory Sync Service — 一時バリアント退避エンジン

商品ごとの一時バリアント数を上限 (ceiling) 以下に保つ。

  1. タイトル／オプション値が "<ラベル> | <数値> mm" 形式なら一時バリアント
  2. 件数が上限以下なら何もしない
  3. 超過数 = 件数 - 上限
  4. 作成からバッファ時間を超えたものだけを候補にする
     （どれだけ超過していても若いバリアントは消さない）
  5. 作成日時の古い順に並べ、先頭から超過数だけ削除する

スケジュール実行は外部（cron）が担う。カタログはカーソルで全ページ走査し、
ページ取得が失敗したら sweep 全体を失敗させる。途中経過は保存しない。
削除は冪等なので、再実行すれば収束する。
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from . import commands, queries
from .config import Settings
from .dimensions import is_temporary_title
from .errors import StoreError, UpstreamFailure, UserErrorsError
from .events import VariantsEvicted
from .journal import Journal
from .models import ProductNode, VariantNode
from .store_client import ShopifyClient

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    deleted: int = 0
    products_scanned: int = 0


def is_temporary_variant(variant: VariantNode) -> bool:
    return is_temporary_title(variant.title) or any(
        is_temporary_title(v) for v in variant.option_values
    )


def plan_evictions(
    variants: list[VariantNode],
    ceiling: int,
    buffer: timedelta,
    now: datetime,
) -> list[VariantNode]:
    temporary = [v for v in variants if is_temporary_variant(v)]
    if len(temporary) <= ceiling:
        return []

    excess = len(temporary) - ceiling
    eligible = sorted(
        (v for v in temporary if now - v.created_at > buffer),
        key=lambda v: v.created_at,
    )
    return eligible[:excess]


class EvictionEngine:
    def __init__(
        self,
        settings: Settings,
        client: ShopifyClient,
        journal: Journal | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.ceiling = settings.max_temp_variants
        self.buffer = timedelta(minutes=settings.buffer_minutes)
        self.client = client
        self.journal = journal
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def sweep(self) -> SweepResult:
        logger.info(
            "Variant cleanup job started (ceiling=%d, buffer=%s)", self.ceiling, self.buffer
        )
        result = SweepResult()
        cursor: str | None = None
        seen_cursors: set[str] = set()

        while True:
            try:
                page = await queries.list_products_page(self.client, cursor)
            except StoreError as e:
                raise UpstreamFailure(f"Product listing failed: {e}") from e

            for product in page.products:
                result.products_scanned += 1
                result.deleted += await self._cleanup_product(product)

            if not page.has_next_page:
                break
            if not page.end_cursor or page.end_cursor in seen_cursors:
                raise UpstreamFailure("Product pagination did not advance")
            seen_cursors.add(page.end_cursor)
            cursor = page.end_cursor

        logger.info(
            "Variant cleanup completed: %d deleted across %d products",
            result.deleted,
            result.products_scanned,
        )
        return result

    async def _cleanup_product(self, product: ProductNode) -> int:
        now = self.clock()
        temporary_count = sum(1 for v in product.variants if is_temporary_variant(v))
        if temporary_count <= self.ceiling:
            return 0

        logger.info("Product %s has %d temporary variants", product.id, temporary_count)
        to_delete = plan_evictions(product.variants, self.ceiling, self.buffer, now)
        if not to_delete:
            logger.info("No variants of %s eligible for deletion yet (buffer time)", product.id)
            return 0

        ids = [v.id for v in to_delete]
        try:
            await commands.delete_variants(self.client, product.id, ids)
        except UserErrorsError as e:
            logger.warning("Bulk delete for %s reported user errors, skipping: %s", product.id, e)
            return 0
        except StoreError as e:
            raise UpstreamFailure(f"Variant deletion failed for {product.id}: {e}") from e

        logger.info("Deleted %d variants of %s: %s", len(ids), product.id, ids)
        if self.journal is not None:
            await self.journal.record(
                product.id,
                "Product",
                VariantsEvicted(
                    product_id=product.id,
                    variant_ids=ids,
                    temporary_count=temporary_count,
                    ceiling=self.ceiling,
                    timestamp=now,
                ),
            )
        return len(ids)
