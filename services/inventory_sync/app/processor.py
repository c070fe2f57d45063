"""
Inventory Sync Service — 照合プロセッサ (orders/paid Webhook)

  フロー:
  ┌─────────────────────────────────────────────────────────┐
  │  1. 生の本文で署名を検証（失敗 → Unauthorized、本文は読まない）│
  │  2. 本文を注文イベントとしてパース（失敗 → Malformed）       │
  │  3. 処理済みマーカーを確認 → あれば何もせず成功            │
  │  4. 配送ロケーションを 1 回だけ解決                        │
  │  5. 寸法付き行アイテムごとに在庫アイテムを解決し -数量 を適用│
  │  6. 全行成功後に処理済みマーカーを立てる                    │
  └─────────────────────────────────────────────────────────┘

行アイテム単位の補償（ロールバック）は行わない。途中で失敗した場合、
それ以前の行の減算は残るがマーカーは立たないため、再送時にイベント全体が
再処理される（イベント単位の at-least-once）。

ステップ 5 と 6 の間で落ちると、減算済みなのにマーカーが無い状態になり、
再送で二重減算が起こりうる。この場合は RECONCILIATION_MARK_FAILED として
CRITICAL ログとジャーナルに残し、オペレーターの突き合わせ対象にする。
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError

from . import commands, queries
from .config import Settings
from .dimensions import is_dimensioned
from .errors import Malformed, MarkProcessedFailure, StoreError, Unauthorized, UpstreamFailure
from .events import InventoryDeducted, OrderAlreadyReconciled, OrderMarkFailed, OrderReconciled
from .journal import Journal
from .models import OrderEvent
from .resolver import VariantResolver
from .signature import verify_webhook
from .store_client import ShopifyClient

logger = logging.getLogger(__name__)

MARK_FAILED_SIGNAL = "RECONCILIATION_MARK_FAILED"


@dataclass
class ReconciliationResult:
    order_id: str
    status: str
    deducted: list[dict] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def parse_order_event(raw_body: bytes) -> OrderEvent:
    try:
        return OrderEvent.model_validate_json(raw_body)
    except ValidationError as e:
        raise Malformed(f"Invalid order payload: {e.error_count()} error(s)") from e


class ReconciliationProcessor:
    def __init__(
        self,
        settings: Settings,
        client: ShopifyClient,
        resolver: VariantResolver | None = None,
        journal: Journal | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.resolver = resolver or VariantResolver(client)
        self.journal = journal
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def process(self, raw_body: bytes, signature: str | None) -> ReconciliationResult:
        if not verify_webhook(raw_body, signature, self.settings.webhook_secret):
            logger.warning("Webhook HMAC verification failed")
            raise Unauthorized("Webhook signature mismatch")

        order = parse_order_event(raw_body)
        order_id = str(order.id)
        logger.info("Order paid webhook received for order %s", order_id)

        try:
            already_processed = await queries.is_order_processed(self.client, order_id)
        except StoreError as e:
            raise UpstreamFailure(f"Idempotency check failed for order {order_id}: {e}") from e

        if already_processed:
            logger.info("Order %s already processed, skipping inventory update", order_id)
            await self._record(
                order_id, OrderAlreadyReconciled(order_id=order_id, timestamp=self.clock())
            )
            return ReconciliationResult(order_id=order_id, status="already_reconciled")

        result = ReconciliationResult(order_id=order_id, status="reconciled")
        location_id: str | None = None

        for item in order.line_items:
            if not is_dimensioned(item):
                logger.debug("Skipped non-dimension item %s", item.id)
                result.skipped.append(str(item.id))
                continue

            try:
                if location_id is None:
                    location_id = await queries.get_primary_location_id(self.client)
                resolution = await self.resolver.resolve(item, location_id)
                if not resolution.deducted:
                    await commands.adjust_inventory(
                        self.client, resolution.inventory_item_id, location_id, -item.quantity
                    )
            except StoreError as e:
                logger.error(
                    "Inventory update failed for order %s line item %s: %s", order_id, item.id, e
                )
                raise UpstreamFailure(
                    f"Inventory update failed for order {order_id} line item {item.id}: {e}"
                ) from e

            source = type(resolution.source).__name__
            result.deducted.append(
                {
                    "line_item_id": str(item.id),
                    "inventory_item_id": resolution.inventory_item_id,
                    "quantity": item.quantity,
                    "source": source,
                }
            )
            await self._record(
                order_id,
                InventoryDeducted(
                    order_id=order_id,
                    line_item_id=str(item.id),
                    inventory_item_id=resolution.inventory_item_id,
                    location_id=location_id,
                    quantity=item.quantity,
                    source=source,
                    timestamp=self.clock(),
                ),
            )

        try:
            await commands.mark_order_processed(self.client, order_id)
        except StoreError as e:
            logger.critical(
                "%s order=%s deducted_items=%d error=%s",
                MARK_FAILED_SIGNAL,
                order_id,
                len(result.deducted),
                e,
            )
            await self._record(
                order_id,
                OrderMarkFailed(
                    order_id=order_id,
                    deducted_items=len(result.deducted),
                    error=str(e),
                    timestamp=self.clock(),
                ),
            )
            raise MarkProcessedFailure(
                f"Inventory deducted but order {order_id} could not be marked processed: {e}"
            ) from e

        await self._record(
            order_id,
            OrderReconciled(
                order_id=order_id,
                deducted_items=len(result.deducted),
                skipped_items=len(result.skipped),
                timestamp=self.clock(),
            ),
        )
        logger.info(
            "Order %s reconciled: %d deducted, %d skipped",
            order_id,
            len(result.deducted),
            len(result.skipped),
        )
        return result

    async def _record(self, order_id: str, event) -> None:
        if self.journal is not None:
            await self.journal.record(order_id, "Order", event)
