"""
Inventory Sync Service — 注文照合集約

ジャーナルのイベントをリプレイして、注文ごとの照合状態を復元する。

状態遷移:
    PENDING → RECONCILED    (全行減算 + マーカー書き込み成功)
    PENDING → MARK_FAILED   (減算済みだがマーカー書き込み失敗 = 要確認)
    MARK_FAILED → RECONCILED (再送で再処理された。二重減算の可能性あり)
"""


class ReconciliationAggregate:
    def __init__(self) -> None:
        self.order_id: str | None = None
        self.status: str = "UNKNOWN"
        self.deductions: list[dict] = []
        self.mark_failures: int = 0
        self.redeliveries: int = 0
        self.version: int = 0

    @property
    def deducted_quantity(self) -> int:
        return sum(d["quantity"] for d in self.deductions)

    @property
    def needs_review(self) -> bool:
        """マーカー書き込みに一度でも失敗した注文はオペレーターが確認する。"""
        return self.mark_failures > 0

    # ── イベント適用メソッド ──────────────────────────

    def apply_inventory_deducted(self, data: dict) -> None:
        self.order_id = data["order_id"]
        if self.status == "UNKNOWN":
            self.status = "PENDING"
        self.deductions.append(
            {
                "line_item_id": data["line_item_id"],
                "inventory_item_id": data["inventory_item_id"],
                "quantity": data["quantity"],
                "source": data["source"],
            }
        )

    def apply_order_reconciled(self, data: dict) -> None:
        self.order_id = data["order_id"]
        self.status = "RECONCILED"

    def apply_order_mark_failed(self, data: dict) -> None:
        self.order_id = data["order_id"]
        self.status = "MARK_FAILED"
        self.mark_failures += 1

    def apply_order_already_reconciled(self, data: dict) -> None:
        self.order_id = data["order_id"]
        self.redeliveries += 1
        if self.status == "UNKNOWN":
            self.status = "RECONCILED"

    # ── イベントリプレイ ─────────────────────────────

    def apply_event(self, event_type: str, event_data: dict) -> None:
        handler = {
            "InventoryDeducted": self.apply_inventory_deducted,
            "OrderReconciled": self.apply_order_reconciled,
            "OrderMarkFailed": self.apply_order_mark_failed,
            "OrderAlreadyReconciled": self.apply_order_already_reconciled,
        }.get(event_type)
        if handler:
            handler(event_data)

    @classmethod
    def from_events(cls, events: list[dict]) -> "ReconciliationAggregate":
        agg = cls()
        for e in events:
            agg.apply_event(e["event_type"], e["event_data"])
            agg.version = e["version"]
        return agg

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "status": self.status,
            "deductions": self.deductions,
            "deducted_quantity": self.deducted_quantity,
            "mark_failures": self.mark_failures,
            "redeliveries": self.redeliveries,
            "needs_review": self.needs_review,
            "version": self.version,
        }
