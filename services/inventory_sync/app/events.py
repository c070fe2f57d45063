"""
Inventory Sync Service — ジャーナルイベント定義

このサービスが行った操作の記録。過去形で命名し、不変として扱う。
"""

from datetime import datetime

from pydantic import BaseModel


class InventoryDeducted(BaseModel):
    """行アイテムの数量だけ元在庫を減算した"""
    order_id: str
    line_item_id: str
    inventory_item_id: str
    location_id: str
    quantity: int
    source: str
    timestamp: datetime


class OrderReconciled(BaseModel):
    """注文の全行アイテムを減算し、処理済みマーカーを立てた"""
    order_id: str
    deducted_items: int
    skipped_items: int
    timestamp: datetime


class OrderAlreadyReconciled(BaseModel):
    """再送された注文。処理済みマーカーがあったため何もしなかった"""
    order_id: str
    timestamp: datetime


class OrderMarkFailed(BaseModel):
    """減算は完了したがマーカー書き込みに失敗した（二重減算リスクあり）"""
    order_id: str
    deducted_items: int
    error: str
    timestamp: datetime


class VariantsEvicted(BaseModel):
    """上限超過のため古い一時バリアントを削除した"""
    product_id: str
    variant_ids: list[str]
    temporary_count: int
    ceiling: int
    timestamp: datetime


class TemporaryVariantCreated(BaseModel):
    """注文時の寸法を表す一時バリアントを作成した"""
    product_id: str
    variant_id: str
    starter_variant_id: str
    label: str
    price: str
    timestamp: datetime
