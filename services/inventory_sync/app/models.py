"""
Inventory Sync Service — データモデル

Webhook 本文（注文イベント）とカタログ走査結果を表す。
注文イベントは受信後不変。送信元は同じイベントを再送しうる。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LineItemProperty(BaseModel):
    name: str
    value: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, v):
        if v is None:
            return None
        return str(v)


class LineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    product_id: int | str | None = None
    variant_id: int | str | None = None
    quantity: int = Field(gt=0)
    properties: list[LineItemProperty] = []

    @field_validator("properties", mode="before")
    @classmethod
    def _normalize_properties(cls, v):
        if v is None:
            return []
        if isinstance(v, dict):
            return [{"name": k, "value": val} for k, val in v.items()]
        return v

    def property_value(self, *names: str) -> str | None:
        wanted = {n.lower() for n in names}
        for prop in self.properties:
            if prop.name.strip().lower() in wanted:
                return prop.value
        return None


class OrderEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    line_items: list[LineItem]

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v):
        if isinstance(v, str) and not v.strip():
            raise ValueError("order id must not be blank")
        return v


# ── カタログ走査 ─────────────────────────────────


class VariantNode(BaseModel):
    id: str
    title: str
    created_at: datetime
    option_values: list[str] = []


class ProductNode(BaseModel):
    id: str
    variants: list[VariantNode]


class ProductPage(BaseModel):
    products: list[ProductNode]
    has_next_page: bool
    end_cursor: str | None = None
