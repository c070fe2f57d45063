"""
Inventory Sync Service — 寸法マーカーと一時バリアントのラベル

一時バリアントのオプション値は次の形:
    "Length | 1200 mm"                          (1 次元)
    "Length | 1200 mm X Width | 600 mm"         (面積)
退避エンジンはこの形に一致するバリアントだけを一時バリアントとみなす。
"""

import re
from decimal import ROUND_HALF_UP, Decimal

from .models import LineItem

# 言語ごとの別名。比較は前後空白除去・大文字小文字無視
DIMENSION_MARKERS = frozenset(
    name.lower()
    for name in (
        "Individuelle Länge",
        "Individuelle Breite",
        "Custom Length",
        "Custom Width",
    )
)

_SEGMENT = r"[^|]*?[^|\s]\s*\|\s*\d+(?:[.,]\d+)?\s*mm"
TEMPORARY_TITLE = re.compile(rf"^\s*{_SEGMENT}(?:\s+X\s+{_SEGMENT})?\s*$", re.IGNORECASE)

AREA_SEPARATOR = " X "
CENT = Decimal("0.01")


def is_dimensioned(item: LineItem) -> bool:
    return any(p.name.strip().lower() in DIMENSION_MARKERS for p in item.properties)


def is_temporary_title(title: str | None) -> bool:
    if not title:
        return False
    return TEMPORARY_TITLE.match(title) is not None


def _format_mm(value: Decimal) -> str:
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


def segment_label(label: str, value_mm: Decimal) -> str:
    return f"{label.strip()} | {_format_mm(value_mm)} mm"


def build_variant_label(
    length_mm: Decimal | None,
    width_mm: Decimal | None,
    length_label: str = "Length",
    width_label: str = "Width",
) -> str:
    """長さと幅の両方があれば 2 セグメントの面積ラベル、片方なら 1 セグメント。"""
    if length_mm is not None and width_mm is not None:
        return segment_label(length_label, length_mm) + AREA_SEPARATOR + segment_label(width_label, width_mm)
    if length_mm is not None:
        return segment_label(length_label, length_mm)
    if width_mm is not None:
        return segment_label(width_label, width_mm)
    raise ValueError("at least one dimension is required")


def unit_price(
    base_price: Decimal,
    length_mm: Decimal | None,
    width_mm: Decimal | None,
) -> Decimal:
    """
    base_price は 1 次元ならメートル単価、面積なら平方メートル単価。
    小数第 2 位で四捨五入する。
    """
    if length_mm is not None and width_mm is not None:
        factor = (length_mm / 1000) * (width_mm / 1000)
    else:
        dimension = length_mm if length_mm is not None else width_mm
        if dimension is None:
            raise ValueError("at least one dimension is required")
        factor = dimension / 1000
    return (base_price * factor).quantize(CENT, rounding=ROUND_HALF_UP)
