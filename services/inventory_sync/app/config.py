"""
Inventory Sync Service — 設定

プロセス起動時に一度だけ環境変数から Settings を組み立て、
プロセッサ・退避エンジン・プロビジョナーへ参照として渡す。
コアロジックの中で os.environ を直接読むことはしない。
"""

import os
from dataclasses import dataclass

# メタフィールド（永続アノテーション）の座標
METAFIELD_NAMESPACE = "custom_price_app"
PROCESSED_KEY = "inventory_processed"
STARTER_VARIANT_KEY = "starter_variant_id"


class ConfigError(ValueError):
    pass


def _required(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def _int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    shop: str
    admin_token: str
    webhook_secret: str
    database_url: str
    api_version: str = "2024-04"
    redis_url: str = "redis://localhost:6379"
    max_temp_variants: int = 100
    buffer_minutes: int = 120
    webhook_callback_url: str = ""
    http_timeout: float = 30.0
    log_level: str = "INFO"

    @property
    def graphql_url(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            shop=_required("SHOPIFY_SHOP"),
            admin_token=_required("SHOPIFY_ADMIN_TOKEN"),
            webhook_secret=_required("SHOPIFY_WEBHOOK_SECRET"),
            database_url=_required("DATABASE_URL"),
            api_version=os.environ.get("SHOPIFY_API_VERSION", "2024-04"),
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379"),
            max_temp_variants=_int("TEMP_VARIANT_MAX_COUNT", 100),
            buffer_minutes=_int("TEMP_VARIANT_BUFFER_MINUTES", 120),
            webhook_callback_url=os.environ.get("WEBHOOK_CALLBACK_URL", ""),
            http_timeout=_float("SHOPIFY_HTTP_TIMEOUT", 30.0),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
        if settings.max_temp_variants < 0:
            raise ConfigError("TEMP_VARIANT_MAX_COUNT must not be negative")
        if settings.buffer_minutes < 0:
            raise ConfigError("TEMP_VARIANT_BUFFER_MINUTES must not be negative")
        return settings
