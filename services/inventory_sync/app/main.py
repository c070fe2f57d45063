"""
Inventory Sync Service — FastAPI エントリーポイント

  POST /webhooks/orders-paid     注文支払い Webhook → 在庫照合
  GET|POST /cron/cleanup-variants 一時バリアントの退避（外部スケジューラから）
  POST /variants                 寸法指定の一時バリアント作成

応答コード: 401 署名不一致 / 400 不正な本文・パラメータ /
200 受理（冪等な再送を含む）/ 500 上流エラー。送信元は 2xx 以外を再送する。
"""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import commands, event_store, queries
from .aggregate import ReconciliationAggregate
from .config import Settings
from .errors import (
    Malformed,
    NotFound,
    ReconciliationError,
    StoreError,
    Unauthorized,
    UpstreamFailure,
)
from .eviction import EvictionEngine
from .journal import Journal
from .processor import ReconciliationProcessor
from .provisioning import VariantProvisioner
from .store_client import ShopifyClient

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Shopify-Hmac-Sha256"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

STATUS_CODES = {
    Unauthorized: 401,
    Malformed: 400,
    NotFound: 500,
}


def configure(
    app: FastAPI,
    settings: Settings,
    client: ShopifyClient,
    journal: Journal | None = None,
    session_factory: sessionmaker | None = None,
) -> None:
    """設定とクライアントから各コンポーネントを組み立てて app.state に載せる。"""
    app.state.settings = settings
    app.state.client = client
    app.state.session_factory = session_factory
    app.state.processor = ReconciliationProcessor(settings, client, journal=journal)
    app.state.eviction = EvictionEngine(settings, client, journal=journal)
    app.state.provisioner = VariantProvisioner(settings, client, journal=journal)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    engine = create_async_engine(settings.database_url, echo=False)
    await event_store.ensure_schema(engine)
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    redis_pool = aioredis.from_url(settings.redis_url, decode_responses=True)
    http = httpx.AsyncClient(timeout=settings.http_timeout)

    client = ShopifyClient(http, settings.graphql_url, settings.admin_token)
    configure(app, settings, client, Journal(async_session, redis_pool), async_session)
    yield
    await http.aclose()
    await redis_pool.aclose()
    await engine.dispose()


app = FastAPI(title="Inventory Sync Service", lifespan=lifespan)


@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(request: Request, exc: ReconciliationError):
    status = next((code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)), 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content={"error": exc.code, "detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": Malformed.code, "detail": "Missing or invalid parameters"},
    )


# ── Request Models ───────────────────────────────


class CreateVariantRequest(BaseModel):
    product_id: str
    length_mm: Decimal | None = None
    width_mm: Decimal | None = None
    length_label: str = "Length"
    width_label: str = "Width"
    starter_variant_id: str | None = None


# ── Webhook / Cron ───────────────────────────────


@app.post("/webhooks/orders-paid")
async def orders_paid_webhook(request: Request):
    """署名検証のため、本文はパースせずバイト列のまま渡す。"""
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    result = await request.app.state.processor.process(raw_body, signature)
    return {
        "status": result.status,
        "order_id": result.order_id,
        "deducted": len(result.deducted),
        "skipped": len(result.skipped),
    }


@app.api_route("/cron/cleanup-variants", methods=["GET", "POST"])
async def cleanup_variants(request: Request):
    result = await request.app.state.eviction.sweep()
    return {"deleted": result.deleted, "products_scanned": result.products_scanned}


# ── Variant Provisioning ─────────────────────────


@app.post("/variants")
async def create_variant(req: CreateVariantRequest, request: Request):
    variant = await request.app.state.provisioner.provision(
        req.product_id,
        length_mm=req.length_mm,
        width_mm=req.width_mm,
        length_label=req.length_label,
        width_label=req.width_label,
        starter_variant_id=req.starter_variant_id,
    )
    return {
        "success": True,
        "variant_id": variant.variant_id,
        "starter_variant_id": variant.starter_variant_id,
        "label": variant.label,
        "price": str(variant.price),
    }


# ── Admin ────────────────────────────────────────


@app.post("/admin/webhooks/register")
async def register_webhook(request: Request):
    callback_url = request.app.state.settings.webhook_callback_url
    if not callback_url:
        raise Malformed("WEBHOOK_CALLBACK_URL is not configured")
    try:
        subscription_id = await commands.register_orders_paid_webhook(
            request.app.state.client, callback_url
        )
    except StoreError as e:
        raise UpstreamFailure(f"Webhook registration failed: {e}") from e
    return {"subscription_id": subscription_id, "callback_url": callback_url}


@app.get("/admin/connection")
async def test_connection(request: Request):
    try:
        shop = await queries.get_shop_name(request.app.state.client)
    except StoreError as e:
        raise UpstreamFailure(f"Store connection failed: {e}") from e
    return {"success": True, "shop": shop}


# ── Reconciliation Journal ───────────────────────


@app.get("/events")
async def get_all_events(request: Request):
    async with request.app.state.session_factory() as session:
        return await event_store.load_all_events(session)


@app.get("/events/{aggregate_id:path}")
async def get_aggregate_events(aggregate_id: str, request: Request):
    async with request.app.state.session_factory() as session:
        return await event_store.load_events(session, aggregate_id)


@app.get("/orders/{order_id}/reconciliation")
async def get_order_reconciliation(order_id: str, request: Request):
    """ジャーナルから注文の照合状態を復元する（二重減算リスクの確認用）。"""
    async with request.app.state.session_factory() as session:
        events = await event_store.load_events(session, order_id)
    if not events:
        raise HTTPException(404, "No reconciliation record for this order")
    return ReconciliationAggregate.from_events(events).to_dict()


@app.get("/health")
async def health():
    return {"status": "ok", "service": "inventory-sync-service"}
