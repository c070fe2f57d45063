"""
Inventory Sync Service — 照合ジャーナル (イベントストア)

在庫の正本はリモートストア。ここに残すのは「このサービスが何をしたか」
の追記専用ログで、オペレーターが減算とマーカーの食い違いを突き合わせる
ために使う。
"""

import json
import logging
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS reconciliation_events (
    id BIGSERIAL PRIMARY KEY,
    aggregate_id TEXT NOT NULL,
    aggregate_type TEXT NOT NULL,
    event_type TEXT NOT NULL,
    event_data JSONB NOT NULL,
    version INTEGER NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    UNIQUE (aggregate_id, version)
)
"""


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.execute(text(SCHEMA))


async def ensure_schema(engine: AsyncEngine) -> bool:
    """起動時のスキーマ作成。DB に届かなくても Webhook 処理は止めない。"""
    try:
        await create_schema(engine)
    except (SQLAlchemyError, OSError):
        logger.exception("Journal schema unavailable; continuing without a journal table")
        return False
    return True


async def current_version(session: AsyncSession, aggregate_id: str) -> int:
    result = await session.execute(
        text("""
            SELECT COALESCE(MAX(version), 0) AS version
            FROM reconciliation_events
            WHERE aggregate_id = :agg_id
        """),
        {"agg_id": aggregate_id},
    )
    row = result.fetchone()
    return row.version if row else 0


async def append_event(
    session: AsyncSession,
    aggregate_id: str,
    aggregate_type: str,
    event_type: str,
    event_data: dict,
    expected_version: int,
) -> int:
    new_version = expected_version + 1
    await session.execute(
        text("""
            INSERT INTO reconciliation_events
                (aggregate_id, aggregate_type, event_type, event_data, version, created_at)
            VALUES
                (:agg_id, :agg_type, :evt_type, :evt_data, :version, :now)
        """),
        {
            "agg_id": aggregate_id,
            "agg_type": aggregate_type,
            "evt_type": event_type,
            "evt_data": json.dumps(event_data, default=str),
            "version": new_version,
            "now": datetime.now(timezone.utc),
        },
    )
    return new_version


def _row_to_dict(row) -> dict:
    return {
        "aggregate_id": row.aggregate_id,
        "aggregate_type": row.aggregate_type,
        "event_type": row.event_type,
        "event_data": json.loads(row.event_data)
        if isinstance(row.event_data, str)
        else row.event_data,
        "version": row.version,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


async def load_events(session: AsyncSession, aggregate_id: str) -> list[dict]:
    result = await session.execute(
        text("""
            SELECT aggregate_id, aggregate_type, event_type, event_data, version, created_at
            FROM reconciliation_events
            WHERE aggregate_id = :agg_id
            ORDER BY version ASC
        """),
        {"agg_id": aggregate_id},
    )
    return [_row_to_dict(row) for row in result.fetchall()]


async def load_all_events(session: AsyncSession, limit: int = 500) -> list[dict]:
    result = await session.execute(
        text("""
            SELECT aggregate_id, aggregate_type, event_type, event_data, version, created_at
            FROM reconciliation_events
            ORDER BY created_at DESC, id DESC
            LIMIT :limit
        """),
        {"limit": limit},
    )
    return [_row_to_dict(row) for row in result.fetchall()]
