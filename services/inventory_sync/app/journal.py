"""
Inventory Sync Service — ジャーナル書き込み

1. イベントストアに追記
2. Redis Pub/Sub でイベントを発行（他サービスへ通知）

ジャーナルは副経路。書き込みに失敗しても照合処理の結果は変えず、
ログに残すだけにする。
"""

import json
import logging

import redis.asyncio as aioredis
from pydantic import BaseModel
from sqlalchemy.orm import sessionmaker

from . import event_store

logger = logging.getLogger(__name__)

CHANNEL = "inventory_sync_events"


class Journal:
    def __init__(self, session_factory: sessionmaker, redis: aioredis.Redis) -> None:
        self.session_factory = session_factory
        self.redis = redis

    async def record(self, aggregate_id: str, aggregate_type: str, event: BaseModel) -> None:
        event_type = type(event).__name__
        event_data = event.model_dump(mode="json")
        try:
            async with self.session_factory() as session:
                version = await event_store.current_version(session, aggregate_id)
                await event_store.append_event(
                    session, aggregate_id, aggregate_type, event_type, event_data, version
                )
                await session.commit()

            await self.redis.publish(
                CHANNEL,
                json.dumps({"event_type": event_type, "data": event_data}, default=str),
            )
        except Exception:
            logger.exception("Failed to record journal event %s for %s", event_type, aggregate_id)
