"""Best-effort progression event broadcast over Redis pub/sub."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

CHANNEL_LEVEL_UP = "pubsub:level_up"
CHANNEL_ACHIEVEMENT_COMPLETED = "pubsub:achievement_completed"
CHANNEL_CHALLENGE_COMPLETED = "pubsub:challenge_completed"
CHANNEL_PROGRESSION_FAILURE = "pubsub:progression_failure"


class EventBatch:
    """Events produced inside one transaction, held back until it commits."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    @property
    def channels(self) -> list[str]:
        return [channel for channel, _ in self.events]

    def level_up(self, user_id: int, old_level: int, new_level: int, total_points: int) -> None:
        self.events.append((CHANNEL_LEVEL_UP, {
            "user_id": user_id,
            "old_level": old_level,
            "new_level": new_level,
            "total_points": total_points,
        }))

    def achievement_completed(self, user_id: int, achievement_id: str, points: int) -> None:
        self.events.append((CHANNEL_ACHIEVEMENT_COMPLETED, {
            "user_id": user_id,
            "achievement_id": achievement_id,
            "points": points,
        }))

    def challenge_completed(self, user_id: int, challenge_id: str, cycle: int, points: int) -> None:
        self.events.append((CHANNEL_CHALLENGE_COMPLETED, {
            "user_id": user_id,
            "challenge_id": challenge_id,
            "cycle": cycle,
            "points": points,
        }))


class EventPublisher:
    """Publishes JSON payloads; a missing or failing Redis never fails the caller."""

    def __init__(self, redis: object | None = None) -> None:
        self.redis = redis

    async def publish(self, channel: str, payload: dict[str, Any]) -> bool:
        if self.redis is None:
            return False
        try:
            await self.redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[attr-defined]
        except Exception:
            logger.warning("Failed to publish %s event", channel, exc_info=True)
            return False
        return True

    async def publish_batch(self, batch: EventBatch) -> None:
        """Publish committed events in the order they were produced."""
        for channel, payload in batch.events:
            await self.publish(channel, payload)

    async def progression_failure(self, user_id: int, task_type: str, stage: str, error: str) -> None:
        await self.publish(CHANNEL_PROGRESSION_FAILURE, {
            "user_id": user_id,
            "task_type": task_type,
            "stage": stage,
            "error": error,
        })
