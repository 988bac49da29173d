"""Best-effort broadcast of progression outcomes over Redis pub/sub."""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)

PROGRESSION_CHANNEL = "pubsub:progression"


async def publish_event(redis: object, event: str, payload: dict) -> None:
    """Publish a committed outcome. Never raises: the state change already happened."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            PROGRESSION_CHANNEL,
            json.dumps({"event": event, **payload}),
        )
    except Exception:
        logger.warning("Failed to publish %s event", event, exc_info=True)
