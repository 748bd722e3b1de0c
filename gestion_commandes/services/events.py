"""Diffusion des évènements temps réel poussés par le serveur."""
from __future__ import annotations

import inspect
import json
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger(__name__)

ORDER_UPDATED = "orderUpdated"
ORDER_DELETED = "orderDeleted"

Callback = Callable[[Any], Union[Awaitable[None], None]]


class EventBus:
    """Abonnements par nom d'évènement, appelés dans l'ordre d'inscription."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callback]] = defaultdict(list)

    def subscribe(self, event: str, callback: Callback) -> Callable[[], None]:
        self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(event, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def subscriber_count(self, event: str) -> int:
        return len(self._subscribers.get(event, []))

    async def publish(self, event: str, payload: Any) -> None:
        for callback in list(self._subscribers.get(event, [])):
            result = callback(payload)
            if inspect.isawaitable(result):
                await result

    async def dispatch_message(self, raw: str | bytes) -> bool:
        """Décode un message ``{"type": ..., "data": ...}`` et le publie."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Message temps réel illisible ignoré")
            return False
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            logger.warning("Message temps réel sans type ignoré: %s", message)
            return False
        event = message["type"]
        if event not in self._subscribers:
            logger.debug("Aucun abonné pour l'évènement %s", event)
            return False
        await self.publish(event, message.get("data"))
        return True
