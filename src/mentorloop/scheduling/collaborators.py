"""Interfaces to the notification dispatcher and the reward ledger.

Both collaborators are fire-and-forget: they are called only after the
owning transaction has committed, and their failures never undo it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from mentorloop.config import get_settings

logger = logging.getLogger(__name__)

# Event types sent to the notifier
BOOKING_REQUESTED = "booking_requested"
BOOKING_CONFIRMED = "booking_confirmed"
BOOKING_CANCELLED = "booking_cancelled"
BOOKING_EXPIRED = "booking_expired"
PROGRAM_ENROLLED = "program_enrolled"
COMMITMENT_SUSPENDED = "commitment_suspended"
COMMITMENT_RESCHEDULED = "commitment_rescheduled"
TASK_POSTPONE_ALERT = "task_postpone_alert"


class Notifier(ABC):
    """Delivers user-facing events. Delivery guarantees are the dispatcher's concern."""

    @abstractmethod
    async def notify(self, user_id: int, event_type: str, payload: dict[str, Any]) -> None: ...


class RewardLedger(ABC):
    """Accepts point credits after attended or completed sessions."""

    @abstractmethod
    async def credit(self, user_id: int, points: int, reason: str) -> None: ...


class LoggingNotifier(Notifier):
    async def notify(self, user_id: int, event_type: str, payload: dict[str, Any]) -> None:
        logger.info("notify user=%s event=%s payload=%s", user_id, event_type, payload)


class WebhookNotifier(Notifier):
    """POSTs each event as JSON to the dispatcher's webhook."""

    def __init__(self, url: str, timeout: float = 5.0) -> None:
        self._url = url
        self._timeout = timeout

    async def notify(self, user_id: int, event_type: str, payload: dict[str, Any]) -> None:
        body = {"user_id": user_id, "event_type": event_type, "payload": payload}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=body)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Notification %s for user %s not delivered: %s", event_type, user_id, e)


class LoggingRewardLedger(RewardLedger):
    async def credit(self, user_id: int, points: int, reason: str) -> None:
        logger.info("reward user=%s points=%s reason=%s", user_id, points, reason)


def get_notifier() -> Notifier:
    settings = get_settings()
    if settings.notify_webhook_url:
        return WebhookNotifier(settings.notify_webhook_url, settings.notify_timeout_seconds)
    return LoggingNotifier()


def get_reward_ledger() -> RewardLedger:
    return LoggingRewardLedger()
