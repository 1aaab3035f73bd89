"""Notification trigger: decides nothing, records what the core decided to announce."""

from __future__ import annotations

import logging
from typing import Protocol

from tutorhub.modules.audit.repository import AuditRepository
from tutorhub.modules.notifications.events import DomainEvent

logger = logging.getLogger(__name__)


class NotificationTrigger(Protocol):
    """Sink for domain events; delivery channel is someone else's concern."""

    async def publish(self, event: DomainEvent) -> None:
        """Accept one domain event."""


class OutboxNotificationTrigger:
    """Write events to the outbox table inside the caller's transaction."""

    def __init__(self, audit_repository: AuditRepository) -> None:
        self.audit_repository = audit_repository

    async def publish(self, event: DomainEvent) -> None:
        await self.audit_repository.create_outbox_event(
            aggregate_type=event.aggregate_type,
            aggregate_id=event.aggregate_id,
            event_type=event.event_type,
            payload=event.to_payload(),
        )
        logger.debug("Queued %s for %s %s", event.event_type, event.aggregate_type, event.aggregate_id)
