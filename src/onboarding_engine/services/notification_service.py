"""Notification emission with optional de-duplication."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_engine.models import Notification, NotificationType
from onboarding_engine.repositories import NotificationRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    """Result of a send.

    ``is_new=False`` means a notification with the same dedupe key already
    existed for that user and nothing was written.
    """

    notification_id: UUID
    is_new: bool


class NotificationService:
    """Writes notification rows into users' inboxes."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = NotificationRepository(session)

    async def send(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        metadata: dict[str, Any] | None = None,
        dedupe_key: str | None = None,
    ) -> SendResult:
        """Create a notification, or return the existing one for ``dedupe_key``."""
        if dedupe_key is not None:
            existing = await self.repo.find_by_dedupe_key(user_id, dedupe_key)
            if existing is not None:
                return SendResult(notification_id=existing.id, is_new=False)

        notification = Notification(
            user_id=user_id,
            type=NotificationType(type).value,
            title=title,
            message=message,
            metadata_json=metadata,
            dedupe_key=dedupe_key,
        )
        await self.repo.save(notification)
        logger.debug("Notification %s (%s) -> user %s", notification.id, notification.type, user_id)
        return SendResult(notification_id=notification.id, is_new=True)

    async def send_many(
        self,
        user_ids: Iterable[UUID],
        type: NotificationType,
        title: str,
        message: str,
        metadata: dict[str, Any] | None = None,
        dedupe_key: str | None = None,
    ) -> list[SendResult]:
        """Send the same notification to several users, each at most once."""
        results = []
        for user_id in dict.fromkeys(user_ids):
            results.append(
                await self.send(user_id, type, title, message, metadata, dedupe_key)
            )
        return results
