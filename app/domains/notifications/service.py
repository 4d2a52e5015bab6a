from __future__ import annotations

import logging
from typing import List

from ...shared.exceptions import NotFoundError, InvalidStatusTransition
from .models import Notification, NotificationStatus, transition
from .repository import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationService:
    """A user's in-app inbox"""

    def __init__(self, repository: NotificationRepository):
        self.repo = repository

    async def list_for_recipient(self, user_id: str) -> List[Notification]:
        return await self.repo.list_for_recipient(user_id)

    async def mark_read(self, notification_id: str) -> Notification:
        notification = await self.repo.mark_read(notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        return await self.repo.mark_all_read(user_id)

    async def unread_count(self, user_id: str) -> int:
        return await self.repo.unread_count(user_id)

    async def update_status(self, notification_id: str, status: NotificationStatus) -> Notification:
        notification = await self.repo.find_by_id(notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)

        target = transition(notification.status, status)
        if target == notification.status:
            return notification

        updated = await self.repo.set_status(notification_id, notification.status, target)
        if updated is None:
            # moved (or deleted) between the read and the write
            current = await self.repo.find_by_id(notification_id)
            if current is None:
                raise NotFoundError("Notification", notification_id)
            if current.status == target:
                return current
            raise InvalidStatusTransition("Notification", current.status.value, target.value)

        logger.info(f"Notification {notification_id}: {notification.status.value} -> {target.value}")
        return updated
