from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from ...shared.models.base import document_to_dict, dict_to_document, parse_id, utcnow
from .models import Notification, NotificationStatus, NotificationType, sources_for

logger = logging.getLogger(__name__)

REFERENCE_FIELDS = ("recipient_id", "related_request_id")


class NotificationRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["notifications"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("recipient_id", ASCENDING), ("created_at", DESCENDING)])
        await self.collection.create_index([("related_request_id", ASCENDING), ("type", ASCENDING), ("status", ASCENDING)])

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[Notification]:
        if doc is None:
            return None
        return Notification(**document_to_dict(doc))

    async def create(self, notification: Notification) -> Notification:
        data = dict_to_document(notification.model_dump(exclude={"id"}), REFERENCE_FIELDS)
        data["type"] = notification.type.value
        data["status"] = notification.status.value
        result = await self.collection.insert_one(data)
        return notification.model_copy(update={"id": str(result.inserted_id)})

    async def find_by_id(self, notification_id: str) -> Optional[Notification]:
        doc = await self.collection.find_one({"_id": parse_id(notification_id, "notificationId")})
        return self._to_model(doc)

    async def list_for_recipient(self, user_id: str) -> List[Notification]:
        cursor = self.collection.find({"recipient_id": parse_id(user_id, "userId")}).sort("created_at", DESCENDING)
        return [self._to_model(doc) for doc in await cursor.to_list(length=None)]

    async def mark_read(self, notification_id: str) -> Optional[Notification]:
        doc = await self.collection.find_one_and_update(
            {"_id": parse_id(notification_id, "notificationId")},
            {"$set": {"is_read": True, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.collection.update_many(
            {"recipient_id": parse_id(user_id, "userId"), "is_read": False},
            {"$set": {"is_read": True, "updated_at": utcnow()}},
        )
        return result.modified_count

    async def unread_count(self, user_id: str) -> int:
        return await self.collection.count_documents({"recipient_id": parse_id(user_id, "userId"), "is_read": False})

    async def set_status(
        self,
        notification_id: str,
        current: NotificationStatus,
        target: NotificationStatus,
    ) -> Optional[Notification]:
        """Compare-and-set the status; None when the row is gone or moved meanwhile"""
        doc = await self.collection.find_one_and_update(
            {"_id": parse_id(notification_id, "notificationId"), "status": NotificationStatus(current).value},
            {"$set": {"status": NotificationStatus(target).value, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    async def mark_accepted(self, request_id: str, donor_id: str) -> bool:
        """The donor's own blood_request row for the request -> accepted and read"""
        result = await self.collection.update_one(
            {
                "recipient_id": parse_id(donor_id, "donorId"),
                "related_request_id": parse_id(request_id, "requestId"),
                "type": NotificationType.BLOOD_REQUEST.value,
                "status": {"$in": [s.value for s in sources_for(NotificationStatus.ACCEPTED)]},
            },
            {"$set": {"status": NotificationStatus.ACCEPTED.value, "is_read": True, "updated_at": utcnow()}},
        )
        return result.modified_count == 1

    async def expire_pending_siblings(self, request_id: str, donor_id: str) -> int:
        """Every other still-pending blood_request row for the request -> expired"""
        result = await self.collection.update_many(
            {
                "related_request_id": parse_id(request_id, "requestId"),
                "type": NotificationType.BLOOD_REQUEST.value,
                "status": {"$in": [s.value for s in sources_for(NotificationStatus.EXPIRED)]},
                "recipient_id": {"$ne": parse_id(donor_id, "donorId")},
            },
            {"$set": {"status": NotificationStatus.EXPIRED.value, "updated_at": utcnow()}},
        )
        if result.modified_count:
            logger.info(f"Expired {result.modified_count} pending notifications for request {request_id}")
        return result.modified_count
