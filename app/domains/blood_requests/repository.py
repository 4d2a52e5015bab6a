from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from ...shared.models.base import document_to_dict, dict_to_document, parse_id, utcnow
from .models import BloodRequest, RequestStatus

logger = logging.getLogger(__name__)

REFERENCE_FIELDS = ("seeker_id", "accepted_by")


class BloodRequestRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["blood_requests"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("created_at", DESCENDING)])
        await self.collection.create_index([("seeker_id", ASCENDING)])

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[BloodRequest]:
        if doc is None:
            return None
        return BloodRequest(**document_to_dict(doc))

    def _to_document(self, request: BloodRequest) -> Dict[str, Any]:
        doc = dict_to_document(request.model_dump(), REFERENCE_FIELDS)
        doc["blood_type"] = request.blood_type.value
        doc["status"] = request.status.value
        return doc

    async def create(self, request: BloodRequest) -> BloodRequest:
        doc = self._to_document(request.model_copy(update={"id": None}))
        doc.pop("_id", None)
        result = await self.collection.insert_one(doc)
        logger.info(f"Created blood request {result.inserted_id} ({request.blood_type.value}, {request.location})")
        return request.model_copy(update={"id": str(result.inserted_id)})

    async def find_by_id(self, request_id: str) -> Optional[BloodRequest]:
        doc = await self.collection.find_one({"_id": parse_id(request_id, "requestId")})
        return self._to_model(doc)

    async def list_all(self) -> List[BloodRequest]:
        cursor = self.collection.find({}).sort("created_at", DESCENDING)
        return [self._to_model(doc) for doc in await cursor.to_list(length=None)]

    async def add_accepted_donor(self, request_id: str, donor_id: str) -> bool:
        """
        Add the donor to accepted_by in one atomic update.

        Returns True only for the call that actually added the id; a donor
        already in the set (or a concurrent duplicate accept) gets False.
        """
        donor_oid = parse_id(donor_id, "donorId")
        result = await self.collection.update_one(
            {"_id": parse_id(request_id, "requestId"), "accepted_by": {"$ne": donor_oid}},
            {"$addToSet": {"accepted_by": donor_oid}, "$set": {"updated_at": utcnow()}},
        )
        return result.modified_count == 1

    async def set_status(self, request_id: str, current: RequestStatus, target: RequestStatus) -> Optional[BloodRequest]:
        doc = await self.collection.find_one_and_update(
            {"_id": parse_id(request_id, "requestId"), "status": RequestStatus(current).value},
            {"$set": {"status": RequestStatus(target).value, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)
