"""
User repository for MongoDB data access.
"""

import logging
import re
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from ...shared.models.base import document_to_dict, parse_id, utcnow
from .models import User, BloodType

logger = logging.getLogger(__name__)

# never hand credentials to matching/listing callers
PUBLIC_PROJECTION = {"password_hash": 0}


class UserRepository:
    """Repository for user data access operations"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["users"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index("email", unique=True)
        await self.collection.create_index([("is_available", ASCENDING), ("blood_type", ASCENDING)])

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[User]:
        if doc is None:
            return None
        return User(**document_to_dict(doc))

    async def find_by_id(self, user_id: str) -> Optional[User]:
        doc = await self.collection.find_one({"_id": parse_id(user_id, "userId")})
        return self._to_model(doc)

    async def find_by_email(self, email: str) -> Optional[User]:
        doc = await self.collection.find_one({"email": email.strip().lower()})
        return self._to_model(doc)

    async def find_many_by_ids(self, user_ids: Iterable[str]) -> List[User]:
        """Users for the given ids, in the order given; unknown ids are skipped"""
        ids = [parse_id(user_id, "userId") for user_id in user_ids]
        if not ids:
            return []
        docs = await self.collection.find({"_id": {"$in": ids}}, PUBLIC_PROJECTION).to_list(length=None)
        by_id = {str(doc["_id"]): doc for doc in docs}
        return [self._to_model(by_id[str(i)]) for i in ids if str(i) in by_id]

    async def create(self, user: User) -> User:
        data = user.model_dump(exclude={"id"}, mode="python")
        data["role"] = user.role.value
        data["blood_type"] = user.blood_type.value if user.blood_type else None
        result = await self.collection.insert_one(data)
        logger.info(f"Created user {result.inserted_id} ({user.role.value})")
        return user.model_copy(update={"id": str(result.inserted_id)})

    async def update_fields(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        """$set the given fields and return the updated user, or None when absent"""
        doc = await self.collection.find_one_and_update(
            {"_id": parse_id(user_id, "userId")},
            {"$set": {**fields, "updated_at": utcnow()}},
            projection=PUBLIC_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    @staticmethod
    def build_candidate_query(
        blood_type: Optional[BloodType],
        cutoff: datetime,
        exclude_user_id: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {
            "is_available": True,
            "$or": [
                {"last_donated_date": None},
                {"last_donated_date": {"$lt": cutoff}},
            ],
        }
        if blood_type:
            query["blood_type"] = BloodType(blood_type).value
        if exclude_user_id:
            query["_id"] = {"$ne": parse_id(exclude_user_id, "seekerId")}
        if location:
            query["location"] = {"$regex": re.escape(location.strip()), "$options": "i"}
        return query

    async def find_candidates(
        self,
        blood_type: Optional[BloodType],
        cutoff: datetime,
        exclude_user_id: Optional[str] = None,
        location: Optional[str] = None,
    ) -> List[User]:
        query = self.build_candidate_query(blood_type, cutoff, exclude_user_id, location)
        docs = await self.collection.find(query, PUBLIC_PROJECTION).to_list(length=None)
        return [self._to_model(doc) for doc in docs]
