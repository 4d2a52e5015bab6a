"""
User service: donor availability management.
"""

import logging

from ...shared.exceptions import NotFoundError
from .models import User
from .repository import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user management"""

    def __init__(self, user_repository: UserRepository):
        self.user_repository = user_repository

    async def get_user(self, user_id: str) -> User:
        user = await self.user_repository.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def toggle_availability(self, user_id: str) -> User:
        """Flip is_available for the user"""
        user = await self.get_user(user_id)
        updated = await self.user_repository.update_fields(user_id, {"is_available": not user.is_available})
        if updated is None:
            raise NotFoundError("User", user_id)
        logger.info(f"User {user_id} availability set to {updated.is_available}")
        return updated
