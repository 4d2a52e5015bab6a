"""
User routes.
"""

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.database import get_database_async
from .repository import UserRepository
from .schemas import AvailabilityResponse, DonorResponse
from .service import UserService


router = APIRouter(
    prefix="/users",
    tags=["Users"],
    responses={
        404: {"description": "User not found"},
        500: {"description": "Server error"},
    },
)


async def get_user_service(db: AsyncIOMotorDatabase = Depends(get_database_async)) -> UserService:
    return UserService(UserRepository(db))


@router.patch(
    "/{user_id}/availability",
    response_model=AvailabilityResponse,
    summary="Toggle donor availability",
)
async def toggle_availability(user_id: str, service: UserService = Depends(get_user_service)):
    user = await service.toggle_availability(user_id)
    state = "available" if user.is_available else "unavailable"
    return AvailabilityResponse(
        message=f"You are now marked as {state}",
        is_available=user.is_available,
        user=DonorResponse.model_validate(user),
    )
