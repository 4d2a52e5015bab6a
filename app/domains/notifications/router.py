"""
Notification inbox routes.
"""

from typing import List

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.database import get_database_async
from .repository import NotificationRepository
from .schemas import (
    NotificationResponse, StatusUpdateRequest, MarkAllReadResponse, UnreadCountResponse,
)
from .service import NotificationService


router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"],
    responses={
        404: {"description": "Notification not found"},
        500: {"description": "Server error"},
    },
)


async def get_notification_service(db: AsyncIOMotorDatabase = Depends(get_database_async)) -> NotificationService:
    return NotificationService(NotificationRepository(db))


@router.get("/user/{user_id}/unread-count", response_model=UnreadCountResponse, summary="Count unread notifications")
async def unread_count(user_id: str, service: NotificationService = Depends(get_notification_service)):
    return UnreadCountResponse(count=await service.unread_count(user_id))


@router.put("/user/{user_id}/read-all", response_model=MarkAllReadResponse, summary="Mark all notifications read")
async def mark_all_read(user_id: str, service: NotificationService = Depends(get_notification_service)):
    modified = await service.mark_all_read(user_id)
    return MarkAllReadResponse(message="All notifications marked as read", modified_count=modified)


@router.get("/{user_id}", response_model=List[NotificationResponse], summary="List a user's notifications")
async def list_notifications(user_id: str, service: NotificationService = Depends(get_notification_service)):
    notifications = await service.list_for_recipient(user_id)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.put("/{notification_id}/read", response_model=NotificationResponse, summary="Mark a notification read")
async def mark_read(notification_id: str, service: NotificationService = Depends(get_notification_service)):
    return NotificationResponse.model_validate(await service.mark_read(notification_id))


@router.put(
    "/{notification_id}/status",
    response_model=NotificationResponse,
    summary="Change a notification's status",
    responses={409: {"description": "Status change not allowed from the current status"}},
)
async def update_status(
    notification_id: str,
    payload: StatusUpdateRequest,
    service: NotificationService = Depends(get_notification_service),
):
    return NotificationResponse.model_validate(await service.update_status(notification_id, payload.status))
