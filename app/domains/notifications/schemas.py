from datetime import datetime
from typing import Optional

from pydantic import Field

from ...shared.models.base import CamelModel
from .models import NotificationStatus, NotificationType


class NotificationResponse(CamelModel):
    id: str
    recipient_id: str
    message: str
    type: NotificationType
    related_request_id: Optional[str] = None
    is_read: bool
    status: NotificationStatus
    created_at: datetime
    updated_at: datetime


class StatusUpdateRequest(CamelModel):
    status: NotificationStatus = Field(..., description="Target status")


class MarkAllReadResponse(CamelModel):
    message: str
    modified_count: int


class UnreadCountResponse(CamelModel):
    count: int
