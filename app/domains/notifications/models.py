"""
Notification models and the status lifecycle.

A `blood_request` notification starts `pending` and ends in exactly one of
`accepted`, `rejected` or `expired`. Terminal rows never move again.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional, List

from pydantic import Field

from ...shared.exceptions import InvalidStatusTransition
from ...shared.models.base import BaseDocument


class NotificationType(str, Enum):
    BLOOD_REQUEST = "blood_request"
    REQUEST_ACCEPTED = "request_accepted"
    OTHER = "other"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


NOTIFICATION_TRANSITIONS: Dict[NotificationStatus, FrozenSet[NotificationStatus]] = {
    NotificationStatus.PENDING: frozenset({
        NotificationStatus.ACCEPTED,
        NotificationStatus.REJECTED,
        NotificationStatus.EXPIRED,
    }),
    NotificationStatus.ACCEPTED: frozenset(),
    NotificationStatus.REJECTED: frozenset(),
    NotificationStatus.EXPIRED: frozenset(),
}


def can_transition(current: NotificationStatus, target: NotificationStatus) -> bool:
    current, target = NotificationStatus(current), NotificationStatus(target)
    return current == target or target in NOTIFICATION_TRANSITIONS[current]


def transition(current: NotificationStatus, target: NotificationStatus) -> NotificationStatus:
    """Return the new status, or raise InvalidStatusTransition for an illegal move"""
    if not can_transition(current, target):
        raise InvalidStatusTransition("Notification", NotificationStatus(current).value, NotificationStatus(target).value)
    return NotificationStatus(target)


def sources_for(target: NotificationStatus) -> List[NotificationStatus]:
    """Statuses a row may be in for a bulk update to move it to `target`"""
    target = NotificationStatus(target)
    return [status for status, targets in NOTIFICATION_TRANSITIONS.items() if target in targets]


class Notification(BaseDocument):
    recipient_id: str = Field(..., description="User the notification is for")
    message: str = Field(..., min_length=1)
    type: NotificationType = Field(NotificationType.OTHER)
    related_request_id: Optional[str] = Field(None)
    is_read: bool = Field(False)
    status: NotificationStatus = Field(NotificationStatus.PENDING)
