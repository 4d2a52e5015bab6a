from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import Field

from ...shared.exceptions import InvalidStatusTransition
from ...shared.models.base import BaseDocument
from ..users.models import BloodType


class RequestStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"


REQUEST_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.FULFILLED}),
    RequestStatus.FULFILLED: frozenset(),
}


def transition(current: RequestStatus, target: RequestStatus) -> RequestStatus:
    current, target = RequestStatus(current), RequestStatus(target)
    if current != target and target not in REQUEST_TRANSITIONS[current]:
        raise InvalidStatusTransition("Blood request", current.value, target.value)
    return target


class BloodRequest(BaseDocument):
    seeker_id: str = Field(..., description="User who needs blood")
    blood_type: BloodType
    location: str = Field(..., min_length=1)
    location_url: Optional[str] = None
    patient_name: Optional[str] = None
    quantity: Optional[str] = None
    status: RequestStatus = Field(RequestStatus.PENDING)
    accepted_by: List[str] = Field(default_factory=list, description="Donor ids, each at most once")
