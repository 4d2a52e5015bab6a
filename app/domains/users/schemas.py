from datetime import datetime
from typing import Optional

from pydantic import Field

from ...shared.models.base import CamelModel
from .models import BloodType, UserRole


class DonorResponse(CamelModel):
    """Public view of a user; never carries the credential"""
    id: str
    name: str
    email: str
    role: UserRole = UserRole.DONOR
    blood_type: Optional[BloodType] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    is_available: bool = True
    email_notifications: bool = True
    last_donated_date: Optional[datetime] = None


class DonorSummary(CamelModel):
    id: str
    name: str
    email: str


class AvailabilityResponse(CamelModel):
    message: str
    is_available: bool = Field(..., description="Availability after the toggle")
    user: DonorResponse
