from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ...shared.models.base import CamelModel
from ..users.models import BloodType
from ..users.schemas import DonorResponse, DonorSummary
from .models import RequestStatus


class BloodRequestCreate(CamelModel):
    seeker_id: str = Field(..., min_length=1)
    blood_type: BloodType
    location: str = Field(..., min_length=1)
    location_url: Optional[str] = None
    patient_name: Optional[str] = None
    quantity: Optional[str] = None
    send_email_notifications: bool = Field(True, description="Also email matched donors")


class DonorData(CamelModel):
    """Profile of a donor accepting without an account; completeness is checked on accept"""
    name: Optional[str] = None
    email: Optional[str] = None
    blood_type: Optional[BloodType] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    email_notifications: Optional[bool] = None


class AcceptRequest(CamelModel):
    request_id: Optional[str] = None
    donor_id: Optional[str] = None
    donor_name: Optional[str] = None
    donor_data: Optional[DonorData] = None


class ConfirmDonationRequest(CamelModel):
    donor_id: Optional[str] = None
    request_id: Optional[str] = None


class BloodRequestResponse(CamelModel):
    id: str
    seeker_id: str
    blood_type: BloodType
    location: str
    location_url: Optional[str] = None
    patient_name: Optional[str] = None
    quantity: Optional[str] = None
    status: RequestStatus
    accepted_by: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AcceptResponse(CamelModel):
    request: BloodRequestResponse
    donor: Optional[DonorSummary] = None
    new_donor_created: bool = False


class ConfirmDonationResponse(CamelModel):
    message: str
    donor: DonorResponse
