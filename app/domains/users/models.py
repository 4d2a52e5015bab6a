"""
User domain models.

A user is a donor, a seeker or an admin. Donors carry the attributes the
matcher filters on: blood type, availability and last donation date.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import Field, field_validator

from ...shared.models.base import BaseDocument, ensure_utc


class BloodType(str, Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


class UserRole(str, Enum):
    DONOR = "donor"
    SEEKER = "seeker"
    ADMIN = "admin"


class User(BaseDocument):
    """Registered user (donor, seeker or admin)"""
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address, stored lower-cased")
    password_hash: Optional[str] = Field(None, description="Hashed credential")
    role: UserRole = Field(UserRole.DONOR)
    blood_type: Optional[BloodType] = Field(None)
    location: Optional[str] = Field(None)
    phone: Optional[str] = Field(None)
    is_available: bool = Field(True, description="Willing to be matched")
    email_notifications: bool = Field(True, description="Receives request emails")
    last_donated_date: Optional[datetime] = Field(None, description="Last confirmed donation")
    push_subscription: Optional[Dict[str, Any]] = Field(None)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("last_donated_date", mode="after")
    @classmethod
    def last_donated_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)
