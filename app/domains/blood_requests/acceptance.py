"""
Donor acceptance of a blood request.

Membership in `accepted_by` is decided by one atomic storage update, so a
donor is added at most once and only the call that added them runs the side
effects: the seeker's notification, the donor's own notification moving to
accepted, the other pending notifications expiring and the
`donation-offers` event.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple

from pydantic import EmailStr, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from ...core.security import PasswordHasher
from ...shared.events import DONATION_OFFERS
from ...shared.exceptions import InvalidInputError, NotFoundError
from ...shared.models.base import utcnow
from ..notifications.models import Notification, NotificationType
from ..notifications.repository import NotificationRepository
from ..users.models import BloodType, User, UserRole
from ..users.repository import UserRepository
from .models import BloodRequest
from .repository import BloodRequestRepository

logger = logging.getLogger(__name__)

REQUIRED_DONOR_FIELDS = ("name", "email", "blood_type", "location")

_email_adapter = TypeAdapter(EmailStr)


class EventPublisher(Protocol):
    async def publish(self, topic: str, payload: Dict[str, Any]) -> None: ...


@dataclass
class AcceptanceResult:
    request: BloodRequest
    donor: Optional[User]
    newly_accepted: bool
    new_donor_created: bool = False


def accepted_message(donor_name: Optional[str], blood_type: Any) -> str:
    return f"{donor_name or 'A donor'} has accepted your blood request for {getattr(blood_type, 'value', blood_type)}."


class AcceptanceCoordinator:
    def __init__(
        self,
        users: UserRepository,
        requests: BloodRequestRepository,
        notifications: NotificationRepository,
        event_bus: EventPublisher,
        password_hasher: PasswordHasher,
    ):
        self.users = users
        self.requests = requests
        self.notifications = notifications
        self.event_bus = event_bus
        self.password_hasher = password_hasher

    async def accept(
        self,
        request_id: Optional[str],
        donor_id: Optional[str] = None,
        donor_name: Optional[str] = None,
        donor_data: Optional[Dict[str, Any]] = None,
    ) -> AcceptanceResult:
        """
        Record `donor_id` (or the donor described by `donor_data`) as accepting the request.

        Raises:
            InvalidInputError: requestId missing, or neither donorId nor a complete donor profile
            NotFoundError: the request does not exist
        """
        donor: Optional[User] = None
        new_donor_created = False

        if donor_data:
            self._validate_donor_data(request_id, donor_data)
            donor, new_donor_created = await self._resolve_donor(donor_data)
            donor_id, donor_name = donor.id, donor.name
        elif not request_id or not donor_id:
            raise InvalidInputError(
                "requestId and donorId are required",
                fields=[name for name, value in (("requestId", request_id), ("donorId", donor_id)) if not value],
            )
        else:
            donor = await self.users.find_by_id(donor_id)
            if donor is not None and not donor_name:
                donor_name = donor.name

        request = await self.requests.find_by_id(request_id)
        if request is None:
            raise NotFoundError("Blood request", request_id)

        newly_accepted = await self.requests.add_accepted_donor(request.id, donor_id)
        current = await self.requests.find_by_id(request.id) or request

        if not newly_accepted:
            logger.info(f"Donor {donor_id} already accepted request {request.id}; nothing to do")
            return AcceptanceResult(current, donor, False, new_donor_created)

        await self._apply_side_effects(current, donor_id, donor_name)
        return AcceptanceResult(current, donor, True, new_donor_created)

    def _validate_donor_data(self, request_id: Optional[str], donor_data: Dict[str, Any]) -> None:
        missing = [to_camel(field) for field in REQUIRED_DONOR_FIELDS if not donor_data.get(field)]
        if not request_id:
            missing.insert(0, "requestId")
        if missing:
            raise InvalidInputError(
                "requestId, name, email, bloodType, and location are required for new donor registration",
                fields=missing,
            )
        try:
            _email_adapter.validate_python(donor_data["email"])
            BloodType(donor_data["blood_type"])
        except (ValidationError, ValueError) as e:
            raise InvalidInputError(f"Invalid donor profile: {e}") from e

    async def _resolve_donor(self, donor_data: Dict[str, Any]) -> Tuple[User, bool]:
        """Existing user with that email, or a freshly provisioned donor"""
        email = donor_data["email"].strip().lower()
        existing = await self.users.find_by_email(email)
        if existing is not None:
            return existing, False

        email_notifications = donor_data.get("email_notifications")
        donor = await self.users.create(User(
            name=donor_data["name"],
            email=email,
            password_hash=self.password_hasher.placeholder_hash(),
            role=UserRole.DONOR,
            blood_type=BloodType(donor_data["blood_type"]),
            location=donor_data["location"],
            phone=donor_data.get("phone") or "",
            is_available=True,
            email_notifications=True if email_notifications is None else bool(email_notifications),
        ))
        logger.info(f"Provisioned donor {donor.id} while accepting a request")
        return donor, True

    async def _apply_side_effects(self, request: BloodRequest, donor_id: str, donor_name: Optional[str]) -> None:
        await self.notifications.create(Notification(
            recipient_id=request.seeker_id,
            message=accepted_message(donor_name, request.blood_type),
            type=NotificationType.REQUEST_ACCEPTED,
            related_request_id=request.id,
        ))
        await self.notifications.mark_accepted(request.id, donor_id)
        await self.notifications.expire_pending_siblings(request.id, donor_id)
        await self.event_bus.publish(DONATION_OFFERS, {
            "requestId": request.id,
            "donorId": donor_id,
            "donorName": donor_name,
            "seekerId": request.seeker_id,
            "timestamp": utcnow().isoformat(),
        })
        logger.info(f"Donor {donor_id} accepted request {request.id}")
