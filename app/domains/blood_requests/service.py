"""
Blood request service.

Intake persists the request first; broadcasting it, matching donors and
notifying them are best-effort steps that never fail the intake call.
"""

import logging
from typing import List, Optional, Tuple

from ...shared.events import BLOOD_REQUESTS
from ...shared.exceptions import NotFoundError, InvalidInputError
from ...shared.models.base import parse_id, utcnow
from ..notifications.dispatcher import NotificationDispatcher, DispatchReport
from ..users.models import BloodType, User
from ..users.repository import UserRepository
from .acceptance import EventPublisher
from .matcher import DonorMatcher
from .models import BloodRequest, RequestStatus, transition
from .repository import BloodRequestRepository
from .schemas import BloodRequestCreate

logger = logging.getLogger(__name__)


class BloodRequestService:
    def __init__(
        self,
        requests: BloodRequestRepository,
        users: UserRepository,
        matcher: DonorMatcher,
        dispatcher: NotificationDispatcher,
        event_bus: EventPublisher,
    ):
        self.requests = requests
        self.users = users
        self.matcher = matcher
        self.dispatcher = dispatcher
        self.event_bus = event_bus

    async def create_request(self, payload: BloodRequestCreate) -> BloodRequest:
        parse_id(payload.seeker_id, "seekerId")
        request = await self.requests.create(BloodRequest(
            seeker_id=payload.seeker_id,
            blood_type=payload.blood_type,
            location=payload.location,
            location_url=payload.location_url,
            patient_name=payload.patient_name,
            quantity=payload.quantity,
        ))

        await self.event_bus.publish(BLOOD_REQUESTS, {
            "requestId": request.id,
            "seekerId": request.seeker_id,
            "bloodType": request.blood_type.value,
            "location": request.location,
            "timestamp": utcnow().isoformat(),
        })

        await self.notify_donors(request, payload.send_email_notifications)
        return request

    async def notify_donors(self, request: BloodRequest, notify_by_email: bool = True) -> Optional[DispatchReport]:
        """Match and fan out; failures are logged, never raised"""
        try:
            candidates = await self.matcher.find_candidates(request.blood_type, exclude_user_id=request.seeker_id)
            return await self.dispatcher.dispatch(request, candidates, notify_by_email)
        except Exception as e:
            logger.error(f"Notifying donors for request {request.id} failed: {e}")
            return None

    async def get_request(self, request_id: str) -> BloodRequest:
        request = await self.requests.find_by_id(request_id)
        if request is None:
            raise NotFoundError("Blood request", request_id)
        return request

    async def list_accepted_donors(self, request_id: str) -> List[User]:
        request = await self.get_request(request_id)
        return await self.users.find_many_by_ids(request.accepted_by)

    async def list_requests(self) -> List[BloodRequest]:
        return await self.requests.list_all()

    async def confirm_donation(self, donor_id: Optional[str], request_id: Optional[str] = None) -> Tuple[User, Optional[BloodRequest]]:
        """
        Record a completed donation.

        The donor starts their cooldown and is marked unavailable; the request,
        when given and found, becomes fulfilled.
        """
        if not donor_id:
            raise InvalidInputError("donorId is required", fields=["donorId"])

        donor = await self.users.update_fields(donor_id, {"last_donated_date": utcnow(), "is_available": False})
        if donor is None:
            raise NotFoundError("Donor", donor_id)

        request = None
        if request_id:
            request = await self.requests.find_by_id(request_id)
            if request is not None:
                request = await self._fulfil(request)

        logger.info(f"Donation confirmed for donor {donor_id} (request {request_id})")
        return donor, request

    async def _fulfil(self, request: BloodRequest) -> BloodRequest:
        target = transition(request.status, RequestStatus.FULFILLED)
        if target == request.status:
            return request
        return await self.requests.set_status(request.id, request.status, target) or request

    async def search_donors(self, blood_type: Optional[BloodType] = None, location: Optional[str] = None) -> List[User]:
        return await self.matcher.find_candidates(blood_type, location=location)
