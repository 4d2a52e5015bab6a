"""
Blood request routes: intake, acceptance, donor search and admin views.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.database import get_database_async
from ...core.dependencies import get_event_bus_dependency, get_email_service, get_password_hasher
from ...core.security import PasswordHasher
from ...shared.events.event_bus import EventBus
from ...shared.services.email_service import EmailService
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.repository import NotificationRepository
from ..users.models import BloodType
from ..users.repository import UserRepository
from ..users.schemas import DonorResponse, DonorSummary
from .acceptance import AcceptanceCoordinator
from .matcher import DonorMatcher
from .repository import BloodRequestRepository
from .schemas import (
    AcceptRequest, AcceptResponse, BloodRequestCreate, BloodRequestResponse,
    ConfirmDonationRequest, ConfirmDonationResponse,
)
from .service import BloodRequestService


router = APIRouter(
    prefix="/blood",
    tags=["Blood Requests"],
    responses={
        400: {"description": "Missing or invalid fields"},
        500: {"description": "Server error"},
    },
)


async def get_blood_request_service(
    db: AsyncIOMotorDatabase = Depends(get_database_async),
    event_bus: EventBus = Depends(get_event_bus_dependency),
    email_service: EmailService = Depends(get_email_service),
) -> BloodRequestService:
    users = UserRepository(db)
    return BloodRequestService(
        requests=BloodRequestRepository(db),
        users=users,
        matcher=DonorMatcher(users),
        dispatcher=NotificationDispatcher(NotificationRepository(db), email_service),
        event_bus=event_bus,
    )


async def get_acceptance_coordinator(
    db: AsyncIOMotorDatabase = Depends(get_database_async),
    event_bus: EventBus = Depends(get_event_bus_dependency),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> AcceptanceCoordinator:
    return AcceptanceCoordinator(
        users=UserRepository(db),
        requests=BloodRequestRepository(db),
        notifications=NotificationRepository(db),
        event_bus=event_bus,
        password_hasher=hasher,
    )


@router.post(
    "/request",
    response_model=BloodRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a blood request",
    description="""
    Creates a blood request and notifies matching donors.

    Matching donors are available, of the requested blood type, not the
    seeker and have not donated in the last 90 days. Each gets an in-app
    notification and, unless `sendEmailNotifications` is false or the donor
    opted out, an email with a link to accept.
    """,
)
async def create_request(payload: BloodRequestCreate, service: BloodRequestService = Depends(get_blood_request_service)):
    request = await service.create_request(payload)
    return BloodRequestResponse.model_validate(request)


@router.post(
    "/accept",
    response_model=AcceptResponse,
    summary="Accept a blood request",
    description="""
    Records a donor as accepting the request. Pass `donorId` for a known
    donor or `donorData` (name, email, bloodType, location) to accept
    without an account; a donor account is created when the email is new.
    Accepting twice is harmless: the second call changes nothing.
    """,
    responses={404: {"description": "Request not found"}},
)
async def accept_request(payload: AcceptRequest, coordinator: AcceptanceCoordinator = Depends(get_acceptance_coordinator)):
    result = await coordinator.accept(
        payload.request_id,
        donor_id=payload.donor_id,
        donor_name=payload.donor_name,
        donor_data=payload.donor_data.model_dump(exclude_none=True) if payload.donor_data else None,
    )
    return AcceptResponse(
        request=BloodRequestResponse.model_validate(result.request),
        donor=DonorSummary.model_validate(result.donor) if result.donor else None,
        new_donor_created=result.new_donor_created,
    )


@router.get("/donors", response_model=List[DonorResponse], summary="Search eligible donors")
async def search_donors(
    blood_type: Optional[BloodType] = Query(None, alias="bloodType"),
    location: Optional[str] = Query(None, description="Case-insensitive substring of the donor location"),
    service: BloodRequestService = Depends(get_blood_request_service),
):
    donors = await service.search_donors(blood_type, location)
    return [DonorResponse.model_validate(d) for d in donors]


@router.get(
    "/requests/{request_id}",
    response_model=BloodRequestResponse,
    summary="Get a blood request",
    responses={404: {"description": "Request not found"}},
)
async def get_request(request_id: str, service: BloodRequestService = Depends(get_blood_request_service)):
    return BloodRequestResponse.model_validate(await service.get_request(request_id))


@router.get(
    "/requests/{request_id}/donors",
    response_model=List[DonorResponse],
    summary="Donors who accepted a request",
    responses={404: {"description": "Request not found"}},
)
async def list_accepted_donors(request_id: str, service: BloodRequestService = Depends(get_blood_request_service)):
    donors = await service.list_accepted_donors(request_id)
    return [DonorResponse.model_validate(d) for d in donors]


@router.get("/admin/requests", response_model=List[BloodRequestResponse], summary="All requests, newest first")
async def list_requests(service: BloodRequestService = Depends(get_blood_request_service)):
    return [BloodRequestResponse.model_validate(r) for r in await service.list_requests()]


@router.post(
    "/confirm-donation",
    response_model=ConfirmDonationResponse,
    summary="Confirm a completed donation",
    responses={404: {"description": "Donor not found"}},
)
async def confirm_donation(payload: ConfirmDonationRequest, service: BloodRequestService = Depends(get_blood_request_service)):
    donor, _ = await service.confirm_donation(payload.donor_id, payload.request_id)
    return ConfirmDonationResponse(message="Donation confirmed successfully", donor=DonorResponse.model_validate(donor))
