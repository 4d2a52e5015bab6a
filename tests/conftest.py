"""
Shared fixtures: in-memory repositories and recording collaborators.
"""

from datetime import timedelta

import pytest

from app.domains.blood_requests.acceptance import AcceptanceCoordinator
from app.domains.blood_requests.matcher import DonorMatcher
from app.domains.blood_requests.models import BloodRequest
from app.domains.blood_requests.service import BloodRequestService
from app.domains.notifications.dispatcher import NotificationDispatcher
from app.domains.users.models import BloodType, User, UserRole
from app.shared.models.base import utcnow

from .fakes import (
    FakeUserRepository, FakeBloodRequestRepository, FakeNotificationRepository,
    RecordingEmailSender, RecordingPublisher, FakePasswordHasher,
)


@pytest.fixture
def users():
    return FakeUserRepository()


@pytest.fixture
def requests_repo():
    return FakeBloodRequestRepository()


@pytest.fixture
def notifications():
    return FakeNotificationRepository()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def hasher():
    return FakePasswordHasher()


@pytest.fixture
def dispatcher(notifications, email_sender):
    return NotificationDispatcher(notifications, email_sender, concurrency=4, frontend_url="https://bloodlink.test")


@pytest.fixture
def blood_service(requests_repo, users, dispatcher, publisher):
    return BloodRequestService(
        requests=requests_repo,
        users=users,
        matcher=DonorMatcher(users),
        dispatcher=dispatcher,
        event_bus=publisher,
    )


@pytest.fixture
def coordinator(users, requests_repo, notifications, publisher, hasher):
    return AcceptanceCoordinator(users, requests_repo, notifications, publisher, hasher)


@pytest.fixture
def make_donor(users):
    def _make(name="Donor", blood_type=BloodType.O_NEG, location="Pune", days_since_donation=None, **kwargs):
        last = utcnow() - timedelta(days=days_since_donation) if days_since_donation is not None else None
        return users.add(User(
            name=name,
            email=kwargs.pop("email", f"{name.lower().replace(' ', '.')}@example.com"),
            blood_type=blood_type,
            location=location,
            last_donated_date=last,
            **kwargs,
        ))
    return _make


@pytest.fixture
def seeker(users):
    return users.add(User(name="Seeker", email="seeker@example.com", role=UserRole.SEEKER, location="Pune"))


@pytest.fixture
def pending_request(requests_repo, seeker):
    return requests_repo.add(BloodRequest(seeker_id=seeker.id, blood_type=BloodType.O_NEG, location="Pune"))
