from __future__ import annotations

from datetime import timedelta

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from app.domains.blood_requests.models import BloodRequest, RequestStatus
from app.domains.blood_requests.schemas import BloodRequestCreate
from app.domains.notifications.models import NotificationStatus, NotificationType
from app.domains.users.models import BloodType
from app.shared.exceptions import InvalidInputError, NotFoundError
from app.shared.models.base import utcnow

from .fakes import new_id


def intake(seeker_id, **kwargs) -> BloodRequestCreate:
    data = {"seekerId": seeker_id, "bloodType": "O-", "location": "Pune"}
    data.update(kwargs)
    return BloodRequestCreate.model_validate(data)


class TestCreateRequest:
    @pytest.mark.asyncio
    async def test_only_eligible_donors_are_notified(self, blood_service, notifications, email_sender, make_donor, seeker):
        """Three O- donors in Pune, one resting after a recent donation"""
        asha = make_donor("Asha", days_since_donation=200)
        vikram = make_donor("Vikram")
        make_donor("Neha", days_since_donation=30)
        make_donor("Rahul", blood_type=BloodType.B_POS)

        request = await blood_service.create_request(intake(seeker.id, patientName="R. Kulkarni"))

        rows = notifications.of_type(NotificationType.BLOOD_REQUEST)
        assert sorted(n.recipient_id for n in rows) == sorted([asha.id, vikram.id])
        assert all(n.related_request_id == request.id and n.status == NotificationStatus.PENDING for n in rows)
        assert sorted(to for to, _, _ in email_sender.sent) == sorted([asha.email, vikram.email])

    @pytest.mark.asyncio
    async def test_request_is_persisted_pending(self, blood_service, requests_repo, seeker):
        request = await blood_service.create_request(intake(seeker.id, quantity="2 units"))

        stored = requests_repo.requests[request.id]
        assert stored.status == RequestStatus.PENDING
        assert stored.accepted_by == []
        assert stored.quantity == "2 units"

    @pytest.mark.asyncio
    async def test_publishes_blood_request_event(self, blood_service, publisher, seeker):
        request = await blood_service.create_request(intake(seeker.id))

        assert publisher.topics() == ["blood-requests"]
        payload = publisher.published[0][1]
        assert payload["requestId"] == request.id
        assert payload["seekerId"] == seeker.id
        assert payload["bloodType"] == "O-"
        assert payload["location"] == "Pune"
        assert "timestamp" in payload

    @pytest.mark.asyncio
    async def test_seeker_is_never_a_candidate(self, blood_service, notifications, users, make_donor):
        seeker_donor = make_donor("Self Seeker")

        await blood_service.create_request(intake(seeker_donor.id))

        assert notifications.of_type(NotificationType.BLOOD_REQUEST) == []

    @pytest.mark.asyncio
    async def test_email_opt_out_still_creates_in_app_notifications(self, blood_service, notifications, email_sender, make_donor, seeker):
        make_donor("Asha")

        await blood_service.create_request(intake(seeker.id, sendEmailNotifications=False))

        assert len(notifications.of_type(NotificationType.BLOOD_REQUEST)) == 1
        assert email_sender.sent == []

    @pytest.mark.asyncio
    async def test_malformed_seeker_id_is_invalid_input(self, blood_service, requests_repo):
        with pytest.raises(InvalidInputError) as exc_info:
            await blood_service.create_request(intake("not-an-id"))
        assert [e.field for e in exc_info.value.errors] == ["seekerId"]
        assert requests_repo.requests == {}

    @pytest.mark.asyncio
    async def test_matching_failure_does_not_fail_intake(self, blood_service, users, requests_repo, publisher, seeker):
        users.fail_with = ServerSelectionTimeoutError("no servers")

        request = await blood_service.create_request(intake(seeker.id))

        assert request.id in requests_repo.requests
        assert publisher.topics() == ["blood-requests"]

    @pytest.mark.asyncio
    async def test_notify_donors_reports_fan_out(self, blood_service, make_donor, pending_request):
        make_donor("A")
        make_donor("B")

        report = await blood_service.notify_donors(pending_request, notify_by_email=False)

        assert report.notified == 2
        assert report.emailed == 0


class TestRequestLifecycle:
    @pytest.mark.asyncio
    async def test_pune_o_negative_request_through_first_acceptance(
        self, blood_service, coordinator, requests_repo, notifications, email_sender, make_donor, seeker,
    ):
        """Two O- donors and one A+ donor in Pune; the first O- donor to accept wins"""
        donor_a = make_donor("Donor A")
        donor_b = make_donor("Donor B")
        make_donor("Donor C", blood_type=BloodType.A_POS)

        request = await blood_service.create_request(intake(seeker.id))

        offers = {n.recipient_id: n for n in notifications.of_type(NotificationType.BLOOD_REQUEST)}
        assert set(offers) == {donor_a.id, donor_b.id}
        assert sorted(to for to, _, _ in email_sender.sent) == sorted([donor_a.email, donor_b.email])

        await coordinator.accept(request.id, donor_id=donor_a.id)

        assert notifications.notifications[offers[donor_a.id].id].status == NotificationStatus.ACCEPTED
        assert notifications.notifications[offers[donor_b.id].id].status == NotificationStatus.EXPIRED
        seeker_rows = [n for n in notifications.of_type(NotificationType.REQUEST_ACCEPTED) if n.recipient_id == seeker.id]
        assert len(seeker_rows) == 1
        assert seeker_rows[0].related_request_id == request.id
        assert requests_repo.requests[request.id].accepted_by == [donor_a.id]


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_request_not_found(self, blood_service):
        with pytest.raises(NotFoundError):
            await blood_service.get_request(new_id())

    @pytest.mark.asyncio
    async def test_list_accepted_donors_in_acceptance_order(self, blood_service, coordinator, make_donor, pending_request):
        first, second = make_donor("First"), make_donor("Second")
        await coordinator.accept(pending_request.id, donor_id=second.id)
        await coordinator.accept(pending_request.id, donor_id=first.id)

        donors = await blood_service.list_accepted_donors(pending_request.id)

        assert [d.id for d in donors] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_requests_newest_first(self, blood_service, requests_repo, seeker):
        now = utcnow()
        older = requests_repo.add(BloodRequest(seeker_id=seeker.id, blood_type=BloodType.A_POS, location="Pune",
                                               created_at=now - timedelta(hours=2)))
        newer = requests_repo.add(BloodRequest(seeker_id=seeker.id, blood_type=BloodType.A_POS, location="Pune",
                                               created_at=now))

        assert [r.id for r in await blood_service.list_requests()] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_search_donors_by_type_and_location(self, blood_service, make_donor):
        hit = make_donor("Hit", location="Kothrud, Pune")
        make_donor("Elsewhere", location="Nagpur")
        make_donor("Other Type", blood_type=BloodType.AB_POS)

        found = await blood_service.search_donors(BloodType.O_NEG, "pune")

        assert [d.id for d in found] == [hit.id]


class TestConfirmDonation:
    @pytest.mark.asyncio
    async def test_starts_cooldown_and_marks_unavailable(self, blood_service, users, make_donor):
        donor = make_donor("Asha")
        before = utcnow()

        updated, request = await blood_service.confirm_donation(donor.id)

        assert request is None
        assert updated.is_available is False
        assert updated.last_donated_date >= before
        assert users.users[donor.id].is_available is False

    @pytest.mark.asyncio
    async def test_confirmed_donor_drops_out_of_matching(self, blood_service, make_donor, seeker):
        donor = make_donor("Asha")
        await blood_service.confirm_donation(donor.id)

        assert await blood_service.search_donors(BloodType.O_NEG) == []

    @pytest.mark.asyncio
    async def test_fulfils_the_request(self, blood_service, requests_repo, make_donor, pending_request):
        donor = make_donor("Asha")

        _, request = await blood_service.confirm_donation(donor.id, pending_request.id)

        assert request.status == RequestStatus.FULFILLED
        assert requests_repo.requests[pending_request.id].status == RequestStatus.FULFILLED

    @pytest.mark.asyncio
    async def test_confirming_a_fulfilled_request_again_is_harmless(self, blood_service, make_donor, pending_request):
        donor = make_donor("Asha")
        await blood_service.confirm_donation(donor.id, pending_request.id)

        _, request = await blood_service.confirm_donation(donor.id, pending_request.id)

        assert request.status == RequestStatus.FULFILLED

    @pytest.mark.asyncio
    async def test_unknown_request_id_is_ignored(self, blood_service, make_donor):
        donor = make_donor("Asha")
        updated, request = await blood_service.confirm_donation(donor.id, new_id())
        assert request is None
        assert updated.is_available is False

    @pytest.mark.asyncio
    async def test_donor_id_required(self, blood_service):
        with pytest.raises(InvalidInputError) as exc_info:
            await blood_service.confirm_donation(None)
        assert [e.field for e in exc_info.value.errors] == ["donorId"]

    @pytest.mark.asyncio
    async def test_unknown_donor_not_found(self, blood_service):
        with pytest.raises(NotFoundError):
            await blood_service.confirm_donation(new_id())
