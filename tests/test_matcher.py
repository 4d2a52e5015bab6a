from __future__ import annotations

from datetime import datetime, timedelta, timezone
import re
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from app.domains.blood_requests.matcher import DonorMatcher, cooldown_cutoff, is_eligible
from app.domains.users.models import BloodType, User
from app.domains.users.repository import UserRepository, PUBLIC_PROJECTION
from app.shared.exceptions import DonorLookupError, InvalidInputError


NOW = datetime(2024, 10, 1, 12, 0, tzinfo=timezone.utc)
CUTOFF = cooldown_cutoff(NOW)


def donor(**kwargs) -> User:
    data = {"id": "65f000000000000000000001", "name": "Asha", "email": "asha@example.com", "blood_type": BloodType.O_NEG}
    data.update(kwargs)
    return User(**data)


class TestCooldown:
    """Cooldown window after a confirmed donation"""

    def test_cutoff_is_ninety_days_back(self):
        assert cooldown_cutoff(NOW) == NOW - timedelta(days=90)

    def test_naive_now_is_treated_as_utc(self):
        assert cooldown_cutoff(NOW.replace(tzinfo=None)) == NOW - timedelta(days=90)

    def test_donated_89_days_ago_is_excluded(self):
        assert not is_eligible(donor(last_donated_date=NOW - timedelta(days=89)), CUTOFF)

    def test_donated_91_days_ago_is_included(self):
        assert is_eligible(donor(last_donated_date=NOW - timedelta(days=91)), CUTOFF)

    def test_never_donated_is_included(self):
        assert is_eligible(donor(last_donated_date=None), CUTOFF)

    def test_boundary_instant_is_still_cooling_down(self):
        assert not is_eligible(donor(last_donated_date=cooldown_cutoff(NOW)), CUTOFF)

    @pytest.mark.parametrize("now", [
        datetime(2024, 5, 31, tzinfo=timezone.utc),
        datetime(2024, 10, 1, tzinfo=timezone.utc),
        datetime(2023, 3, 1, tzinfo=timezone.utc),
    ])
    def test_boundary_holds_on_any_calendar_date(self, now):
        assert not is_eligible(donor(last_donated_date=now - timedelta(days=89)), cooldown_cutoff(now))
        assert is_eligible(donor(last_donated_date=now - timedelta(days=91)), cooldown_cutoff(now))


class TestEligibilityFilters:
    def test_unavailable_donor_excluded(self):
        assert not is_eligible(donor(is_available=False), CUTOFF)

    def test_requester_excluded(self):
        user = donor()
        assert not is_eligible(user, CUTOFF, exclude_user_id=user.id)

    def test_blood_type_must_match(self):
        assert is_eligible(donor(), CUTOFF, blood_type=BloodType.O_NEG)
        assert not is_eligible(donor(blood_type=BloodType.A_POS), CUTOFF, blood_type="O-")

    def test_location_is_case_insensitive_substring(self):
        assert is_eligible(donor(location="Kothrud, PUNE"), CUTOFF, location=" pune ")
        assert not is_eligible(donor(location="Mumbai"), CUTOFF, location="pune")
        assert not is_eligible(donor(location=None), CUTOFF, location="pune")


class TestDonorMatcher:
    """Matcher over the in-memory user store"""

    @pytest.mark.asyncio
    async def test_conjunctive_filter(self, users, make_donor, seeker):
        eligible = make_donor("Eligible")
        make_donor("Wrong Type", blood_type=BloodType.A_POS)
        make_donor("Resting", days_since_donation=30)
        make_donor("Away", is_available=False)
        rested = make_donor("Rested", days_since_donation=120)

        matcher = DonorMatcher(users)
        found = await matcher.find_candidates(BloodType.O_NEG, exclude_user_id=seeker.id)

        assert [u.id for u in found] == [eligible.id, rested.id]

    @pytest.mark.asyncio
    async def test_cooldown_window_through_matcher(self, users):
        recent = users.add(donor(id=str(ObjectId()), name="Recent", last_donated_date=NOW - timedelta(days=89)))
        rested = users.add(donor(id=str(ObjectId()), name="Rested", last_donated_date=NOW - timedelta(days=91)))

        found = await DonorMatcher(users).find_candidates(BloodType.O_NEG, now=NOW)

        assert [u.id for u in found] == [rested.id]
        assert recent.id not in {u.id for u in found}
        assert users.last_cutoff == NOW - timedelta(days=90)

    @pytest.mark.asyncio
    async def test_requester_never_matches_themselves(self, users, make_donor):
        me = make_donor("Self")
        found = await DonorMatcher(users).find_candidates(BloodType.O_NEG, exclude_user_id=me.id)
        assert found == []

    @pytest.mark.asyncio
    async def test_location_filter_is_case_insensitive_substring(self, users, make_donor):
        pune = make_donor("Pune Donor", location="Kothrud, PUNE")
        make_donor("Mumbai Donor", location="Mumbai")

        found = await DonorMatcher(users).find_candidates(None, location="pune")
        assert [u.id for u in found] == [pune.id]

    @pytest.mark.asyncio
    async def test_matching_has_no_side_effects(self, users, make_donor):
        make_donor("A")
        before = {k: v.model_dump() for k, v in users.users.items()}
        await DonorMatcher(users).find_candidates(BloodType.O_NEG)
        assert {k: v.model_dump() for k, v in users.users.items()} == before

    @pytest.mark.asyncio
    async def test_storage_failure_raises_lookup_error(self, users, make_donor):
        make_donor("A")
        users.fail_with = ServerSelectionTimeoutError("no servers")

        with pytest.raises(DonorLookupError) as exc_info:
            await DonorMatcher(users).find_candidates(BloodType.O_NEG)
        assert exc_info.value.status_code == 500


class TestCandidateQuery:
    """Mongo query built by the user repository"""

    def test_query_shape(self):
        cutoff = NOW - timedelta(days=90)
        query = UserRepository.build_candidate_query(
            BloodType.O_NEG, cutoff, exclude_user_id="65f000000000000000000009", location="Pune (West)"
        )

        assert query["is_available"] is True
        assert query["blood_type"] == "O-"
        assert str(query["_id"]["$ne"]) == "65f000000000000000000009"
        assert query["$or"] == [
            {"last_donated_date": None},
            {"last_donated_date": {"$lt": cutoff}},
        ]
        # user input is matched literally
        assert query["location"] == {"$regex": re.escape("Pune (West)"), "$options": "i"}
        assert r"\(" in query["location"]["$regex"]

    def test_optional_filters_omitted(self):
        query = UserRepository.build_candidate_query(None, NOW)
        assert "blood_type" not in query
        assert "_id" not in query
        assert "location" not in query

    def test_malformed_exclude_id_is_invalid_input(self):
        with pytest.raises(InvalidInputError):
            UserRepository.build_candidate_query(BloodType.O_NEG, NOW, exclude_user_id="not-an-id")

    @pytest.mark.asyncio
    async def test_find_candidates_hides_password_hash(self, mock_database):
        collection = mock_database.collections["users"]
        collection.find.return_value.to_list = AsyncMock(return_value=[
            {"_id": ObjectId("65f000000000000000000001"), "name": "Asha",
             "email": "asha@example.com", "blood_type": "O-", "is_available": True},
        ])

        repo = UserRepository(mock_database)
        found = await repo.find_candidates(BloodType.O_NEG, NOW)

        args, _ = collection.find.call_args
        assert args[1] == PUBLIC_PROJECTION
        assert found[0].id == "65f000000000000000000001"
        assert found[0].password_hash is None
