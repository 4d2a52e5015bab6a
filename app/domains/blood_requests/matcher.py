"""
Donor matching.

A donor is a candidate when they are available, not the requester, of the
requested blood type and outside the cooldown window after their last
donation. The matcher only reads; it never changes a user.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from pymongo.errors import PyMongoError

from ...core.config import settings
from ...shared.exceptions import DonorLookupError
from ...shared.models.base import ensure_utc, utcnow
from ..users.models import BloodType, User
from ..users.repository import UserRepository

logger = logging.getLogger(__name__)


def cooldown_cutoff(now: datetime, cooldown_days: Optional[int] = None) -> datetime:
    """Donations strictly before this instant no longer block matching"""
    days = settings.donor_cooldown_days if cooldown_days is None else cooldown_days
    return ensure_utc(now) - timedelta(days=days)


def is_eligible(
    user: User,
    cutoff: datetime,
    blood_type: Optional[BloodType] = None,
    exclude_user_id: Optional[str] = None,
    location: Optional[str] = None,
) -> bool:
    """
    The candidate predicate evaluated in memory.

    Mirrors `UserRepository.build_candidate_query` for the same `cutoff`
    (see `cooldown_cutoff`), for stores that cannot run the Mongo query.
    """
    if not user.is_available:
        return False
    if exclude_user_id and user.id == exclude_user_id:
        return False
    if blood_type and user.blood_type != BloodType(blood_type):
        return False
    if location and location.strip().lower() not in (user.location or "").lower():
        return False
    if user.last_donated_date is None:
        return True
    return ensure_utc(user.last_donated_date) < ensure_utc(cutoff)


class DonorMatcher:
    def __init__(self, users: UserRepository, cooldown_days: Optional[int] = None):
        self.users = users
        self.cooldown_days = cooldown_days

    async def find_candidates(
        self,
        blood_type: Optional[BloodType],
        exclude_user_id: Optional[str] = None,
        location: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[User]:
        """
        Eligible donors in storage order.

        Raises:
            DonorLookupError: the user store could not be read; no partial list is returned
        """
        cutoff = cooldown_cutoff(now or utcnow(), self.cooldown_days)
        try:
            candidates = await self.users.find_candidates(
                blood_type, cutoff, exclude_user_id=exclude_user_id, location=location
            )
        except PyMongoError as e:
            logger.error(f"Donor lookup for {blood_type} failed: {e}")
            raise DonorLookupError(f"Donor lookup failed: {e}") from e

        logger.debug(f"Matched {len(candidates)} donors for {getattr(blood_type, 'value', blood_type)}")
        return candidates
