"""
Notification fan-out.

For every matched donor: create an in-app `blood_request` notification and,
when both the seeker and the donor want it, send the request email. Each
donor is handled independently; one failure never stops the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence
from urllib.parse import urlencode

from ...core.config import settings
from ...shared.events.event_bus import EmailSender
from ..users.models import User
from .models import Notification, NotificationType, NotificationStatus
from .repository import NotificationRepository

logger = logging.getLogger(__name__)

BLOOD_REQUEST_TEMPLATE = "blood_request"


@dataclass
class DispatchReport:
    """Outcome of one fan-out; informational only"""
    notified: int = 0
    emailed: int = 0
    failed: List[str] = field(default_factory=list)


def request_message(blood_type: str, location: str) -> str:
    return f"New blood request for {blood_type} near {location}. Tap to view or accept."


def accept_link(request_id: str, donor_id: str, frontend_url: Optional[str] = None) -> str:
    base = (frontend_url or settings.frontend_url).rstrip("/")
    return f"{base}/respond?{urlencode({'requestId': request_id, 'donorId': donor_id})}"


class NotificationDispatcher:
    def __init__(
        self,
        notifications: NotificationRepository,
        email_sender: EmailSender,
        concurrency: Optional[int] = None,
        frontend_url: Optional[str] = None,
    ):
        self.notifications = notifications
        self.email_sender = email_sender
        self.concurrency = concurrency or settings.fanout_concurrency
        self.frontend_url = frontend_url or settings.frontend_url

    async def dispatch(self, request: Any, candidates: Sequence[User], notify_by_email: bool = True) -> DispatchReport:
        """
        Notify every candidate about `request`.

        Args:
            request: The persisted blood request (needs id, blood_type, location, patient_name)
            candidates: Donors returned by the matcher
            notify_by_email: Seeker's choice; donors who opted out get no email either way

        Returns:
            DispatchReport with per-channel counts and the ids that failed
        """
        report = DispatchReport()
        if not candidates:
            return report

        semaphore = asyncio.Semaphore(self.concurrency)

        async def notify(donor: User) -> None:
            async with semaphore:
                await self._notify_one(request, donor, notify_by_email, report)

        await asyncio.gather(*(notify(donor) for donor in candidates))
        logger.info(
            f"Fan-out for request {request.id}: {report.notified} notified, "
            f"{report.emailed} emailed, {len(report.failed)} failed"
        )
        return report

    async def _notify_one(self, request: Any, donor: User, notify_by_email: bool, report: DispatchReport) -> None:
        blood_type = _value(request.blood_type)
        try:
            await self.notifications.create(Notification(
                recipient_id=donor.id,
                message=request_message(blood_type, request.location),
                type=NotificationType.BLOOD_REQUEST,
                related_request_id=request.id,
                status=NotificationStatus.PENDING,
            ))
            report.notified += 1

            if notify_by_email and donor.email_notifications:
                await self.email_sender.send(
                    donor.email,
                    BLOOD_REQUEST_TEMPLATE,
                    {
                        "donor_name": donor.name or "Donor",
                        "blood_type": blood_type,
                        "location": request.location,
                        "patient_name": getattr(request, "patient_name", None),
                        "accept_link": accept_link(request.id, donor.id, self.frontend_url),
                    },
                )
                report.emailed += 1
        except Exception as e:
            logger.error(f"Failed to notify donor {donor.id} for request {request.id}: {e}")
            report.failed.append(donor.id)


def _value(enum_or_str: Any) -> str:
    return getattr(enum_or_str, "value", enum_or_str)
