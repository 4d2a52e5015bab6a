"""
Domain events exchanged over the broker.

An event is an immutable envelope `{topic, payload, timestamp}`. Topics are
the stream names on the broker; each one also has the name under which it
is pushed to real-time clients.
"""

from datetime import datetime
from typing import Dict, Any

from pydantic import BaseModel, ConfigDict, Field

from ..models.base import utcnow


BLOOD_REQUESTS = "blood-requests"
DONATION_OFFERS = "donation-offers"

# topic -> real-time event name
TOPIC_EVENT_NAMES: Dict[str, str] = {
    BLOOD_REQUESTS: "blood-request-notification",
    DONATION_OFFERS: "donation-accepted-notification",
}


def event_name_for(topic: str) -> str:
    """Real-time event name for a topic; unknown topics keep their own name"""
    return TOPIC_EVENT_NAMES.get(topic, topic)


class DomainEvent(BaseModel):
    """
    Base envelope for all domain events.

    Events represent something that happened in the domain.
    They are immutable and contain all relevant data.
    """

    topic: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    @property
    def event_name(self) -> str:
        return event_name_for(self.topic)

    def to_message(self) -> Dict[str, Any]:
        """JSON-serialisable body written to the broker"""
        return self.model_dump(mode="json")
