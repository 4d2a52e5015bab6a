"""
Domain events and the broker-backed event bus.
"""

from .domain_events import (
    DomainEvent,
    BLOOD_REQUESTS,
    DONATION_OFFERS,
    TOPIC_EVENT_NAMES,
    event_name_for,
)
from .event_bus import EventBus, get_event_bus, set_event_bus

__all__ = [
    'DomainEvent',
    'BLOOD_REQUESTS',
    'DONATION_OFFERS',
    'TOPIC_EVENT_NAMES',
    'event_name_for',
    'EventBus',
    'get_event_bus',
    'set_event_bus',
]
