"""
FastAPI dependencies for the process-wide collaborators.

Routers build their repositories per request from the database handle;
the event bus, email service and password hasher are shared. Tests swap
any of them through `app.dependency_overrides`.
"""

from functools import lru_cache

from ..shared.events.event_bus import EventBus, get_event_bus
from ..shared.services.email_service import EmailService
from .security import PasswordHasher, password_hasher


def get_event_bus_dependency() -> EventBus:
    """FastAPI dependency to get the started event bus"""
    return get_event_bus()


@lru_cache()
def get_email_service() -> EmailService:
    return EmailService()


def get_password_hasher() -> PasswordHasher:
    return password_hasher
