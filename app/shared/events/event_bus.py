"""
Broker-backed event bus.

Events are appended to Redis Streams (one stream per topic) and a background
consumer reads them back from the beginning of the retained log, pushing them
to real-time clients or forwarding them to email. When the broker is
unreachable, publishing degrades to a direct real-time broadcast so clients
still hear about new requests and acceptances.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from ...core.config import settings
from .domain_events import DomainEvent, BLOOD_REQUESTS, DONATION_OFFERS, event_name_for

logger = logging.getLogger(__name__)


class Broadcaster(Protocol):
    def emit(self, event_name: str, payload: Dict[str, Any]) -> None: ...


class EmailSender(Protocol):
    async def send(self, to: str, template: str, template_vars: Dict[str, Any]) -> Any: ...


class EventBus:
    """
    Publish/consume domain events over Redis Streams.

    `publish` never raises: broker failures are logged and the event is
    broadcast on the real-time channel instead.
    """

    def __init__(
        self,
        broadcaster: Broadcaster,
        email_sender: Optional[EmailSender] = None,
        redis_url: Optional[str] = None,
        connect_retries: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
        block_ms: Optional[int] = None,
        stream_maxlen: Optional[int] = None,
        email_topic: Optional[str] = None,
    ):
        self.broadcaster = broadcaster
        self.email_sender = email_sender
        self.redis_url = redis_url or settings.redis_url
        self.connect_retries = settings.event_bus_connect_retries if connect_retries is None else connect_retries
        self.retry_backoff_seconds = (
            settings.event_bus_retry_backoff_seconds if retry_backoff_seconds is None else retry_backoff_seconds
        )
        self.block_ms = block_ms or settings.event_bus_block_ms
        self.stream_maxlen = stream_maxlen or settings.event_bus_stream_maxlen
        self.email_topic = email_topic or settings.email_topic

        self.connected = False
        self._client: Optional[redis.Redis] = None
        self._consumer_task: Optional[asyncio.Task] = None

    @property
    def topics(self) -> List[str]:
        return [BLOOD_REQUESTS, DONATION_OFFERS, self.email_topic]

    async def connect(self) -> bool:
        """Connect and ping the broker, retrying with a fixed backoff. Never raises."""
        attempts = self.connect_retries + 1
        for attempt in range(1, attempts + 1):
            client = redis.from_url(self.redis_url, decode_responses=True)
            try:
                await client.ping()
            except (RedisError, OSError) as e:
                logger.warning(f"Broker connection attempt {attempt}/{attempts} failed: {e}")
                await client.aclose()
                if attempt < attempts:
                    await asyncio.sleep(self.retry_backoff_seconds)
                continue

            self._client = client
            self.connected = True
            logger.info(f"Broker connected ({self.redis_url})")
            return True

        self.connected = False
        logger.error("Broker connection failed, messaging runs in fallback mode (real-time broadcast only)")
        return False

    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        event = DomainEvent(topic=topic, payload=payload)

        if not self.connected or self._client is None:
            logger.warning(f"Broker not connected, broadcasting {topic} directly")
            await self._fallback(event)
            return

        try:
            message_id = await self._client.xadd(
                topic,
                {"data": json.dumps(event.to_message())},
                maxlen=self.stream_maxlen,
                approximate=True,
            )
            logger.info(f"Published {topic} message {message_id}")
        except (RedisError, OSError) as e:
            logger.error(f"Error publishing to {topic}: {e}")
            await self._fallback(event)

    async def _fallback(self, event: DomainEvent) -> None:
        if event.topic == self.email_topic:
            await self._forward_email(event.payload)
            return
        self._broadcast(event.event_name, event.payload)

    def _broadcast(self, event_name: str, payload: Dict[str, Any]) -> None:
        try:
            self.broadcaster.emit(event_name, payload)
        except Exception as e:
            logger.error(f"Real-time broadcast of {event_name} failed: {e}")

    async def _forward_email(self, payload: Dict[str, Any]) -> None:
        if self.email_sender is None:
            logger.warning("Email message received but no email sender is configured")
            return
        recipient = payload.get("to") if isinstance(payload, dict) else None
        try:
            await self.email_sender.send(
                payload["to"],
                payload["template"],
                payload.get("templateVars") or payload.get("template_vars") or {},
            )
        except Exception as e:
            logger.error(f"Forwarding email to {recipient} failed: {e}")

    async def handle_message(self, topic: str, fields: Dict[str, Any]) -> None:
        """Route one consumed message. Failures are logged, never raised."""
        try:
            message = json.loads(fields["data"])
            payload = message.get("payload", message) if isinstance(message, dict) else message
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Dropping malformed {topic} message: {e}")
            return

        if topic == self.email_topic and not isinstance(payload, dict):
            logger.error(f"Dropping malformed {topic} message: expected an object, got {type(payload).__name__}")
            return

        logger.info(f"Received {topic} message")
        if topic == self.email_topic:
            await self._forward_email(payload)
        else:
            self._broadcast(event_name_for(topic), payload)

    async def run_consumer(self) -> None:
        """Read every topic from the start of the retained log until cancelled."""
        if not self.connected or self._client is None:
            logger.info("Broker not connected, consumer not started")
            return

        last_ids = {topic: "0" for topic in self.topics}
        logger.info(f"Consumer started for topics {self.topics}")
        while True:
            try:
                batches = await self._client.xread(dict(last_ids), block=self.block_ms, count=100)
            except (RedisError, OSError) as e:
                logger.error(f"Broker read failed: {e}")
                await asyncio.sleep(self.retry_backoff_seconds)
                continue

            for stream, messages in batches or []:
                for message_id, fields in messages:
                    last_ids[stream] = message_id
                    try:
                        await self.handle_message(stream, fields)
                    except Exception:
                        logger.exception(f"Handling {stream} message {message_id} failed")

    def start_consumer(self) -> Optional[asyncio.Task]:
        if self._consumer_task is None or self._consumer_task.done():
            self._consumer_task = asyncio.create_task(self.run_consumer())
        return self._consumer_task

    async def stop_consumer(self) -> None:
        if self._consumer_task is None:
            return
        self._consumer_task.cancel()
        try:
            await self._consumer_task
        except asyncio.CancelledError:
            pass
        self._consumer_task = None

    async def close(self) -> None:
        await self.stop_consumer()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self.connected = False
        logger.info("Broker connection closed")

    async def is_healthy(self) -> bool:
        if not self.connected or self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError):
            return False


_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    if _event_bus is None:
        raise RuntimeError("Event bus has not been initialised")
    return _event_bus


def set_event_bus(bus: Optional[EventBus]) -> None:
    global _event_bus
    _event_bus = bus
