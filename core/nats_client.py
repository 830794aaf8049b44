"""
NATS JetStream Client for Python Microservices
Provides event-driven communication between services

Thin wrapper over nats-py with JetStream publishing. Events are JSON
envelopes; the event type doubles as the subject.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import nats
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext

from core.config import InfraConfig, get_settings


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that keeps Decimal values exact"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types"""

    # Pricing campaign events
    PRICING_CAMPAIGN_APPLIED = "pricing.campaign.applied"
    PRICING_CAMPAIGN_REVERTED = "pricing.campaign.reverted"
    PRICING_CAMPAIGN_RECOVERED = "pricing.campaign.recovered"
    PRICING_CAMPAIGN_FAILED = "pricing.campaign.failed"


class ServiceSource(Enum):
    """Event sources"""

    PRICING_CAMPAIGN_SERVICE = "pricing_campaign_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """NATS JetStream event bus"""

    STREAM_MAX_MSGS = 100000

    def __init__(
        self,
        service_name: str,
        config: Optional[InfraConfig] = None,
    ):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as the connection name)
            config: Infrastructure config (defaults to global settings)
        """
        self.service_name = service_name
        self.config = config or get_settings().infrastructure
        self.servers = self.config.nats_servers

        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._streams: set = set()

        logger.info(f"NATS EventBus initialized: {self.servers}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(
                servers=[self.servers],
                name=self.service_name,
                max_reconnect_attempts=5,
            )
            self._js = self._nc.jetstream()
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to NATS JetStream.

        The stream is derived from the first token of the event type
        (pricing.* -> pricing-stream) and created on first use.
        """
        if not self.is_connected or not self._js:
            logger.error("Not connected to NATS")
            return False

        try:
            stream_name = self._get_stream_name_for_event(event.type)
            await self._ensure_stream(stream_name, event.type.split(".")[0])

            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            ack = await self._js.publish(event.type, data, stream=stream_name)

            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True

        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    def _get_stream_name_for_event(self, event_type: str) -> str:
        """Map an event type to its JetStream stream name"""
        return f"{event_type.split('.')[0]}-stream"

    async def _ensure_stream(self, stream_name: str, subject_prefix: str) -> None:
        if stream_name in self._streams:
            return
        try:
            await self._js.add_stream(
                name=stream_name,
                subjects=[f"{subject_prefix}.>"],
                max_msgs=self.STREAM_MAX_MSGS,
            )
        except Exception as e:
            logger.debug(f"Stream creation note: {e}")
        self._streams.add(stream_name)

    async def close(self):
        """Close NATS connection"""
        if self._nc is not None:
            await self._nc.drain()
            self._nc = None
            self._js = None
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._nc is not None and self._nc.is_connected


# Convenience function for creating events
def create_event(
    event_type: EventType,
    source: ServiceSource,
    data: Dict[str, Any],
    subject: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
) -> Event:
    """Create an Event instance"""
    return Event(
        event_type=event_type,
        source=source,
        data=data,
        subject=subject,
        metadata=metadata,
    )
