"""
Pricing Campaign Event Publishers

Publishes events to NATS JetStream. Publishing is best effort: a failure is
logged and reported as False, never raised into the campaign operation.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from core.nats_client import EventType, ServiceSource, create_event

from ..protocols import EventBusProtocol
from .models import (
    PricingCampaignEventType,
    CampaignAppliedEventData,
    CampaignRevertedEventData,
    CampaignRecoveredEventData,
    CampaignFailedEventData,
)

logger = logging.getLogger(__name__)


class PricingCampaignEventPublisher:
    """Publisher for pricing campaign service events"""

    def __init__(self, event_bus: Optional[EventBusProtocol] = None):
        self.event_bus = event_bus
        self.source = ServiceSource.PRICING_CAMPAIGN_SERVICE

    async def publish(
        self,
        event_type: PricingCampaignEventType,
        data: Dict[str, Any],
        subject: Optional[str] = None,
    ) -> bool:
        """
        Publish an event to NATS.

        Args:
            event_type: The event type enum
            data: Event data payload
            subject: Optional campaign id the event is about

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            event = create_event(
                event_type=EventType(event_type.value),
                source=self.source,
                data=data,
                subject=subject,
            )
            published = await self.event_bus.publish_event(event)
            if published:
                logger.debug(f"Published event: {event_type.value}")
            return bool(published)

        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False

    # ====================
    # Campaign Lifecycle Events
    # ====================

    async def publish_campaign_applied(
        self,
        campaign_id: str,
        name: str,
        discount_percent: Decimal,
        min_markup_factor: Decimal,
        affected_count: int,
        blocked_count: int,
        prices_written: int,
    ) -> bool:
        """Publish pricing.campaign.applied event"""
        data = CampaignAppliedEventData(
            campaign_id=campaign_id,
            name=name,
            discount_percent=discount_percent,
            min_markup_factor=min_markup_factor,
            affected_count=affected_count,
            blocked_count=blocked_count,
            prices_written=prices_written,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(
            PricingCampaignEventType.APPLIED, data.model_dump(mode="json"), subject=campaign_id
        )

    async def publish_campaign_reverted(
        self,
        campaign_id: str,
        name: str,
        restored_count: int,
    ) -> bool:
        """Publish pricing.campaign.reverted event"""
        data = CampaignRevertedEventData(
            campaign_id=campaign_id,
            name=name,
            restored_count=restored_count,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(
            PricingCampaignEventType.REVERTED, data.model_dump(mode="json"), subject=campaign_id
        )

    async def publish_campaign_recovered(
        self,
        campaign_id: str,
        action: str,
        entries_written: int,
    ) -> bool:
        """Publish pricing.campaign.recovered event"""
        data = CampaignRecoveredEventData(
            campaign_id=campaign_id,
            action=action,
            entries_written=entries_written,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(
            PricingCampaignEventType.RECOVERED, data.model_dump(mode="json"), subject=campaign_id
        )

    async def publish_campaign_failed(
        self,
        campaign_id: Optional[str],
        operation: str,
        error: str,
        progress: int = 0,
    ) -> bool:
        """Publish pricing.campaign.failed event"""
        data = CampaignFailedEventData(
            campaign_id=campaign_id,
            operation=operation,
            error=error,
            progress=progress,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(
            PricingCampaignEventType.FAILED, data.model_dump(mode="json"), subject=campaign_id
        )
