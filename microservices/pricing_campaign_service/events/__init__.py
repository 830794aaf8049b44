"""
Pricing Campaign Service Events

Event models and publisher for the pricing campaign service.
"""

from .models import (
    PricingCampaignEventType,
    CampaignAppliedEventData,
    CampaignRevertedEventData,
    CampaignRecoveredEventData,
    CampaignFailedEventData,
)
from .publishers import PricingCampaignEventPublisher

__all__ = [
    # Event Types
    "PricingCampaignEventType",
    # Event Data Models
    "CampaignAppliedEventData",
    "CampaignRevertedEventData",
    "CampaignRecoveredEventData",
    "CampaignFailedEventData",
    # Publisher
    "PricingCampaignEventPublisher",
]
