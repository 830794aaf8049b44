"""
Pricing Campaign Event Data Models

Event type definitions and data structures for pricing campaign events.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class PricingCampaignEventType(str, Enum):
    """
    Events published by pricing_campaign_service.

    Other services should reference these when subscribing.
    """
    APPLIED = "pricing.campaign.applied"
    REVERTED = "pricing.campaign.reverted"
    RECOVERED = "pricing.campaign.recovered"
    FAILED = "pricing.campaign.failed"


# =============================================================================
# Event Data Models
# =============================================================================


class CampaignAppliedEventData(BaseModel):
    """Data for pricing.campaign.applied"""
    campaign_id: str
    name: str
    discount_percent: Decimal
    min_markup_factor: Decimal
    affected_count: int
    blocked_count: int
    prices_written: int
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class CampaignRevertedEventData(BaseModel):
    """Data for pricing.campaign.reverted"""
    campaign_id: str
    name: str
    restored_count: int
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class CampaignRecoveredEventData(BaseModel):
    """Data for pricing.campaign.recovered"""
    campaign_id: str
    action: str
    entries_written: int
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class CampaignFailedEventData(BaseModel):
    """Data for pricing.campaign.failed"""
    campaign_id: Optional[str] = None
    operation: str
    error: str
    progress: int = 0
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")
