"""
Pricing Campaign Service Data Models

Canonical data structures for the pricing campaign engine: products as read
from the catalog, projections, persisted campaign records, and the
request/response models of the HTTP API.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ====================
# Enums
# ====================


class CampaignStatus(str, Enum):
    """Externally visible campaign status"""
    IDLE = "idle"
    APPLIED = "applied"


class CampaignPhase(str, Enum):
    """Phase of the persisted campaign record"""
    APPLYING = "applying"  # in-progress marker while prices are written
    APPLIED = "applied"
    REVERTING = "reverting"  # in-progress marker while prices are restored

    @property
    def in_progress(self) -> bool:
        return self in (CampaignPhase.APPLYING, CampaignPhase.REVERTING)


class PriceClassification(str, Enum):
    """Outcome of the markup floor check for one product"""
    AFFECTED = "affected"
    BLOCKED = "blocked"


class RecoveryAction(str, Enum):
    """What a recovery pass did"""
    NONE = "none"
    APPLY_COMPLETED = "apply_completed"
    APPLY_ABANDONED = "apply_abandoned"
    REVERT_COMPLETED = "revert_completed"
    BUSY = "busy"


# ====================
# Catalog
# ====================


class Product(BaseModel):
    """Product record as exposed by the product repository"""
    product_id: str = Field(..., min_length=1)
    cost_price: Decimal = Field(..., ge=0)
    sale_price: Decimal = Field(..., ge=0)
    quantity: int = Field(0, ge=0)
    name: Optional[str] = None


# ====================
# Financials / Simulation
# ====================


class FinancialSummary(BaseModel):
    """Revenue, profit, and average markup of a product set"""
    revenue: Decimal
    profit: Decimal
    avg_markup: Decimal


class PricedProduct(BaseModel):
    """Candidate price of one product under a proposed campaign"""
    product_id: str
    current_price: Decimal
    raw_candidate: Decimal
    floor_price: Decimal
    candidate_price: Decimal
    classification: PriceClassification


class Projection(BaseModel):
    """Projected effect of a discount against the current catalog"""
    discount_percent: Decimal
    min_markup_factor: Decimal
    total_products: int
    affected_count: int
    blocked_count: int
    current_revenue: Decimal
    projected_revenue: Decimal
    current_profit: Decimal
    projected_profit: Decimal
    current_avg_markup: Decimal
    projected_avg_markup: Decimal
    revenue_delta: Decimal
    profit_delta: Decimal
    loss_warning: bool
    blocked_product_ids: List[str] = Field(default_factory=list)

    # Used by apply only; never serialized
    candidate_prices: Dict[str, Decimal] = Field(default_factory=dict, exclude=True)
    current_prices: Dict[str, Decimal] = Field(default_factory=dict, exclude=True)


# ====================
# Campaign State
# ====================


class PricingCampaign(BaseModel):
    """Persisted campaign record (exists only while a campaign is active)"""
    campaign_id: str
    name: str
    discount_percent: Decimal
    min_markup_factor: Decimal
    phase: CampaignPhase
    snapshot: Dict[str, Decimal] = Field(default_factory=dict)
    target_prices: Dict[str, Decimal] = Field(default_factory=dict)
    # Snapshot and targets are recorded only after the slot is claimed
    planned: bool = False
    progress: int = 0
    affected_count: int = 0
    blocked_count: int = 0
    lease_owner: Optional[str] = None
    lease_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None
    revert_started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def status(self) -> CampaignStatus:
        # Anything persisted occupies the single campaign slot
        return CampaignStatus.APPLIED

    def pending_entries(self) -> List[tuple]:
        """Entries the current phase writes, in deterministic order"""
        source = self.snapshot if self.phase == CampaignPhase.REVERTING else self.target_prices
        return sorted(source.items())


class CampaignHistoryRecord(BaseModel):
    """Archived campaign, written when a revert completes"""
    campaign_id: str
    name: str
    discount_percent: Decimal
    min_markup_factor: Decimal
    affected_count: int
    blocked_count: int
    restored_count: int
    created_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None
    reverted_at: datetime


class CampaignSummary(BaseModel):
    """Campaign record without the snapshot body"""
    campaign_id: str
    name: str
    discount_percent: Decimal
    min_markup_factor: Decimal
    phase: CampaignPhase
    affected_count: int
    blocked_count: int
    snapshot_size: int
    progress: int
    created_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None

    @classmethod
    def from_campaign(cls, campaign: PricingCampaign) -> "CampaignSummary":
        return cls(
            campaign_id=campaign.campaign_id,
            name=campaign.name,
            discount_percent=campaign.discount_percent,
            min_markup_factor=campaign.min_markup_factor,
            phase=campaign.phase,
            affected_count=campaign.affected_count,
            blocked_count=campaign.blocked_count,
            snapshot_size=len(campaign.snapshot),
            progress=campaign.progress,
            created_at=campaign.created_at,
            applied_at=campaign.applied_at,
        )


class RecoveryResult(BaseModel):
    """Outcome of a recovery pass"""
    action: RecoveryAction
    campaign_id: Optional[str] = None
    entries_written: int = 0


# ====================
# Request Models
# ====================


class SimulateRequest(BaseModel):
    """Request to project a discount"""
    model_config = ConfigDict(populate_by_name=True)

    discount_percent: Decimal = Field(
        ..., validation_alias=AliasChoices("discount_percent", "discountPercent")
    )
    min_markup_factor: Decimal = Field(
        ..., validation_alias=AliasChoices("min_markup_factor", "minMarkupFactor")
    )


class ApplyRequest(SimulateRequest):
    """Request to apply a discount store-wide"""
    name: str = Field("Flash Sale", min_length=1, max_length=255)


# ====================
# Response Models
# ====================


class ApplyResponse(BaseModel):
    """Response after a campaign was applied"""
    campaign_id: str
    message: str
    affected_count: int
    blocked_count: int


class RevertResponse(BaseModel):
    """Response after a campaign was reverted"""
    message: str
    campaign_id: str
    restored_count: int


class CampaignStateResponse(BaseModel):
    """Current campaign state"""
    status: CampaignStatus
    campaign: Optional[CampaignSummary] = None


class CampaignHistoryResponse(BaseModel):
    """Archived campaigns"""
    campaigns: List[CampaignHistoryRecord]
    limit: int
    offset: int


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)


class ReadinessResponse(BaseModel):
    """Readiness check response"""
    ready: bool
    checks: Dict[str, bool] = Field(default_factory=dict)
    details: Dict[str, str] = Field(default_factory=dict)


class LivenessResponse(BaseModel):
    """Liveness check response"""
    alive: bool
    uptime_seconds: float
