"""
Pricing Campaign Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

from .models import (
    CampaignHistoryRecord,
    CampaignPhase,
    PricingCampaign,
    Product,
)


# ====================
# Repository Protocols
# ====================


class ProductRepositoryProtocol(Protocol):
    """Protocol for the product catalog (external collaborator)"""

    async def list_all_products(self) -> List[Product]:
        """Read every product with its cost, sale price and quantity"""
        ...

    async def write_sale_prices(self, prices: Dict[str, Decimal]) -> None:
        """
        Set sale_price for each product id in one batch.

        Must be idempotent per (product_id, price). Raises PersistenceError
        when the store is unavailable.
        """
        ...


class CampaignStateStoreProtocol(Protocol):
    """Protocol for the durable single-campaign record"""

    async def initialize(self) -> None:
        """Initialize repository connection"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    async def health_check(self) -> bool:
        """Check repository health"""
        ...

    async def get_active_campaign(self) -> Optional[PricingCampaign]:
        """Return the persisted campaign record, if any"""
        ...

    async def insert_applying(
        self, campaign: PricingCampaign, owner: str, lease_seconds: int
    ) -> bool:
        """Compare-and-set idle -> applying. False when a record already exists."""
        ...

    async def record_plan(
        self, campaign: PricingCampaign, owner: str, lease_seconds: int
    ) -> bool:
        """Store snapshot and target prices on an owned, not yet planned applying record"""
        ...

    async def abandon_apply(self, campaign_id: str, owner: str) -> bool:
        """Delete an owned applying record that has no price plan yet"""
        ...

    async def renew_lease(
        self, campaign_id: str, owner: str, lease_seconds: int, progress: Optional[int] = None
    ) -> bool:
        """Extend the lease (and optionally record progress) if still owned"""
        ...

    async def release_lease(self, campaign_id: str, owner: str) -> None:
        """Give up ownership so recovery may claim the phase immediately"""
        ...

    async def claim_stale(self, owner: str, lease_seconds: int) -> Optional[PricingCampaign]:
        """Claim an in-progress record whose lease is missing or expired"""
        ...

    async def complete_apply(self, campaign_id: str, owner: str) -> bool:
        """Compare-and-set applying -> applied"""
        ...

    async def begin_revert(self, owner: str, lease_seconds: int) -> Optional[PricingCampaign]:
        """Compare-and-set applied -> reverting; returns the claimed record"""
        ...

    async def finish_revert(
        self, campaign_id: str, owner: str
    ) -> Optional[CampaignHistoryRecord]:
        """Delete the reverting record and archive it atomically"""
        ...

    async def list_history(self, limit: int = 20, offset: int = 0) -> List[CampaignHistoryRecord]:
        """List archived campaigns, newest first"""
        ...


# ====================
# Event Bus Protocol
# ====================


class EventBusProtocol(Protocol):
    """Protocol for event bus operations"""

    async def publish_event(self, event: Any) -> bool:
        """Publish an event to the event bus"""
        ...

    async def close(self) -> None:
        """Close event bus connection"""
        ...


# ====================
# Custom Exceptions
# ====================


class PricingCampaignError(Exception):
    """Base exception for pricing campaign errors"""
    pass


class PricingValidationError(PricingCampaignError):
    """Raised when campaign parameters are invalid"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidDiscountError(PricingValidationError):
    """Raised when discount_percent is outside [0, 100]"""

    def __init__(self, value: Decimal):
        super().__init__(
            f"discount_percent must be between 0 and 100, got {value}",
            field="discount_percent",
        )
        self.value = value


class InvalidMarkupFloorError(PricingValidationError):
    """Raised when min_markup_factor is not positive"""

    def __init__(self, value: Decimal):
        super().__init__(
            f"min_markup_factor must be greater than 0, got {value}",
            field="min_markup_factor",
        )
        self.value = value


class CampaignStateError(PricingCampaignError):
    """Raised when the campaign state does not allow the operation"""

    def __init__(self, message: str, current_phase: Optional[CampaignPhase] = None):
        super().__init__(message)
        self.current_phase = current_phase


class CampaignAlreadyActiveError(CampaignStateError):
    """Raised when applying while a campaign occupies the slot"""
    pass


class NoActiveCampaignError(CampaignStateError):
    """Raised when reverting with no applied campaign"""
    pass


class CampaignOperationInProgressError(CampaignStateError):
    """Raised when another worker is still applying the campaign"""
    pass


class PersistenceError(PricingCampaignError):
    """Raised when a store is unavailable or a batch write exhausted its retries"""

    def __init__(self, message: str, campaign_id: Optional[str] = None):
        super().__init__(message)
        self.campaign_id = campaign_id


__all__ = [
    "ProductRepositoryProtocol",
    "CampaignStateStoreProtocol",
    "EventBusProtocol",
    "PricingCampaignError",
    "PricingValidationError",
    "InvalidDiscountError",
    "InvalidMarkupFloorError",
    "CampaignStateError",
    "CampaignAlreadyActiveError",
    "NoActiveCampaignError",
    "CampaignOperationInProgressError",
    "PersistenceError",
]
