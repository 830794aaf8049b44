"""
Pricing Campaign Service Business Logic

Orchestrates simulate, apply and revert of a store-wide discount campaign.
At most one campaign is active; apply and revert move the single campaign
record through compare-and-set transitions, and the bulk price writes run in
leased, resumable batches so that an interrupted phase can be completed by
the recovery pass.
"""

import logging
import math
import socket
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.config import PricingConfig, get_settings

from .events.publishers import PricingCampaignEventPublisher
from .models import (
    CampaignHistoryRecord,
    CampaignPhase,
    CampaignStateResponse,
    CampaignStatus,
    CampaignSummary,
    PricingCampaign,
    Projection,
    RecoveryAction,
    RecoveryResult,
)
from .pricing_simulator import price_changes, simulate, validate_parameters
from .protocols import (
    CampaignAlreadyActiveError,
    CampaignOperationInProgressError,
    CampaignStateStoreProtocol,
    InvalidDiscountError,
    InvalidMarkupFloorError,
    NoActiveCampaignError,
    PersistenceError,
    ProductRepositoryProtocol,
)

logger = logging.getLogger(__name__)


def _as_decimal(value, error_cls):
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise error_cls(value)


class PricingCampaignService:
    """Pricing campaign business logic layer"""

    DEFAULT_CAMPAIGN_NAME = "Flash Sale"

    def __init__(
        self,
        product_repository: ProductRepositoryProtocol,
        state_store: CampaignStateStoreProtocol,
        event_publisher: Optional[PricingCampaignEventPublisher] = None,
        config: Optional[PricingConfig] = None,
        instance_id: Optional[str] = None,
    ):
        self.product_repository = product_repository
        self.state_store = state_store
        self.event_publisher = event_publisher or PricingCampaignEventPublisher()
        self.config = config or get_settings().pricing
        # Lease owner identity of this worker
        self.instance_id = instance_id or f"{socket.gethostname()}:{uuid.uuid4().hex[:8]}"

        # A lease must outlive the retries of a single batch
        retry_window = self.config.retry_window_seconds()
        self.lease_seconds = self.config.lease_seconds
        if retry_window >= self.lease_seconds:
            self.lease_seconds = math.ceil(retry_window) + self.config.lease_seconds
            logger.warning(
                f"PRICING_LEASE_SECONDS={self.config.lease_seconds} is shorter than the "
                f"{retry_window:.1f}s batch retry window; using {self.lease_seconds}s"
            )

    # ====================
    # Simulation
    # ====================

    async def simulate(self, discount_percent, min_markup_factor) -> Projection:
        """
        Project a discount against the current catalog.

        Read-only: safe to call any number of times in any campaign state.
        """
        discount_percent, min_markup_factor = self._validated(discount_percent, min_markup_factor)

        products = await self.product_repository.list_all_products()
        return simulate(products, discount_percent, min_markup_factor)

    # ====================
    # Apply
    # ====================

    async def apply(
        self,
        discount_percent,
        min_markup_factor,
        name: Optional[str] = None,
    ) -> PricingCampaign:
        """
        Apply a discount to every product that clears the markup floor.

        Returns:
            The applied campaign record

        Raises:
            PricingValidationError: Invalid parameters (nothing read or written)
            CampaignAlreadyActiveError: A campaign already occupies the slot
            PersistenceError: A store failed; the phase stays recoverable
        """
        discount_percent, min_markup_factor = self._validated(discount_percent, min_markup_factor)

        await self.recover_pending()

        # The catalog is read only once this worker owns the slot
        campaign = PricingCampaign(
            campaign_id=f"pc_{uuid.uuid4().hex[:16]}",
            name=name or self.DEFAULT_CAMPAIGN_NAME,
            discount_percent=discount_percent,
            min_markup_factor=min_markup_factor,
            phase=CampaignPhase.APPLYING,
            created_at=datetime.now(timezone.utc),
        )

        inserted = await self.state_store.insert_applying(
            campaign, self.instance_id, self.lease_seconds
        )
        if not inserted:
            existing = await self.state_store.get_active_campaign()
            raise CampaignAlreadyActiveError(
                "A pricing campaign is already active; revert it first",
                current_phase=existing.phase if existing else None,
            )

        campaign, projection = await self._plan_apply(campaign)

        logger.info(
            f"Applying campaign {campaign.campaign_id} '{campaign.name}': "
            f"{discount_percent}% off, floor x{min_markup_factor}, "
            f"{len(campaign.target_prices)} prices to write, {projection.blocked_count} blocked"
        )

        written = await self._run_phase(campaign, "apply")
        await self._complete_apply(campaign)

        applied = campaign.model_copy(
            update={
                "phase": CampaignPhase.APPLIED,
                "progress": 0,
                "lease_owner": None,
                "lease_expires_at": None,
                "applied_at": datetime.now(timezone.utc),
            }
        )
        logger.info(f"Campaign {campaign.campaign_id} applied ({written} prices written)")

        await self.event_publisher.publish_campaign_applied(
            campaign_id=applied.campaign_id,
            name=applied.name,
            discount_percent=applied.discount_percent,
            min_markup_factor=applied.min_markup_factor,
            affected_count=applied.affected_count,
            blocked_count=applied.blocked_count,
            prices_written=written,
        )
        return applied

    # ====================
    # Revert
    # ====================

    async def revert(self) -> CampaignHistoryRecord:
        """
        Restore every snapshotted price and archive the campaign.

        Raises:
            NoActiveCampaignError: Nothing applied (or already reverting)
            CampaignOperationInProgressError: Apply still running elsewhere
            PersistenceError: A store failed; the phase stays recoverable
        """
        await self.recover_pending()

        campaign = await self.state_store.begin_revert(self.instance_id, self.lease_seconds)
        if campaign is None:
            existing = await self.state_store.get_active_campaign()
            if existing is None:
                raise NoActiveCampaignError("No active pricing campaign to revert")
            if existing.phase == CampaignPhase.REVERTING:
                raise NoActiveCampaignError(
                    f"Campaign {existing.campaign_id} is already being reverted",
                    current_phase=existing.phase,
                )
            raise CampaignOperationInProgressError(
                f"Campaign {existing.campaign_id} is still being applied; retry shortly",
                current_phase=existing.phase,
            )

        logger.info(
            f"Reverting campaign {campaign.campaign_id}: "
            f"restoring {len(campaign.snapshot)} prices"
        )

        await self._run_phase(campaign, "revert")
        record = await self._finish_revert(campaign)

        logger.info(f"Campaign {campaign.campaign_id} reverted and archived")

        await self.event_publisher.publish_campaign_reverted(
            campaign_id=record.campaign_id,
            name=record.name,
            restored_count=record.restored_count,
        )
        return record

    # ====================
    # Recovery
    # ====================

    async def recover_pending(self) -> RecoveryResult:
        """
        Complete an apply or revert whose owner stopped before finishing.

        Only a record whose lease is missing or expired is claimed; a phase
        under a live lease is reported as busy and left alone.
        """
        claimed = await self.state_store.claim_stale(self.instance_id, self.lease_seconds)
        if claimed is None:
            existing = await self.state_store.get_active_campaign()
            if existing is not None and existing.phase.in_progress:
                return RecoveryResult(action=RecoveryAction.BUSY, campaign_id=existing.campaign_id)
            return RecoveryResult(action=RecoveryAction.NONE)

        if claimed.phase == CampaignPhase.APPLYING and not claimed.planned:
            # No price was written before the plan was recorded
            return await self._abandon_unplanned(claimed)

        logger.warning(
            f"Resuming interrupted {claimed.phase.value} of campaign {claimed.campaign_id} "
            f"from entry {claimed.progress} of {len(claimed.pending_entries())}"
        )

        if claimed.phase == CampaignPhase.APPLYING:
            written = await self._run_phase(claimed, "recover_apply")
            await self._complete_apply(claimed)
            action = RecoveryAction.APPLY_COMPLETED
        else:
            written = await self._run_phase(claimed, "recover_revert")
            await self._finish_revert(claimed)
            action = RecoveryAction.REVERT_COMPLETED

        logger.info(f"Recovered campaign {claimed.campaign_id}: {action.value}, {written} entries written")

        await self.event_publisher.publish_campaign_recovered(
            campaign_id=claimed.campaign_id,
            action=action.value,
            entries_written=written,
        )
        return RecoveryResult(
            action=action,
            campaign_id=claimed.campaign_id,
            entries_written=written,
        )

    # ====================
    # Queries
    # ====================

    async def get_campaign_state(self) -> CampaignStateResponse:
        """Current status and the active campaign without its snapshot body"""
        campaign = await self.state_store.get_active_campaign()
        if campaign is None:
            return CampaignStateResponse(status=CampaignStatus.IDLE)
        return CampaignStateResponse(
            status=campaign.status,
            campaign=CampaignSummary.from_campaign(campaign),
        )

    async def list_history(self, limit: int = 20, offset: int = 0) -> List[CampaignHistoryRecord]:
        """Archived campaigns, newest first"""
        limit = max(1, min(limit, 100))
        offset = max(0, offset)
        return await self.state_store.list_history(limit=limit, offset=offset)

    async def health_check(self) -> bool:
        return await self.state_store.health_check()

    # ====================
    # Internals
    # ====================

    def _validated(self, discount_percent, min_markup_factor):
        discount_percent = _as_decimal(discount_percent, InvalidDiscountError)
        min_markup_factor = _as_decimal(min_markup_factor, InvalidMarkupFloorError)
        validate_parameters(discount_percent, min_markup_factor)
        return discount_percent, min_markup_factor

    async def _plan_apply(self, campaign: PricingCampaign):
        """Read the catalog under the claimed slot and record snapshot and targets"""
        try:
            products = await self.product_repository.list_all_products()
            projection = simulate(products, campaign.discount_percent, campaign.min_markup_factor)
            targets = price_changes(projection)

            planned = campaign.model_copy(
                update={
                    "snapshot": {pid: projection.current_prices[pid] for pid in targets},
                    "target_prices": targets,
                    "affected_count": projection.affected_count,
                    "blocked_count": projection.blocked_count,
                    "planned": True,
                }
            )
            if not await self.state_store.record_plan(planned, self.instance_id, self.lease_seconds):
                raise PersistenceError(
                    f"Lost ownership of campaign {campaign.campaign_id} before recording its prices",
                    campaign.campaign_id,
                )
        except PersistenceError as e:
            logger.error(f"Planning campaign {campaign.campaign_id} failed: {e}")
            try:
                await self.state_store.abandon_apply(campaign.campaign_id, self.instance_id)
            except PersistenceError as release_error:
                # Recovery abandons it once the lease expires
                logger.warning(f"Could not free slot of {campaign.campaign_id}: {release_error}")
            await self.event_publisher.publish_campaign_failed(
                campaign_id=campaign.campaign_id,
                operation="apply",
                error=str(e),
            )
            raise

        return planned, projection

    async def _abandon_unplanned(self, campaign: PricingCampaign) -> RecoveryResult:
        if not await self.state_store.abandon_apply(campaign.campaign_id, self.instance_id):
            raise PersistenceError(
                f"Lost ownership of campaign {campaign.campaign_id} before abandoning it",
                campaign.campaign_id,
            )
        logger.warning(f"Abandoned campaign {campaign.campaign_id}: its apply never recorded prices")

        await self.event_publisher.publish_campaign_recovered(
            campaign_id=campaign.campaign_id,
            action=RecoveryAction.APPLY_ABANDONED.value,
            entries_written=0,
        )
        return RecoveryResult(
            action=RecoveryAction.APPLY_ABANDONED,
            campaign_id=campaign.campaign_id,
        )

    async def _run_phase(self, campaign: PricingCampaign, operation: str) -> int:
        """
        Write the pending entries of the current phase from campaign.progress.

        On failure the lease is released so the next recovery pass can resume
        immediately; the in-progress record itself stays in place.
        """
        try:
            return await self._write_entries(campaign)
        except PersistenceError as e:
            logger.error(
                f"{operation} of campaign {campaign.campaign_id} interrupted: {e}",
                exc_info=True,
            )
            await self.state_store.release_lease(campaign.campaign_id, self.instance_id)
            await self.event_publisher.publish_campaign_failed(
                campaign_id=campaign.campaign_id,
                operation=operation,
                error=str(e),
            )
            raise

    async def _write_entries(self, campaign: PricingCampaign) -> int:
        entries = campaign.pending_entries()
        batch_size = self.config.batch_size
        start = min(campaign.progress, len(entries))

        for offset in range(start, len(entries), batch_size):
            # Fenced: fails once another worker has claimed the phase
            owned = await self.state_store.renew_lease(
                campaign.campaign_id,
                self.instance_id,
                self.lease_seconds,
                progress=offset,
            )
            if not owned:
                raise PersistenceError(
                    f"Lost ownership of campaign {campaign.campaign_id} at entry {offset}",
                    campaign.campaign_id,
                )

            batch = dict(entries[offset:offset + batch_size])
            await self._write_batch(campaign.campaign_id, batch)

            # A batch that outlived the lease may have raced a new owner
            if not await self.state_store.renew_lease(
                campaign.campaign_id,
                self.instance_id,
                self.lease_seconds,
                progress=offset + len(batch),
            ):
                raise PersistenceError(
                    f"Lease on campaign {campaign.campaign_id} expired while writing "
                    f"entries {offset}-{offset + len(batch) - 1}",
                    campaign.campaign_id,
                )

        return len(entries) - start

    async def _write_batch(self, campaign_id: str, batch) -> None:
        """Write one batch of sale prices with exponential-backoff retries"""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.write_max_attempts),
            wait=wait_exponential(
                multiplier=self.config.retry_wait_min,
                min=self.config.retry_wait_min,
                max=self.config.retry_wait_max,
            ),
            retry=retry_if_exception_type(PersistenceError),
            before_sleep=lambda state: logger.warning(
                f"Price batch for {campaign_id} failed (attempt {state.attempt_number}), retrying"
            ),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self.product_repository.write_sale_prices(batch)
        except PersistenceError as e:
            raise PersistenceError(
                f"Price batch write failed after {self.config.write_max_attempts} attempts: {e}",
                campaign_id,
            ) from e

    async def _complete_apply(self, campaign: PricingCampaign) -> None:
        if not await self.state_store.complete_apply(campaign.campaign_id, self.instance_id):
            raise PersistenceError(
                f"Lost ownership of campaign {campaign.campaign_id} before completing apply",
                campaign.campaign_id,
            )

    async def _finish_revert(self, campaign: PricingCampaign) -> CampaignHistoryRecord:
        record = await self.state_store.finish_revert(campaign.campaign_id, self.instance_id)
        if record is None:
            raise PersistenceError(
                f"Lost ownership of campaign {campaign.campaign_id} before archiving",
                campaign.campaign_id,
            )
        return record
