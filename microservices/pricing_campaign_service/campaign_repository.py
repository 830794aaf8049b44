"""
Pricing Campaign State Store

Data access layer - PostgreSQL (asyncpg)

The active campaign lives in a table whose primary key is a constant slot,
so at most one row can exist. Every state transition is a single
conditional statement (compare-and-set); a writer that loses the race gets
no row back.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.config import PricingConfig, get_settings
from core.postgres_client import PostgresClientWrapper

from .models import CampaignHistoryRecord, CampaignPhase, PricingCampaign
from .protocols import PersistenceError

logger = logging.getLogger(__name__)


def prices_to_json(prices: Dict[str, Decimal]) -> str:
    """Serialize a price map with decimal strings so values round-trip exactly"""
    return json.dumps({product_id: str(price) for product_id, price in prices.items()})


def prices_from_json(raw: Any) -> Dict[str, Decimal]:
    if raw is None:
        return {}
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    return {product_id: Decimal(str(price)) for product_id, price in raw.items()}


SCHEMA_DDL = '''
    CREATE SCHEMA IF NOT EXISTS {schema};

    CREATE TABLE IF NOT EXISTS {schema}.active_campaign (
        slot SMALLINT PRIMARY KEY DEFAULT 1 CHECK (slot = 1),
        campaign_id TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        discount_percent NUMERIC NOT NULL,
        min_markup_factor NUMERIC NOT NULL,
        phase TEXT NOT NULL CHECK (phase IN ('applying', 'applied', 'reverting')),
        snapshot JSONB NOT NULL,
        target_prices JSONB NOT NULL,
        planned BOOLEAN NOT NULL DEFAULT FALSE,
        progress INTEGER NOT NULL DEFAULT 0,
        affected_count INTEGER NOT NULL DEFAULT 0,
        blocked_count INTEGER NOT NULL DEFAULT 0,
        lease_owner TEXT,
        lease_expires_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        applied_at TIMESTAMPTZ,
        revert_started_at TIMESTAMPTZ,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS {schema}.campaign_history (
        campaign_id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        discount_percent NUMERIC NOT NULL,
        min_markup_factor NUMERIC NOT NULL,
        affected_count INTEGER NOT NULL,
        blocked_count INTEGER NOT NULL,
        restored_count INTEGER NOT NULL,
        snapshot JSONB NOT NULL,
        created_at TIMESTAMPTZ,
        applied_at TIMESTAMPTZ,
        reverted_at TIMESTAMPTZ NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_campaign_history_reverted_at
        ON {schema}.campaign_history (reverted_at DESC);
'''


class CampaignRepository:
    """Pricing campaign state store - PostgreSQL (asyncpg)"""

    def __init__(
        self,
        db: Optional[PostgresClientWrapper] = None,
        config: Optional[PricingConfig] = None,
    ):
        config = config or get_settings().pricing
        self.db = db or PostgresClientWrapper("pricing_campaign_service")
        self.schema = config.pricing_schema

        # Table names
        self.active_table = f"{self.schema}.active_campaign"
        self.history_table = f"{self.schema}.campaign_history"

    async def initialize(self):
        """Create the schema if missing"""
        try:
            await self.db.execute(SCHEMA_DDL.format(schema=self.schema))
            logger.info("Campaign repository initialized with PostgreSQL")
        except Exception as e:
            logger.error(f"Error initializing campaign schema: {e}", exc_info=True)
            raise PersistenceError(f"Campaign store unavailable: {e}") from e

    async def close(self):
        """Close database connection"""
        await self.db.close()
        logger.info("Campaign repository database connection closed")

    async def health_check(self) -> bool:
        """Check repository health"""
        return await self.db.health_check()

    # ====================
    # Reads
    # ====================

    async def get_active_campaign(self) -> Optional[PricingCampaign]:
        """Return the persisted campaign record, if any"""
        try:
            row = await self.db.query_row(f"SELECT * FROM {self.active_table} WHERE slot = 1")
        except Exception as e:
            logger.error(f"Error reading active campaign: {e}")
            raise PersistenceError(f"Campaign store unavailable: {e}") from e

        return self._row_to_campaign(row) if row else None

    async def list_history(self, limit: int = 20, offset: int = 0) -> List[CampaignHistoryRecord]:
        """List archived campaigns, newest first"""
        query = f'''
            SELECT campaign_id, name, discount_percent, min_markup_factor,
                   affected_count, blocked_count, restored_count,
                   created_at, applied_at, reverted_at
            FROM {self.history_table}
            ORDER BY reverted_at DESC
            LIMIT $1 OFFSET $2
        '''
        try:
            rows = await self.db.query(query, [limit, offset])
        except Exception as e:
            logger.error(f"Error listing campaign history: {e}")
            raise PersistenceError(f"Campaign store unavailable: {e}") from e

        return [CampaignHistoryRecord(**row) for row in rows]

    # ====================
    # Compare-and-set transitions
    # ====================

    async def insert_applying(
        self, campaign: PricingCampaign, owner: str, lease_seconds: int
    ) -> bool:
        """Compare-and-set idle -> applying"""
        query = f'''
            INSERT INTO {self.active_table} (
                slot, campaign_id, name, discount_percent, min_markup_factor,
                phase, snapshot, target_prices, planned, progress,
                affected_count, blocked_count,
                lease_owner, lease_expires_at, created_at, updated_at
            ) VALUES (
                1, $1, $2, $3, $4, $5, $6::jsonb, $7::jsonb, $12, 0, $8, $9,
                $10, NOW() + make_interval(secs => $11), NOW(), NOW()
            )
            ON CONFLICT (slot) DO NOTHING
            RETURNING campaign_id
        '''
        params = [
            campaign.campaign_id,
            campaign.name,
            campaign.discount_percent,
            campaign.min_markup_factor,
            CampaignPhase.APPLYING.value,
            prices_to_json(campaign.snapshot),
            prices_to_json(campaign.target_prices),
            campaign.affected_count,
            campaign.blocked_count,
            owner,
            float(lease_seconds),
            campaign.planned,
        ]
        try:
            row = await self.db.query_row(query, params)
        except Exception as e:
            logger.error(f"Error persisting campaign {campaign.campaign_id}: {e}", exc_info=True)
            raise PersistenceError(f"Campaign store unavailable: {e}", campaign.campaign_id) from e

        return row is not None

    async def record_plan(
        self, campaign: PricingCampaign, owner: str, lease_seconds: int
    ) -> bool:
        """Store the snapshot and target prices read while holding the slot"""
        query = f'''
            UPDATE {self.active_table}
            SET snapshot = $3::jsonb,
                target_prices = $4::jsonb,
                affected_count = $5,
                blocked_count = $6,
                planned = TRUE,
                lease_expires_at = NOW() + make_interval(secs => $7),
                updated_at = NOW()
            WHERE campaign_id = $1 AND lease_owner = $2
              AND phase = 'applying' AND NOT planned
            RETURNING campaign_id
        '''
        params = [
            campaign.campaign_id,
            owner,
            prices_to_json(campaign.snapshot),
            prices_to_json(campaign.target_prices),
            campaign.affected_count,
            campaign.blocked_count,
            float(lease_seconds),
        ]
        try:
            row = await self.db.query_row(query, params)
        except Exception as e:
            logger.error(f"Error recording price plan of {campaign.campaign_id}: {e}", exc_info=True)
            raise PersistenceError(f"Campaign store unavailable: {e}", campaign.campaign_id) from e

        return row is not None

    async def abandon_apply(self, campaign_id: str, owner: str) -> bool:
        """Free the slot held by an apply that never recorded its plan"""
        query = f'''
            DELETE FROM {self.active_table}
            WHERE campaign_id = $1 AND lease_owner = $2
              AND phase = 'applying' AND NOT planned
            RETURNING campaign_id
        '''
        try:
            row = await self.db.query_row(query, [campaign_id, owner])
        except Exception as e:
            logger.error(f"Error abandoning apply of {campaign_id}: {e}")
            raise PersistenceError(f"Campaign store unavailable: {e}", campaign_id) from e

        return row is not None

    async def renew_lease(
        self, campaign_id: str, owner: str, lease_seconds: int, progress: Optional[int] = None
    ) -> bool:
        """Extend the lease (and optionally record progress) if still owned"""
        query = f'''
            UPDATE {self.active_table}
            SET lease_expires_at = NOW() + make_interval(secs => $3),
                progress = GREATEST(progress, COALESCE($4, progress)),
                updated_at = NOW()
            WHERE campaign_id = $1 AND lease_owner = $2
            RETURNING campaign_id
        '''
        try:
            row = await self.db.query_row(query, [campaign_id, owner, float(lease_seconds), progress])
        except Exception as e:
            logger.error(f"Error renewing lease on {campaign_id}: {e}")
            raise PersistenceError(f"Campaign store unavailable: {e}", campaign_id) from e

        return row is not None

    async def release_lease(self, campaign_id: str, owner: str) -> None:
        """Give up ownership so recovery may claim the phase immediately"""
        query = f'''
            UPDATE {self.active_table}
            SET lease_owner = NULL, lease_expires_at = NULL, updated_at = NOW()
            WHERE campaign_id = $1 AND lease_owner = $2
        '''
        try:
            await self.db.execute(query, [campaign_id, owner])
        except Exception as e:
            # The lease still expires on its own
            logger.warning(f"Could not release lease on {campaign_id}: {e}")

    async def claim_stale(self, owner: str, lease_seconds: int) -> Optional[PricingCampaign]:
        """Claim an in-progress record whose lease is missing or expired"""
        query = f'''
            UPDATE {self.active_table}
            SET lease_owner = $1,
                lease_expires_at = NOW() + make_interval(secs => $2),
                updated_at = NOW()
            WHERE slot = 1
              AND phase IN ('applying', 'reverting')
              AND (lease_expires_at IS NULL OR lease_expires_at < NOW())
            RETURNING *
        '''
        try:
            row = await self.db.query_row(query, [owner, float(lease_seconds)])
        except Exception as e:
            logger.error(f"Error claiming stale campaign: {e}")
            raise PersistenceError(f"Campaign store unavailable: {e}") from e

        return self._row_to_campaign(row) if row else None

    async def complete_apply(self, campaign_id: str, owner: str) -> bool:
        """Compare-and-set applying -> applied"""
        query = f'''
            UPDATE {self.active_table}
            SET phase = 'applied',
                progress = 0,
                lease_owner = NULL,
                lease_expires_at = NULL,
                applied_at = NOW(),
                updated_at = NOW()
            WHERE campaign_id = $1 AND phase = 'applying' AND lease_owner = $2
            RETURNING campaign_id
        '''
        try:
            row = await self.db.query_row(query, [campaign_id, owner])
        except Exception as e:
            logger.error(f"Error completing apply of {campaign_id}: {e}")
            raise PersistenceError(f"Campaign store unavailable: {e}", campaign_id) from e

        return row is not None

    async def begin_revert(self, owner: str, lease_seconds: int) -> Optional[PricingCampaign]:
        """Compare-and-set applied -> reverting"""
        query = f'''
            UPDATE {self.active_table}
            SET phase = 'reverting',
                progress = 0,
                lease_owner = $1,
                lease_expires_at = NOW() + make_interval(secs => $2),
                revert_started_at = NOW(),
                updated_at = NOW()
            WHERE slot = 1 AND phase = 'applied'
            RETURNING *
        '''
        try:
            row = await self.db.query_row(query, [owner, float(lease_seconds)])
        except Exception as e:
            logger.error(f"Error starting revert: {e}")
            raise PersistenceError(f"Campaign store unavailable: {e}") from e

        return self._row_to_campaign(row) if row else None

    async def finish_revert(
        self, campaign_id: str, owner: str
    ) -> Optional[CampaignHistoryRecord]:
        """Delete the reverting record and archive it in one transaction"""
        delete_query = f'''
            DELETE FROM {self.active_table}
            WHERE campaign_id = $1 AND phase = 'reverting' AND lease_owner = $2
            RETURNING *
        '''
        archive_query = f'''
            INSERT INTO {self.history_table} (
                campaign_id, name, discount_percent, min_markup_factor,
                affected_count, blocked_count, restored_count, snapshot,
                created_at, applied_at, reverted_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9, $10, $11)
            ON CONFLICT (campaign_id) DO NOTHING
        '''
        try:
            async with self.db.transaction() as conn:
                row = await conn.fetchrow(delete_query, campaign_id, owner)
                if row is None:
                    return None

                campaign = self._row_to_campaign(dict(row))
                record = CampaignHistoryRecord(
                    campaign_id=campaign.campaign_id,
                    name=campaign.name,
                    discount_percent=campaign.discount_percent,
                    min_markup_factor=campaign.min_markup_factor,
                    affected_count=campaign.affected_count,
                    blocked_count=campaign.blocked_count,
                    restored_count=len(campaign.snapshot),
                    created_at=campaign.created_at,
                    applied_at=campaign.applied_at,
                    reverted_at=datetime.now(timezone.utc),
                )
                await conn.execute(
                    archive_query,
                    record.campaign_id,
                    record.name,
                    record.discount_percent,
                    record.min_markup_factor,
                    record.affected_count,
                    record.blocked_count,
                    record.restored_count,
                    prices_to_json(campaign.snapshot),
                    record.created_at,
                    record.applied_at,
                    record.reverted_at,
                )
        except Exception as e:
            logger.error(f"Error archiving campaign {campaign_id}: {e}", exc_info=True)
            raise PersistenceError(f"Campaign store unavailable: {e}", campaign_id) from e

        return record

    # ====================
    # Row mapping
    # ====================

    def _row_to_campaign(self, row: Dict[str, Any]) -> PricingCampaign:
        return PricingCampaign(
            campaign_id=row["campaign_id"],
            name=row["name"],
            discount_percent=Decimal(str(row["discount_percent"])),
            min_markup_factor=Decimal(str(row["min_markup_factor"])),
            phase=CampaignPhase(row["phase"]),
            snapshot=prices_from_json(row.get("snapshot")),
            target_prices=prices_from_json(row.get("target_prices")),
            planned=bool(row.get("planned", True)),
            progress=row.get("progress") or 0,
            affected_count=row.get("affected_count") or 0,
            blocked_count=row.get("blocked_count") or 0,
            lease_owner=row.get("lease_owner"),
            lease_expires_at=row.get("lease_expires_at"),
            created_at=row.get("created_at"),
            applied_at=row.get("applied_at"),
            revert_started_at=row.get("revert_started_at"),
            updated_at=row.get("updated_at"),
        )
