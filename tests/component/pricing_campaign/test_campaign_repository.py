"""
Component Tests for CampaignRepository

Tests the compare-and-set SQL adapter against a mock database client.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.config import PricingConfig
from microservices.pricing_campaign_service.campaign_repository import (
    CampaignRepository,
    prices_from_json,
    prices_to_json,
)
from microservices.pricing_campaign_service.protocols import PersistenceError
from tests.component.mocks import MockPostgresClient
from tests.contracts.pricing_campaign.data_contract import CampaignPhase


@pytest.fixture
def mock_db():
    return MockPostgresClient()


@pytest.fixture
def repository(mock_db):
    return CampaignRepository(mock_db, PricingConfig(pricing_schema="pricing_test"))


def make_row(phase="applied", **overrides):
    """Active campaign row as asyncpg returns it (JSONB as text)"""
    row = {
        "slot": 1,
        "campaign_id": "pc_0123456789abcdef",
        "name": "Flash Sale",
        "discount_percent": Decimal("20"),
        "min_markup_factor": Decimal("1.2"),
        "phase": phase,
        "snapshot": json.dumps({"A": "30.00", "C": "50.00"}),
        "target_prices": json.dumps({"A": "24.00", "C": "40.00"}),
        "planned": True,
        "progress": 1,
        "affected_count": 2,
        "blocked_count": 1,
        "lease_owner": None,
        "lease_expires_at": None,
        "created_at": datetime(2024, 11, 29, 8, 0, tzinfo=timezone.utc),
        "applied_at": None,
        "revert_started_at": None,
        "updated_at": None,
    }
    row.update(overrides)
    return row


class TestPriceSerialization:
    """Snapshot maps are stored as decimal strings"""

    def test_values_are_strings(self):
        raw = prices_to_json({"A": Decimal("30.10")})

        assert json.loads(raw) == {"A": "30.10"}

    def test_reads_text_and_decoded_jsonb(self):
        assert prices_from_json('{"A": "30.10"}') == {"A": Decimal("30.10")}
        assert prices_from_json({"A": "30.10"}) == {"A": Decimal("30.10")}
        assert prices_from_json(None) == {}

    def test_trailing_zeros_survive(self):
        restored = prices_from_json(prices_to_json({"A": Decimal("19.90")}))

        assert str(restored["A"]) == "19.90"


class TestCampaignRepositoryLifecycle:

    @pytest.mark.asyncio
    async def test_initialize_creates_schema(self, repository, mock_db):
        await repository.initialize()

        sql = mock_db.get_queries("execute")[0][1]
        assert "CREATE SCHEMA IF NOT EXISTS pricing_test" in sql
        assert "pricing_test.active_campaign" in sql
        assert "CHECK (slot = 1)" in sql

    @pytest.mark.asyncio
    async def test_initialize_failure_is_persistence_error(self, repository, mock_db):
        mock_db.set_error(ConnectionError("refused"))

        with pytest.raises(PersistenceError):
            await repository.initialize()

    @pytest.mark.asyncio
    async def test_close(self, repository, mock_db):
        await repository.close()

        assert mock_db.closed is True


class TestCompareAndSet:
    """Each transition reports whether this caller won"""

    @pytest.mark.asyncio
    async def test_insert_applying_wins(self, repository, mock_db, factory):
        campaign = factory.make_campaign(phase=CampaignPhase.APPLYING)
        mock_db.set_row_response({"campaign_id": campaign.campaign_id})

        assert await repository.insert_applying(campaign, "worker-1", 30) is True

        _, sql, params = mock_db.get_queries("query_row")[0]
        assert "ON CONFLICT (slot) DO NOTHING" in sql
        assert params[0] == campaign.campaign_id
        assert params[4] == "applying"
        assert json.loads(params[5]) == {"A": "30.00", "C": "50.00"}
        assert params[9] == "worker-1"

    @pytest.mark.asyncio
    async def test_insert_applying_loses_to_existing_row(self, repository, mock_db, factory):
        mock_db.set_row_response(None)

        campaign = factory.make_campaign(phase=CampaignPhase.APPLYING)
        assert await repository.insert_applying(campaign, "worker-1", 30) is False

    @pytest.mark.asyncio
    async def test_record_plan_is_fenced(self, repository, mock_db, factory):
        campaign = factory.make_campaign(phase=CampaignPhase.APPLYING)
        mock_db.set_row_response({"campaign_id": campaign.campaign_id})

        assert await repository.record_plan(campaign, "worker-1", 30) is True

        _, sql, params = mock_db.get_queries("query_row")[0]
        assert "lease_owner = $2" in sql
        assert "NOT planned" in sql
        assert params[:2] == [campaign.campaign_id, "worker-1"]
        assert json.loads(params[3]) == {"A": "24.00", "C": "40.00"}

    @pytest.mark.asyncio
    async def test_abandon_apply_only_unplanned(self, repository, mock_db):
        mock_db.set_row_response(None)

        assert await repository.abandon_apply("pc_x", "worker-1") is False
        _, sql, params = mock_db.get_queries("query_row")[0]
        assert sql.strip().startswith("DELETE FROM pricing_test.active_campaign")
        assert "NOT planned" in sql
        assert params == ["pc_x", "worker-1"]

    @pytest.mark.asyncio
    async def test_renew_lease_is_fenced_on_owner(self, repository, mock_db):
        mock_db.set_row_response(None)

        renewed = await repository.renew_lease("pc_x", "worker-2", 30, progress=4)

        assert renewed is False
        _, sql, params = mock_db.get_queries("query_row")[0]
        assert "lease_owner = $2" in sql
        assert params == ["pc_x", "worker-2", 30.0, 4]

    @pytest.mark.asyncio
    async def test_claim_stale_maps_row(self, repository, mock_db):
        mock_db.set_row_response(make_row(phase="reverting", lease_owner="worker-9"))

        campaign = await repository.claim_stale("worker-9", 30)

        assert campaign.phase == CampaignPhase.REVERTING
        assert campaign.planned is True
        assert campaign.snapshot == {"A": Decimal("30.00"), "C": Decimal("50.00")}
        assert campaign.progress == 1
        assert campaign.lease_owner == "worker-9"

    @pytest.mark.asyncio
    async def test_begin_revert_without_applied_row(self, repository, mock_db):
        mock_db.set_row_response(None)

        assert await repository.begin_revert("worker-1", 30) is None

    @pytest.mark.asyncio
    async def test_failures_become_persistence_errors(self, repository, mock_db, factory):
        mock_db.set_error(TimeoutError("statement timeout"))
        campaign = factory.make_campaign(phase=CampaignPhase.APPLYING)

        with pytest.raises(PersistenceError) as exc_info:
            await repository.insert_applying(campaign, "worker-1", 30)

        assert exc_info.value.campaign_id == campaign.campaign_id

    @pytest.mark.asyncio
    async def test_release_lease_failure_is_tolerated(self, repository, mock_db):
        mock_db.set_error(ConnectionError("gone"))

        await repository.release_lease("pc_x", "worker-1")


class TestFinishRevert:
    """Delete and archive share one transaction"""

    @pytest.mark.asyncio
    async def test_archives_deleted_row(self, repository, mock_db):
        mock_db.set_row_response(make_row(phase="reverting", lease_owner="worker-1"))

        record = await repository.finish_revert("pc_0123456789abcdef", "worker-1")

        assert mock_db.transactions == 1
        assert record.restored_count == 2
        assert record.blocked_count == 1
        assert record.reverted_at is not None

        (_, delete_sql, delete_args), (_, insert_sql, insert_args) = mock_db.queries
        assert "DELETE FROM pricing_test.active_campaign" in delete_sql
        assert delete_args == ["pc_0123456789abcdef", "worker-1"]
        assert "INSERT INTO pricing_test.campaign_history" in insert_sql
        assert json.loads(insert_args[7]) == {"A": "30.00", "C": "50.00"}

    @pytest.mark.asyncio
    async def test_not_owner_archives_nothing(self, repository, mock_db):
        mock_db.set_row_response(None)

        assert await repository.finish_revert("pc_0123456789abcdef", "worker-2") is None
        assert mock_db.get_queries("conn_execute") == []


class TestHistory:

    @pytest.mark.asyncio
    async def test_list_history(self, repository, mock_db):
        reverted_at = datetime(2024, 12, 2, tzinfo=timezone.utc)
        mock_db.set_rows_response([{
            "campaign_id": "pc_old",
            "name": "Cyber Monday",
            "discount_percent": Decimal("15"),
            "min_markup_factor": Decimal("1.1"),
            "affected_count": 40,
            "blocked_count": 3,
            "restored_count": 40,
            "created_at": None,
            "applied_at": None,
            "reverted_at": reverted_at,
        }])

        history = await repository.list_history(limit=5, offset=10)

        assert [h.campaign_id for h in history] == ["pc_old"]
        assert history[0].reverted_at == reverted_at
        assert mock_db.get_queries("query")[0][2] == [5, 10]
