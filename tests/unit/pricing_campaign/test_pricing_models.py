"""
Unit Tests for Pricing Campaign Models

Request aliasing, campaign record helpers, and enum values.
"""

import pytest
from decimal import Decimal
from pydantic import ValidationError

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.pricing_campaign.data_contract import (
    ApplyRequest,
    CampaignPhase,
    CampaignStatus,
    CampaignSummary,
    Product,
    PricingTestDataFactory,
    SimulateRequest,
)


# ====================
# Enum Tests
# ====================


class TestCampaignPhase:
    """Tests for CampaignPhase enum"""

    def test_values(self):
        assert CampaignPhase.APPLYING.value == "applying"
        assert CampaignPhase.APPLIED.value == "applied"
        assert CampaignPhase.REVERTING.value == "reverting"

    def test_in_progress_phases(self):
        assert CampaignPhase.APPLYING.in_progress
        assert CampaignPhase.REVERTING.in_progress
        assert not CampaignPhase.APPLIED.in_progress

    def test_status_values(self):
        assert CampaignStatus.IDLE.value == "idle"
        assert CampaignStatus.APPLIED.value == "applied"


# ====================
# Request Model Tests
# ====================


class TestSimulateRequest:
    """Tests for SimulateRequest aliasing"""

    def test_snake_case_fields(self):
        request = SimulateRequest(**PricingTestDataFactory.make_simulate_request())

        assert request.discount_percent == Decimal("20")
        assert request.min_markup_factor == Decimal("1.2")

    def test_camel_case_aliases(self):
        body = PricingTestDataFactory.make_simulate_request("15.5", "1.1", camel_case=True)

        request = SimulateRequest.model_validate(body)

        assert request.discount_percent == Decimal("15.5")
        assert request.min_markup_factor == Decimal("1.1")

    def test_missing_field_rejected(self):
        with pytest.raises(ValidationError):
            SimulateRequest.model_validate({"discount_percent": "10"})


class TestApplyRequest:
    """Tests for ApplyRequest"""

    def test_default_name(self):
        body = PricingTestDataFactory.make_apply_request(name=None)

        request = ApplyRequest.model_validate(body)

        assert request.name == "Flash Sale"

    def test_custom_name(self):
        request = ApplyRequest.model_validate(PricingTestDataFactory.make_apply_request())

        assert request.name == "Black Friday"

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            ApplyRequest.model_validate(PricingTestDataFactory.make_apply_request(name=""))


# ====================
# Product Tests
# ====================


class TestProduct:
    """Tests for Product validation"""

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            Product(product_id="p", cost_price=Decimal("1"), sale_price=Decimal("-1"), quantity=1)

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            Product(product_id="p", cost_price=Decimal("1"), sale_price=Decimal("1"), quantity=-2)


# ====================
# Campaign Record Tests
# ====================


class TestPricingCampaign:
    """Tests for PricingCampaign helpers"""

    def test_persisted_record_is_applied_status(self):
        for phase in CampaignPhase:
            campaign = PricingTestDataFactory.make_campaign(phase=phase)
            assert campaign.status == CampaignStatus.APPLIED

    def test_apply_phase_writes_targets_in_id_order(self):
        campaign = PricingTestDataFactory.make_campaign(
            phase=CampaignPhase.APPLYING,
            target_prices={"b": Decimal("2"), "a": Decimal("1"), "c": Decimal("3")},
        )

        assert campaign.pending_entries() == [
            ("a", Decimal("1")),
            ("b", Decimal("2")),
            ("c", Decimal("3")),
        ]

    def test_revert_phase_writes_snapshot(self):
        campaign = PricingTestDataFactory.make_campaign(
            phase=CampaignPhase.REVERTING,
            snapshot={"z": Decimal("9.00"), "m": Decimal("5.00")},
        )

        assert campaign.pending_entries() == [("m", Decimal("5.00")), ("z", Decimal("9.00"))]

    def test_summary_omits_snapshot_body(self):
        campaign = PricingTestDataFactory.make_campaign()

        summary = CampaignSummary.from_campaign(campaign)

        assert summary.snapshot_size == 2
        assert "snapshot" not in summary.model_dump()
        assert summary.phase == CampaignPhase.APPLIED
