"""
Unit Test Fixtures for Pricing Campaign Service

Uses PricingTestDataFactory from the data contract.
"""

import pytest

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.pricing_campaign.data_contract import PricingTestDataFactory


@pytest.fixture
def factory():
    """Test data factory"""
    return PricingTestDataFactory()


@pytest.fixture
def reference_catalog(factory):
    """Three products with known 20% / 1.2x projections"""
    return factory.make_reference_catalog()
