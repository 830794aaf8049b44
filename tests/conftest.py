"""
Root conftest.py - Global configuration for all test layers.

Test Layers:
    - component/: Component tests (service layer, in-memory repositories, TestClient)
    - unit/     : Unit tests (pure functions, no I/O)
    - contracts/: Data contracts and test data factories shared by the layers
"""
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Keep tests off real infrastructure
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("NATS_ENABLED", "false")


# =============================================================================
# Pytest Hooks
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")
