#!/usr/bin/env python3
"""
Test Configuration - PyTest Configuration and Fixtures

Puts the project root on sys.path and gives every test a freshly loaded
configuration singleton.
"""

import pytest
import tempfile
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.secure_config import ConfigManager


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture(autouse=True)
def reset_config():
    """Each test starts from a freshly loaded configuration"""
    ConfigManager.reset()
    yield
    ConfigManager.reset()


# Custom markers for test organization
def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test component interaction"
    )
