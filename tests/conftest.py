"""
Test Configuration and Fixtures

Shared configuration and fixtures for the TerraVision agent test suite.
No test touches the network: provider clients get mocked sessions and
the orchestrator gets a scripted language model.
"""
import pytest

TEST_ENV = {
    "SENTINEL_HUB_CLIENT_ID": "test-client",
    "SENTINEL_HUB_CLIENT_SECRET": "test-secret",
    "GEMINI_API_KEY": "test-key",
    "OPENAI_API_KEY": "test-key",
}


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Automatically configure test environment for all tests"""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def iowa_bbox():
    """Iowa, canonical [min_lon, min_lat, max_lon, max_lat]"""
    return [-96.6397, 40.3755, -90.1401, 43.5012]


@pytest.fixture
def sample_stats():
    return {
        "min": -0.12,
        "max": 0.91,
        "mean": 0.71,
        "stDev": 0.08,
        "sampleCount": 40000,
        "noDataCount": 120,
    }
