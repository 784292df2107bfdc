#!/usr/bin/env python3
"""
Pytest configuration and fixtures for API Builder tests
"""

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport

from api_builder.api import dependencies
from api_builder.api.main import app
from api_builder.config import BuilderConfig
from api_builder.tracing import PerformanceTracker


@pytest.fixture
def builder_config(tmp_path, monkeypatch):
    """Configuration isolated from the developer's files and environment"""
    for env_var in BuilderConfig.ENV_MAPPING:
        monkeypatch.delenv(env_var, raising=False)

    config = BuilderConfig(project_dir=tmp_path, user_dir=tmp_path / "user")
    config.load({
        "paths": {"data": str(tmp_path / "data"), "logs": str(tmp_path / "logs")},
        "monitoring": {"memory_warmup": 0},
        "generation": {"stage_scale": 0},
    })
    return config


@pytest.fixture
def services(builder_config):
    """Initialize application services against a temporary data directory"""
    dependencies.init_services(builder_config)
    yield dependencies
    dependencies.reset_services()


@pytest.fixture
async def client(services):
    """Create async test client"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def sync_client(services):
    """Create test client"""
    return TestClient(app)


@pytest.fixture
def tracker():
    return PerformanceTracker()
