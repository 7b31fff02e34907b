"""
Pytest configuration and fixtures for backend tests.
"""

from typing import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from catalog_migration.main import app
from catalog_migration.services.batch_import import BatchImportCoordinator
from catalog_migration.services.price_guide_import import PriceGuideImportCoordinator
from factories import make_migration_client, make_price_guide_client


@pytest.fixture
def office_client() -> AsyncMock:
    """Fake offices client; configure return values per test."""
    return make_migration_client("offices")


@pytest.fixture
def price_guide_client() -> AsyncMock:
    """Fake price guide client; configure return values per test."""
    return make_price_guide_client()


@pytest.fixture
def office_coordinator(office_client: AsyncMock) -> BatchImportCoordinator:
    return BatchImportCoordinator(office_client, batch_size=2)


@pytest.fixture
def price_guide_coordinator(price_guide_client: AsyncMock) -> PriceGuideImportCoordinator:
    return PriceGuideImportCoordinator(price_guide_client, batch_size=100, tick_interval=0.01)


@pytest.fixture(scope="function")
def client(
    office_client: AsyncMock,
    price_guide_client: AsyncMock,
    office_coordinator: BatchImportCoordinator,
    price_guide_coordinator: PriceGuideImportCoordinator,
) -> Generator[TestClient, None, None]:
    """Create a test client whose app state holds the fake clients."""
    with TestClient(app) as test_client:
        state = app.state
        originals = (
            state.migration_clients,
            state.batch_coordinators,
            state.price_guide_client,
            state.price_guide_coordinator,
        )

        state.migration_clients = {"offices": office_client}
        state.batch_coordinators = {"offices": office_coordinator}
        state.price_guide_client = price_guide_client
        state.price_guide_coordinator = price_guide_coordinator

        yield test_client

        # Hand the real clients back so shutdown closes them
        (
            state.migration_clients,
            state.batch_coordinators,
            state.price_guide_client,
            state.price_guide_coordinator,
        ) = originals
