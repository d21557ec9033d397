# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests run against an in-memory SQLite database
- Integration tests drive the HTTP API with service dependencies replaced
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from counseltrack.core.config.settings import (
    EscalationSettings,
    NotificationSettings,
    Settings,
    SMTPSettings,
)
from counseltrack.infrastructure.database.connection import (
    create_engine_for_url,
    create_sessionmaker,
    create_tables,
)
from counseltrack.infrastructure.database.models.notification import NotificationChannel
from counseltrack.infrastructure.notifications.channels import (
    InAppChannel,
    LogOnlyChannel,
)


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with fixed contacts and no outgoing email."""
    return Settings(
        environment="development",
        debug=True,
        smtp=SMTPSettings(host=None, username=None, password=None, from_email=None),
        escalation=EscalationSettings(
            counselor_contact="counselor@test.edu",
            assistant_principal_contact="ap@test.edu",
            principal_contact="principal@test.edu",
            critical_threshold_hours=2.0,
            standard_threshold_hours=24.0,
            metrics_window_days=30,
        ),
        notification=NotificationSettings(
            retry_window_hours=24,
            school_name="Lincoln High",
            timezone="UTC",
        ),
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with every table created."""
    engine = create_engine_for_url("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessionmaker bound to the test engine."""
    return create_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(sessionmaker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A session on the test database."""
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def channels() -> dict:
    """Transports that never leave the process."""
    return {
        NotificationChannel.EMAIL: LogOnlyChannel(NotificationChannel.EMAIL),
        NotificationChannel.IN_APP: InAppChannel(),
        NotificationChannel.SMS: LogOnlyChannel(NotificationChannel.SMS),
        NotificationChannel.PUSH: LogOnlyChannel(NotificationChannel.PUSH),
    }


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
