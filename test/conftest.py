"""
Test Configuration and Fixtures

This module provides:
- Environment setup (SQLite database, no Kafka, test log directory)
- A fake clock so hold expiry and cancellation windows run without sleeping
- A fresh database per test plus the reservation components wired on top of it
- FastAPI test client with the DI container pointed at the test database

Architecture:
- Unit tests (test/**/unit/): no database, collaborators are mocks
- Integration tests: real components over a per-test SQLite file
"""

# =============================================================================
# CRITICAL: Environment setup MUST happen before any other imports
# Settings are read at import time
# =============================================================================
import os
from pathlib import Path
import tempfile


def _early_setup_test_environment() -> None:
    test_log_dir = Path(__file__).parent / 'test_log'
    test_log_dir.mkdir(exist_ok=True)
    os.environ['TEST_LOG_DIR'] = str(test_log_dir)

    os.environ['DEBUG'] = 'false'
    os.environ['DATABASE_URL'] = (
        f'sqlite+aiosqlite:///{Path(tempfile.mkdtemp()) / "reservation_test.db"}'
    )
    os.environ.setdefault('SECRET_KEY', 'test_secret_key')


_early_setup_test_environment()

from collections.abc import AsyncGenerator, Generator  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from typing import Any  # noqa: E402

from dependency_injector import providers  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402

from src.platform.database.db_setting import Database  # noqa: E402
from src.service.reservation.domain.enum import UserRole  # noqa: E402
from test.shared.utils import FakeClock, ReservationCore, build_reservation_core  # noqa: E402
from test.util_constant import USER_ADMIN  # noqa: E402


T0 = datetime(2026, 12, 24, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Unit + Integration Fixtures
# =============================================================================
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    db = Database(url=f'sqlite+aiosqlite:///{tmp_path / "reservation.db"}')
    await db.create_tables()
    yield db
    await db.dispose()


@pytest.fixture
def core(database: Database, clock: FakeClock) -> ReservationCore:
    return build_reservation_core(database=database, clock=clock)


# =============================================================================
# API Fixtures
# =============================================================================
@pytest.fixture
def client(tmp_path: Path) -> Generator[TestClient, None, None]:
    from src.platform.config.di import container
    from test.test_main import app

    container.reset_singletons()
    container.database.override(
        providers.Singleton(Database, url=f'sqlite+aiosqlite:///{tmp_path / "api.db"}')
    )
    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client
    finally:
        container.database.reset_override()
        container.reset_singletons()


@pytest.fixture
def auth_headers() -> Any:
    from src.service.reservation.driving_adapter.http_controller.auth.jwt_auth import JwtAuth

    jwt_auth = JwtAuth()

    def _headers(user_id: int, role: UserRole = UserRole.CUSTOMER) -> dict[str, str]:
        token = jwt_auth.create_jwt_token(user_id=user_id, role=role)
        return {'Authorization': f'Bearer {token}'}

    return _headers


@pytest.fixture
def admin_headers(auth_headers: Any) -> dict[str, str]:
    return auth_headers(USER_ADMIN, UserRole.ADMIN)
