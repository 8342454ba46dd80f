# tests/api/conftest.py
import pytest
from fastapi.testclient import TestClient

from tally.backend.main import app
from tally.backend.api.dependencies import (
    get_ledger_service, get_onboarding_service, get_profile_service, get_redis_client, get_totals_service
)
from tally.backend.api.utilities.limiter import limiter
from tally.backend.models.db_models import CatalogEntry
from tally.backend.services.ledger_service import LedgerService
from tally.backend.services.onboarding_service import OnboardingService
from tally.backend.services.profile_service import ProfileService
from tally.backend.services.totals_service import TotalsService
from tests.fakes import InMemoryStorage, RecordingNotifier


@pytest.fixture
def backend():
    """Routes wired to in-memory storage; the lifespan (real pools, scheduler) is not started."""
    storage = InMemoryStorage(catalog=[
        CatalogEntry(code="CN", name="Computer Networks", default_total=12),
        CatalogEntry(code="OS", name="Operating Systems", default_total=None),
    ])
    notifier = RecordingNotifier()
    app.dependency_overrides[get_ledger_service] = lambda: LedgerService(redis_client=notifier, db_client=storage)
    app.dependency_overrides[get_totals_service] = lambda: TotalsService(redis_client=notifier, db_client=storage)
    app.dependency_overrides[get_onboarding_service] = lambda: OnboardingService(
        redis_client=notifier, db_client=storage, ttl_seconds=600
    )
    app.dependency_overrides[get_profile_service] = lambda: ProfileService(db_client=storage)
    app.dependency_overrides[get_redis_client] = lambda: notifier
    limiter.reset()
    yield storage, notifier
    app.dependency_overrides.clear()


@pytest.fixture
def client(backend):
    return TestClient(app)
