import asyncio
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import asyncpg
import pytest
import pytest_asyncio

from tally.backend.services.onboarding_service import OnboardingService, ONBOARDING_TOKEN_TYPE
from tally.backend.services.errors import InvalidValue, NotFound, StorageUnavailable, UnknownSubject
from tally.backend.models.db_models import CatalogEntry
from tally.backend.tools.tokens import create_signed_token, decode_signed_token
from tests.fakes import InMemoryStorage, RecordingNotifier

STUDENT = "student-1"


@pytest_asyncio.fixture
async def onboarding():
    storage = InMemoryStorage(catalog=[
        CatalogEntry(code="CN", name="Computer Networks", default_total=12),
        CatalogEntry(code="OS", name="Operating Systems", default_total=None),
    ])
    notifier = RecordingNotifier()
    service = OnboardingService(redis_client=notifier, db_client=storage, ttl_seconds=600)
    return service, storage, notifier


@pytest.mark.asyncio
class TestOnboardingService:

    async def test_begin_returns_token_that_only_names_the_pending_record(self, onboarding):
        service, storage, notifier = onboarding

        token = await service.begin("Ada", [("CN", 10), ("OS", None)])

        claims = decode_signed_token(token)
        assert claims["typ"] == ONBOARDING_TOKEN_TYPE
        assert set(claims) == {"pending_id", "typ", "exp"}
        pending = notifier.pending[uuid.UUID(claims["pending_id"])]
        assert pending.name == "Ada"
        assert [(s.code, s.total) for s in pending.subjects] == [("CN", 10), ("OS", 20)]
        # Nothing is written before the student is verified.
        assert storage.totals == {}

    async def test_begin_rejects_unknown_subjects(self, onboarding):
        service, _, notifier = onboarding
        with pytest.raises(UnknownSubject, match="ALCHEMY"):
            await service.begin("Ada", [("CN", 10), ("ALCHEMY", 5)])
        assert notifier.pending == {}

    @pytest.mark.parametrize("name, subjects", [
        ("  ", [("CN", 5)]),
        ("Ada", []),
        ("Ada", [("CN", -2)]),
        ("Ada", [("CN", "1e12")]),
    ])
    async def test_begin_validates_input(self, onboarding, name, subjects):
        service, _, _ = onboarding
        with pytest.raises(InvalidValue):
            await service.begin(name, subjects)

    async def test_complete_writes_profile_and_totals_once(self, onboarding):
        service, storage, notifier = onboarding
        token = await service.begin("Ada", [("OS", "25"), ("CN", 10)])

        rows = await service.complete(STUDENT, token)

        assert [(r.subject, r.count, r.total) for r in rows] == [("CN", 0, 10), ("OS", 0, 25)]
        assert storage.profiles[STUDENT].selected_subjects == ["CN", "OS"]
        assert notifier.pending == {}
        assert (STUDENT, "attendance_totals", "UPDATE", None) in notifier.published

        with pytest.raises(NotFound):
            await service.complete(STUDENT, token)

    async def test_complete_keeps_existing_counts(self, onboarding):
        service, storage, _ = onboarding
        await storage.add_total(STUDENT, "CN", 10)
        await storage.insert_log_and_increment(STUDENT, "CN", None)
        token = await service.begin("Ada", [("CN", 14)])

        rows = await service.complete(STUDENT, token)

        assert [(r.count, r.total) for r in rows] == [(1, 14)]

    async def test_complete_rejects_tampered_token(self, onboarding):
        service, _, _ = onboarding
        token = await service.begin("Ada", [("CN", 10)])
        with pytest.raises(InvalidValue):
            await service.complete(STUDENT, token[:-2] + ("A" if token[-2] != "A" else "B") + token[-1])

    async def test_complete_rejects_expired_token(self, onboarding):
        service, _, _ = onboarding
        expired = create_signed_token(
            {"pending_id": str(uuid.uuid4()), "typ": ONBOARDING_TOKEN_TYPE}, expires_delta=timedelta(seconds=-5)
        )
        with pytest.raises(InvalidValue):
            await service.complete(STUDENT, expired)

    async def test_complete_rejects_access_tokens(self, onboarding):
        service, _, _ = onboarding
        access = create_signed_token({"sub": STUDENT}, expires_delta=timedelta(minutes=5))
        with pytest.raises(InvalidValue):
            await service.complete(STUDENT, access)

    async def test_complete_revalidates_catalog(self, onboarding):
        service, storage, notifier = onboarding
        token = await service.begin("Ada", [("CN", 10)])
        del storage.catalog["CN"]

        with pytest.raises(UnknownSubject):
            await service.complete(STUDENT, token)
        assert storage.totals == {}
        # The failed attempt leaves the pending record in place.
        assert len(notifier.pending) == 1

    async def test_token_is_redeemed_once_under_concurrency(self, onboarding):
        service, storage, _ = onboarding
        token = await service.begin("Ada", [("CN", 10)])

        results = await asyncio.gather(
            service.complete(STUDENT, token),
            service.complete("student-2", token),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, NotFound)) == 1
        assert len(storage.profiles) == 1

    async def test_storage_failure_restores_pending_record(self, onboarding):
        service, storage, notifier = onboarding
        token = await service.begin("Ada", [("CN", 10)])
        storage.complete_onboarding = AsyncMock(side_effect=asyncpg.InterfaceError("pool is closing"))

        with pytest.raises(StorageUnavailable):
            await service.complete(STUDENT, token)

        assert len(notifier.pending) == 1
        assert list(notifier.pending_ttl.values()) == [600]
