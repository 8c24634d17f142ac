"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from coaching_ledger.adapters.memory_repository import InMemoryCoachingRepository
from coaching_ledger.config import Settings
from coaching_ledger.containers import AppContainer, build_container
from coaching_ledger.domain.lifecycle import DeadlinePolicy
from coaching_ledger.services.clock import Clock
from coaching_ledger.services.coaching import CoachingService
from coaching_ledger.services.ledger import CreditLedgerService

START = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


@dataclass
class FakeClock(Clock):
    """Manually advanced clock for deadline tests."""

    current: datetime = field(default=START)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository() -> InMemoryCoachingRepository:
    return InMemoryCoachingRepository()


@pytest.fixture
def ledger_service(
    repository: InMemoryCoachingRepository, clock: FakeClock
) -> CreditLedgerService:
    return CreditLedgerService(repository, clock)


@pytest.fixture
def coaching_service(
    repository: InMemoryCoachingRepository,
    ledger_service: CreditLedgerService,
    clock: FakeClock,
) -> CoachingService:
    return CoachingService(
        repository=repository,
        ledger=ledger_service,
        clock=clock,
        policy=DeadlinePolicy(),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(admin_token="admin-token")


@pytest.fixture
def container(settings: Settings, clock: FakeClock) -> AppContainer:
    return build_container(settings, clock=clock)
