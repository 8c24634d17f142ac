"""Dependency container wiring for the application."""

from dataclasses import dataclass

from supabase import create_client

from coaching_ledger.adapters.memory_repository import InMemoryCoachingRepository
from coaching_ledger.adapters.supabase_coaching_repository import (
    SupabaseCoachingRepository,
)
from coaching_ledger.config import Settings
from coaching_ledger.services.clock import Clock, SystemClock
from coaching_ledger.services.coaching import CoachingService
from coaching_ledger.services.ledger import CreditLedgerService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    clock: Clock
    ledger_service: CreditLedgerService
    coaching_service: CoachingService


def build_container(
    settings: Settings | None = None, clock: Clock | None = None
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    resolved_clock = clock or SystemClock()
    if resolved_settings.storage_backend == "supabase":
        if not (
            resolved_settings.supabase_url and resolved_settings.supabase_service_key
        ):
            raise ValueError("Supabase storage requires SUPABASE_URL and key")
        repository = SupabaseCoachingRepository(
            create_client(
                resolved_settings.supabase_url,
                resolved_settings.supabase_service_key,
            )
        )
    else:
        repository = InMemoryCoachingRepository()
    ledger_service = CreditLedgerService(repository, resolved_clock)
    coaching_service = CoachingService(
        repository=repository,
        ledger=ledger_service,
        clock=resolved_clock,
        policy=resolved_settings.deadline_policy(),
    )
    return AppContainer(
        settings=resolved_settings,
        clock=resolved_clock,
        ledger_service=ledger_service,
        coaching_service=coaching_service,
    )
