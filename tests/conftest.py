"""
Shared fixtures for PROJUDI tests.
"""
import pytest

from tests.fixtures.projudi_fakes import FakeClock, FakePortalDriver


@pytest.fixture
def fake_clock():
    """Clock frozen at 2024-06-01 12:00 UTC until advanced."""
    return FakeClock()


@pytest.fixture
def fake_driver():
    """Portal driver accepting only the answer 'AB12C'."""
    return FakePortalDriver(resposta_correta="AB12C")


@pytest.fixture
def consulta_service(fake_driver, fake_clock):
    """Service wired with the fake driver and clock."""
    from projudi_scraper.application.projudi_consulta_service import ProjudiConsultaService
    from projudi_scraper.infrastructure.projudi_quota_tracker import QuotaTracker
    from projudi_scraper.infrastructure.projudi_session_store import SessionStore

    return ProjudiConsultaService(
        driver=fake_driver,
        quota=QuotaTracker(clock=fake_clock),
        sessions=SessionStore(clock=fake_clock),
        clock=fake_clock,
    )
