"""Test configuration for the CarePod test suite.

All pod traffic goes to an in-memory pod server through
``httpx.MockTransport``; no network access is needed.
"""

import itertools
from typing import Callable, List

import pytest

from carepod.config import PatientEntry, Settings
from carepod.services import SessionServices
from carepod.utils.logging import setup_logging
from tests.mocks.pod_server import InMemoryPod


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "governance: mark test as covering consent governance")
    config.addinivalue_line("markers", "acp: mark test as covering access control documents")
    config.addinivalue_line("markers", "audit_required: mark test as asserting audit events")
    config.addinivalue_line("markers", "slow: mark test as relying on real timers")


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Route structlog output through stdlib logging at DEBUG."""
    setup_logging(Settings(_env_file=None, log_level="DEBUG"))


@pytest.fixture
def settings() -> Settings:
    """Default local deployment settings with a fast poll interval."""
    return Settings(_env_file=None, revocation_poll_interval=0.01)


@pytest.fixture
def pod(settings) -> InMemoryPod:
    """Fresh in-memory pod shared by every identity in a test."""
    return InMemoryPod(acr_suffix=settings.acr_suffix)


@pytest.fixture
def clock() -> Callable[[], str]:
    """Strictly increasing timestamps one second apart."""
    counter = itertools.count()

    def tick() -> str:
        n = next(counter)
        return f"2026-01-01T{n // 3600:02d}:{n // 60 % 60:02d}:{n % 60:02d}.000Z"

    return tick


@pytest.fixture
def services_for(pod, settings, clock) -> Callable[[str], SessionServices]:
    """Factory wiring services for a session of the given identity."""

    def build(web_id: str) -> SessionServices:
        services = SessionServices.build(pod.session(web_id), settings)
        services.audit.clock = clock
        return services

    return build


@pytest.fixture
def patient(settings) -> PatientEntry:
    return settings.patients["patient1"]


@pytest.fixture
def scope_url(settings, patient) -> str:
    return f"{patient.pod_base_url}{settings.health_container_path}"


@pytest.fixture
def patient_services(services_for, patient) -> SessionServices:
    return services_for(patient.web_id)


@pytest.fixture
def doctor_services(services_for, settings) -> SessionServices:
    return services_for(settings.doctor_web_id)


@pytest.fixture
def governance_services(services_for, settings) -> SessionServices:
    return services_for(settings.governance_web_id)


@pytest.fixture
def event_urls(pod, settings) -> Callable[[], List[str]]:
    """Audit event resources currently stored in the governance pod."""

    def urls():
        prefix = f"{settings.governance_pod_base}audit/events/"
        return [u for u in pod.urls_under(prefix) if u.endswith(".json")]

    return urls
