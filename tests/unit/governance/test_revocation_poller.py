"""Tests for revocation polling."""

import asyncio

import pytest

from carepod.governance.polling import RevocationPoller


@pytest.fixture
def make_poller(doctor_services, patient, settings, scope_url):
    def make(on_revoked, interval=0.01):
        return RevocationPoller(
            doctor_services.grants,
            patient.web_id,
            settings.doctor_web_id,
            scope_url,
            on_revoked,
            interval=interval,
        )

    return make


async def wait_for(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.mark.governance
class TestRevocationPoller:
    """Background grant checks."""

    @pytest.mark.asyncio
    async def test_check_once(self, make_poller, patient_services, patient, settings, scope_url):
        poller = make_poller(lambda: None)
        assert await poller.check_once() is True

        await patient_services.grants.create_grant_and_activate(
            patient.web_id, settings.doctor_web_id, scope_url
        )
        assert await poller.check_once() is False

    @pytest.mark.asyncio
    async def test_revocation_fires_callback_once(
        self, make_poller, patient_services, patient, settings, scope_url
    ):
        await patient_services.grants.create_grant_and_activate(
            patient.web_id, settings.doctor_web_id, scope_url
        )
        calls = []
        poller = make_poller(lambda: calls.append(1))
        poller.start()
        await asyncio.sleep(0.03)
        assert calls == []
        assert poller.running

        await patient_services.grants.revoke_active_grant(
            patient.web_id, settings.doctor_web_id, scope_url
        )
        await wait_for(lambda: not poller.running)
        await asyncio.sleep(0.03)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(
        self, pod, make_poller, doctor_services, patient_services, patient, settings, scope_url
    ):
        await patient_services.grants.create_grant_and_activate(
            patient.web_id, settings.doctor_web_id, scope_url
        )
        key = doctor_services.grants.key_for(patient.web_id, settings.doctor_web_id, scope_url)
        state_url = doctor_services.paths.state_url(key)
        pod.respond(state_url, 503)

        calls = []
        poller = make_poller(lambda: calls.append(1))
        poller.start()
        await wait_for(lambda: len(pod.requests_to(state_url)) >= 3)
        assert calls == []
        assert poller.running
        await poller.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_ends_polling(
        self, pod, make_poller, patient_services, patient, settings, scope_url
    ):
        await patient_services.grants.create_grant_and_activate(
            patient.web_id, settings.doctor_web_id, scope_url
        )
        poller = make_poller(lambda: None, interval=0.05)
        poller.start()
        task = poller._task
        poller.start()
        assert poller._task is task

        await poller.stop()
        assert not poller.running
        count = len(pod.requests)
        await asyncio.sleep(0.1)
        assert len(pod.requests) == count
