"""Tests for the doctor consent gate."""

import pytest

from carepod.core.exceptions import LegalNoticeRequiredError, NoActiveGrantError
from carepod.governance.gate import TERMS_UNAVAILABLE
from carepod.governance.models import AuditEventType


@pytest.fixture
def grant(patient_services, patient, settings, scope_url):
    """Coroutine factory issuing a grant from the patient to the doctor."""

    async def issue():
        return await patient_services.grants.create_grant_and_activate(
            patient.web_id, settings.doctor_web_id, scope_url
        )

    return issue


@pytest.fixture
def gate(doctor_services):
    return doctor_services.gate


def stored_events(pod, event_urls, event_type):
    return [pod.json(u) for u in event_urls() if pod.json(u)["type"] == event_type.value]


@pytest.mark.governance
class TestGateRefusals:
    """Reads refused before any data is touched."""

    @pytest.mark.asyncio
    async def test_no_grant(self, gate, patient, scope_url):
        with pytest.raises(NoActiveGrantError) as exc_info:
            await gate.gate_or_throw(patient.web_id, scope_url)
        assert exc_info.value.code == "NO_ACTIVE_GRANT"

    @pytest.mark.asyncio
    async def test_revoked_grant(
        self, gate, grant, patient_services, patient, settings, scope_url
    ):
        await grant()
        await patient_services.grants.revoke_active_grant(
            patient.web_id, settings.doctor_web_id, scope_url
        )
        with pytest.raises(NoActiveGrantError):
            await gate.gate_or_throw(patient.web_id, scope_url)

    @pytest.mark.asyncio
    async def test_unacknowledged_grant_requires_notice(
        self, pod, gate, grant, patient, settings, scope_url
    ):
        state = await grant()
        pod.put_raw(state.terms_url, settings.terms_text, "text/plain")

        with pytest.raises(LegalNoticeRequiredError) as exc_info:
            await gate.gate_or_throw(patient.web_id, scope_url)
        assert exc_info.value.notice_text == settings.terms_text
        assert exc_info.value.grant.grant_id == state.grant_id
        assert exc_info.value.code == "LEGAL_NOTICE_REQUIRED"

    @pytest.mark.asyncio
    async def test_notice_placeholder_when_terms_unreadable(self, gate, grant, patient, scope_url):
        await grant()
        with pytest.raises(LegalNoticeRequiredError) as exc_info:
            await gate.gate_or_throw(patient.web_id, scope_url)
        assert exc_info.value.notice_text == TERMS_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_acknowledgement_by_someone_else_does_not_count(
        self, pod, gate, grant, patient, scope_url
    ):
        state = await grant()
        pod.put_raw(
            state.active_grant_url,
            '{"acknowledgedBy": "http://localhost:3000/nurse/profile/card#me"}',
        )
        with pytest.raises(LegalNoticeRequiredError):
            await gate.gate_or_throw(patient.web_id, scope_url)


@pytest.mark.governance
class TestAcknowledgement:
    """Accepting terms for one specific grant."""

    @pytest.mark.asyncio
    async def test_acknowledged_grant_passes(self, pod, gate, grant, patient, settings, scope_url):
        state = await grant()
        ack = await gate.acknowledge_grant(state)

        stored = pod.json(state.active_grant_url)
        assert stored["acknowledgedBy"] == settings.doctor_web_id
        assert stored["termsVersion"] == state.terms_version
        assert stored["termsHash"] == state.terms_hash
        assert stored["acknowledgedAt"] == ack.acknowledged_at

        passed = await gate.gate_or_throw(patient.web_id, scope_url)
        assert passed.grant_id == state.grant_id

    @pytest.mark.asyncio
    async def test_regrant_requires_new_acknowledgement(self, gate, grant, patient, scope_url):
        first = await grant()
        await gate.acknowledge_grant(first)
        await gate.gate_or_throw(patient.web_id, scope_url)

        second = await grant()
        with pytest.raises(LegalNoticeRequiredError) as exc_info:
            await gate.gate_or_throw(patient.web_id, scope_url)
        assert exc_info.value.grant.grant_id == second.grant_id

    @pytest.mark.asyncio
    async def test_unparsable_acknowledgement_counts_as_given(
        self, pod, gate, grant, patient, scope_url
    ):
        state = await grant()
        pod.put_raw(state.active_grant_url, "not json at all")
        passed = await gate.gate_or_throw(patient.web_id, scope_url)
        assert passed.grant_id == state.grant_id

    @pytest.mark.asyncio
    async def test_unreadable_acknowledgement_does_not_count(
        self, pod, gate, grant, patient, scope_url
    ):
        state = await grant()
        await gate.acknowledge_grant(state)
        pod.deny(state.active_grant_url)
        with pytest.raises(LegalNoticeRequiredError):
            await gate.gate_or_throw(patient.web_id, scope_url)


@pytest.mark.governance
@pytest.mark.audit_required
class TestGateAudit:
    """Acknowledgements and refusals leave audit events."""

    @pytest.mark.asyncio
    async def test_acknowledgement_event(self, pod, gate, grant, settings, event_urls):
        state = await grant()
        await gate.acknowledge_grant(state)

        [event] = stored_events(pod, event_urls, AuditEventType.NOTICE_ACK)
        assert event["actorWebId"] == settings.doctor_web_id
        assert event["grantId"] == state.grant_id
        assert event["ackUrl"] == state.active_grant_url
        assert event["termsHash"] == state.terms_hash

    @pytest.mark.asyncio
    async def test_refused_read_is_recorded(
        self, pod, gate, patient, settings, scope_url, event_urls
    ):
        with pytest.raises(NoActiveGrantError):
            await gate.gate_or_throw(patient.web_id, scope_url)

        [event] = stored_events(pod, event_urls, AuditEventType.READ_BLOCKED)
        assert event["actorWebId"] == settings.doctor_web_id
        assert event["patientWebId"] == patient.web_id
        assert event["scopeUrl"] == scope_url
        assert "grantId" not in event

    @pytest.mark.asyncio
    async def test_refusal_recording_can_be_disabled(
        self, services_for, patient, settings, scope_url, event_urls
    ):
        settings.audit_blocked_reads = False
        gate = services_for(settings.doctor_web_id).gate
        with pytest.raises(NoActiveGrantError):
            await gate.gate_or_throw(patient.web_id, scope_url)
        assert event_urls() == []

    @pytest.mark.asyncio
    async def test_refusal_stands_when_audit_write_fails(
        self, pod, gate, patient, settings, scope_url, event_urls
    ):
        pod.deny(f"{settings.governance_pod_base}audit/", settings.doctor_web_id)
        with pytest.raises(NoActiveGrantError):
            await gate.gate_or_throw(patient.web_id, scope_url)
        assert event_urls() == []
