"""Tests for the audit log."""

import asyncio
import csv
import hashlib
import io
import json

import pytest

from carepod.core.exceptions import ForbiddenError
from carepod.governance.audit import AuditLog, export_csv, filter_events
from carepod.governance.models import (
    AuditEvent,
    AuditEventFields,
    AuditEventType,
    compute_event_hash,
    verify_event_hash,
)

DOCTOR = "http://localhost:3000/doctor/profile/card#me"
PATIENT = "http://localhost:3000/patient/profile/card#me"
PATIENT_SCOPE = "http://localhost:3000/patient/health/"
OTHER_SCOPE = "http://localhost:3000/patient2/health/"


def fields(event_type=AuditEventType.GRANT, actor=PATIENT, scope=PATIENT_SCOPE, **extra):
    return AuditEventFields(
        event_type=event_type,
        actor_web_id=actor,
        patient_web_id=PATIENT,
        doctor_web_id=DOCTOR,
        scope_url=scope,
        **extra,
    )


@pytest.fixture
def writer_log(patient_services) -> AuditLog:
    return patient_services.audit


@pytest.fixture
def reader_log(governance_services) -> AuditLog:
    return governance_services.audit


@pytest.mark.audit_required
class TestAppend:
    """Writing events."""

    @pytest.mark.asyncio
    async def test_event_stored_under_its_id(self, pod, writer_log, settings):
        event = await writer_log.append(fields(grant_id="g-1"))
        url = f"{settings.governance_pod_base}audit/events/{event.event_id}.json"
        stored = pod.json(url)
        assert stored["eventId"] == event.event_id
        assert stored["type"] == "GRANT"
        assert stored["grantId"] == "g-1"
        assert stored["eventHash"] == event.event_hash

    @pytest.mark.asyncio
    async def test_unset_fields_are_omitted(self, pod, writer_log, event_urls):
        await writer_log.append(fields())
        [url] = event_urls()
        stored = pod.json(url)
        assert "grantId" not in stored
        assert "termsHash" not in stored

    @pytest.mark.asyncio
    async def test_hash_is_canonical_json_digest(self, writer_log):
        event = await writer_log.append(fields(terms_version="v1.0"))
        wire = event.to_wire()
        del wire["eventHash"]
        canonical = json.dumps(wire, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        assert event.event_hash == hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        assert verify_event_hash(event)

    @pytest.mark.asyncio
    async def test_tampering_is_detected(self, writer_log):
        event = await writer_log.append(fields())
        tampered = event.model_copy(update={"actor_web_id": "http://evil.example/card#me"})
        assert not verify_event_hash(tampered)

    @pytest.mark.asyncio
    async def test_writers_cannot_list(self, pod, writer_log, settings):
        await writer_log.append(fields())
        pod.deny(f"{settings.governance_pod_base}audit/", PATIENT)
        with pytest.raises(ForbiddenError):
            await writer_log.list_events()


@pytest.mark.audit_required
class TestListEvents:
    """Listing by the governance identity."""

    @pytest.mark.asyncio
    async def test_newest_first_with_limit(self, writer_log, reader_log):
        written = [await writer_log.append(fields()) for _ in range(5)]
        listed = await reader_log.list_events(limit=4)
        assert [e.event_id for e in listed] == [e.event_id for e in reversed(written)][:4]

    @pytest.mark.asyncio
    async def test_empty_or_missing_container(self, reader_log):
        assert await reader_log.list_events() == []

    @pytest.mark.asyncio
    async def test_malformed_members_are_dropped(self, pod, writer_log, reader_log, settings):
        good = await writer_log.append(fields())
        events = f"{settings.governance_pod_base}audit/events/"
        pod.put_raw(f"{events}broken.json", "{truncated")
        pod.put_raw(f"{events}partial.json", json.dumps({"type": "GRANT"}))
        pod.put_raw(f"{events}notes.txt", "ignored", "text/plain")
        pod.respond(f"{events}gone.json", 500)
        pod.put_raw(f"{events}gone.json", "{}")

        listed = await reader_log.list_events()
        assert [e.event_id for e in listed] == [good.event_id]

    @pytest.mark.asyncio
    async def test_default_limit_comes_from_settings(self, services_for, settings):
        settings.audit_list_limit = 2
        writer = services_for(PATIENT).audit
        for _ in range(4):
            await writer.append(fields())

        reader = services_for(settings.governance_web_id).audit
        assert reader.list_limit == 2
        assert len(await reader.list_events()) == 2
        assert len(await reader.list_events(limit=3)) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("listing_format", ["turtle", "jsonld"])
    async def test_members_fetched_in_bounded_batches(
        self, pod, services_for, settings, listing_format, monkeypatch
    ):
        pod.listing_format = listing_format
        settings.audit_fetch_chunk_size = 4
        writer = services_for(PATIENT).audit
        for _ in range(10):
            await writer.append(fields())

        reader = services_for(settings.governance_web_id).audit
        get_json = reader.client.get_json
        in_flight = 0
        peak = 0

        async def counting_get_json(url):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0)
                return await get_json(url)
            finally:
                in_flight -= 1

        monkeypatch.setattr(reader.client, "get_json", counting_get_json)
        listed = await reader.list_events()
        assert len(listed) == 10
        assert all(verify_event_hash(e) for e in listed)
        assert peak == reader.chunk_size == 4


class TestFilterAndExport:
    """Client-side filtering and CSV export."""

    def make(self, n, event_type, actor=PATIENT, scope=PATIENT_SCOPE):
        base = fields(event_type=event_type, actor=actor, scope=scope).to_wire()
        base.update(eventId=f"e{n}", at=f"2026-01-01T00:00:0{n}.000Z")
        return AuditEvent.model_validate({**base, "eventHash": compute_event_hash(base)})

    def test_filter_by_type(self):
        events = [self.make(1, AuditEventType.GRANT), self.make(2, AuditEventType.REVOKE)]
        assert [e.event_id for e in filter_events(events, AuditEventType.REVOKE)] == ["e2"]

    def test_search_is_case_insensitive(self):
        events = [
            self.make(1, AuditEventType.GRANT),
            self.make(2, AuditEventType.NOTICE_ACK, actor=DOCTOR, scope=OTHER_SCOPE),
        ]
        assert [e.event_id for e in filter_events(events, search="PATIENT2")] == ["e2"]
        assert [e.event_id for e in filter_events(events, search="notice")] == ["e2"]
        assert len(filter_events(events, search="doctor")) == 2

    def test_csv_export(self):
        events = [self.make(1, AuditEventType.GRANT), self.make(2, AuditEventType.REVOKE)]
        text = export_csv(events)
        assert text.startswith('"Time","Type","Actor","Recipient","Scope","Hash"\n')
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[1] == [
            events[0].at,
            "GRANT",
            PATIENT,
            DOCTOR,
            PATIENT_SCOPE,
            events[0].event_hash,
        ]
        assert len(rows) == 3
