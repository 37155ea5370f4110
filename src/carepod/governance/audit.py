"""Append-only audit log stored as one JSON file per event.

Actors can write to the audit container but not read it; only the
governance identity lists events. Listing tolerates damage: a member that
cannot be fetched or parsed is dropped instead of failing the whole list.
"""

import asyncio
import csv
import io
from typing import Any, Callable, List, Optional, Sequence

from pydantic import ValidationError

from carepod.core.exceptions import CarePodException
from carepod.governance.models import (
    AuditEvent,
    AuditEventFields,
    AuditEventType,
    compute_event_hash,
)
from carepod.governance.paths import GovernancePaths
from carepod.pod.client import ResourceClient
from carepod.utils.id_generator import generate_id, utc_now_iso
from carepod.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 15
DEFAULT_LIST_LIMIT = 300


class AuditLog:
    """Writes and lists governance audit events."""

    def __init__(
        self,
        client: ResourceClient,
        paths: GovernancePaths,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        list_limit: int = DEFAULT_LIST_LIMIT,
        clock: Callable[[], str] = utc_now_iso,
    ):
        """Initialize the audit log.

        Args:
            client: Resource client bound to the acting identity
            paths: Governance pod locations
            chunk_size: Maximum concurrent fetches while listing
            list_limit: Number of events ``list_events`` returns by default
            clock: Source of ISO 8601 timestamps
        """
        self.client = client
        self.paths = paths
        self.chunk_size = chunk_size
        self.list_limit = list_limit
        self.clock = clock

    async def append(self, fields: AuditEventFields) -> AuditEvent:
        """Record one event.

        Assigns the id and timestamp, hashes the full record and writes it
        to its own file.
        """
        base = {
            "eventId": generate_id(),
            "at": self.clock(),
            **fields.to_wire(),
        }
        event = AuditEvent.model_validate({**base, "eventHash": compute_event_hash(base)})
        await self.client.put_json(self.paths.event_url(event.event_id), event.to_wire())
        logger.info(
            "audit_event_written",
            event_id=event.event_id,
            event_type=event.event_type.value,
            actor=event.actor_web_id,
        )
        return event

    async def _fetch_event(self, url: str) -> Optional[AuditEvent]:
        try:
            data = await self.client.get_json(url)
            if data is None:
                return None
            return AuditEvent.model_validate(data)
        except (CarePodException, ValueError, ValidationError) as e:
            logger.warning("audit_event_dropped", url=url, error=str(e))
            return None

    async def list_events(self, limit: Optional[int] = None) -> List[AuditEvent]:
        """Most recent events first, at most ``limit`` of them.

        ``limit`` defaults to the log's ``list_limit``.
        Members are fetched concurrently in batches of ``chunk_size``.
        Ordering compares the ISO 8601 ``at`` strings.
        """
        members = await self.client.list_container(self.paths.audit_events_container)
        event_urls = [url for url in members if url.endswith(".json")]

        events: List[AuditEvent] = []
        for start in range(0, len(event_urls), self.chunk_size):
            chunk = event_urls[start : start + self.chunk_size]
            results = await asyncio.gather(*(self._fetch_event(url) for url in chunk))
            events.extend(ev for ev in results if ev is not None)

        events.sort(key=lambda ev: ev.at, reverse=True)
        return events[: self.list_limit if limit is None else limit]


def filter_events(
    events: Sequence[AuditEvent],
    event_type: Optional[AuditEventType] = None,
    search: Optional[str] = None,
) -> List[AuditEvent]:
    """Filter by event type and a case-insensitive search term.

    The search term matches the event type, actor, doctor or scope.
    """
    needle = search.lower() if search else None
    out = []
    for ev in events:
        if event_type is not None and ev.event_type != event_type:
            continue
        if needle and not any(
            needle in value.lower()
            for value in (ev.event_type.value, ev.actor_web_id, ev.doctor_web_id, ev.scope_url)
        ):
            continue
        out.append(ev)
    return out


CSV_HEADERS = ["Time", "Type", "Actor", "Recipient", "Scope", "Hash"]


def export_csv(events: Sequence[AuditEvent]) -> str:
    """Render events as CSV, every cell quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for ev in events:
        row: List[Any] = [
            ev.at,
            ev.event_type.value,
            ev.actor_web_id,
            ev.doctor_web_id,
            ev.scope_url,
            ev.event_hash,
        ]
        writer.writerow(row)
    return buffer.getvalue()
