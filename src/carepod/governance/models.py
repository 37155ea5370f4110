"""Governance records as stored in the governance pod.

Field names are snake_case in Python and camelCase on the wire.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from carepod.utils.hashing import canonical_json, sha256_hex


class GovernanceRecord(BaseModel):
    """Base for records serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with wire names; unset optional fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GrantStatus(str, Enum):
    """Delegation status of a grant."""

    ACTIVE = "active"
    REVOKED = "revoked"


class GrantState(GovernanceRecord):
    """Current delegation state for one (patient, doctor, scope) triple."""

    key: str
    patient_web_id: str
    doctor_web_id: str
    scope_url: str
    status: GrantStatus
    updated_at: str
    terms_version: str
    terms_url: str
    terms_hash: str
    grant_id: str
    # Acknowledgement location for this grant; the doctor writes it.
    active_grant_url: str

    @property
    def is_active(self) -> bool:
        """Whether the grant currently delegates access."""
        return self.status == GrantStatus.ACTIVE


class Acknowledgement(GovernanceRecord):
    """A doctor's acceptance of the terms for one grant."""

    acknowledged_by: str
    acknowledged_at: str
    terms_version: str
    terms_hash: str


class AuditEventType(str, Enum):
    """Governance transitions recorded in the audit log."""

    GRANT = "GRANT"
    NOTICE_ACK = "NOTICE_ACK"
    REVOKE = "REVOKE"
    READ_BLOCKED = "READ_BLOCKED"


class AuditEventFields(GovernanceRecord):
    """Caller supplied part of an audit event."""

    event_type: AuditEventType = Field(alias="type")
    actor_web_id: str
    patient_web_id: str
    doctor_web_id: str
    scope_url: str
    grant_id: Optional[str] = None
    ack_url: Optional[str] = None
    terms_version: Optional[str] = None
    terms_hash: Optional[str] = None


class AuditEvent(AuditEventFields):
    """Immutable audit record.

    ``event_hash`` covers every other field and only shows the record is
    self-consistent. Anyone able to overwrite the file can recompute it.
    """

    event_id: str
    at: str
    event_hash: str

    def compute_hash(self) -> str:
        """Hash over all fields except ``event_hash``."""
        return compute_event_hash(self.to_wire())


def compute_event_hash(wire: Dict[str, Any]) -> str:
    """Hash of a wire-form event dict, ignoring any ``eventHash`` key."""
    base = {k: v for k, v in wire.items() if k != "eventHash"}
    return sha256_hex(canonical_json(base))


def verify_event_hash(event: AuditEvent) -> bool:
    """Whether an event's stored hash matches its content."""
    return event.compute_hash() == event.event_hash
