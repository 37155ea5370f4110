"""Consent governance: grants, acknowledgements, audit and revocation.

All governance state lives in a dedicated governance pod and is written
with plain GET/PUT, so it works on servers without PATCH or transactions.
"""

from carepod.governance.audit import AuditLog, export_csv, filter_events
from carepod.governance.gate import DoctorGate
from carepod.governance.grants import GrantStateMachine
from carepod.governance.models import (
    Acknowledgement,
    AuditEvent,
    AuditEventFields,
    AuditEventType,
    GrantState,
    GrantStatus,
    verify_event_hash,
)
from carepod.governance.paths import GovernancePaths, Terms, grant_key
from carepod.governance.polling import RevocationPoller
from carepod.governance.store import GovernanceStore

__all__ = [
    "Acknowledgement",
    "AuditEvent",
    "AuditEventFields",
    "AuditEventType",
    "AuditLog",
    "DoctorGate",
    "GovernancePaths",
    "GovernanceStore",
    "GrantState",
    "GrantStateMachine",
    "GrantStatus",
    "RevocationPoller",
    "Terms",
    "export_csv",
    "filter_events",
    "grant_key",
    "verify_event_hash",
]
