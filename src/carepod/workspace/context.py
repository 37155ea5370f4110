"""Session context and load cancellation."""

from dataclasses import dataclass, field
from typing import List, Optional

from carepod.acp.service import NOTHING_GRANTED, AccessGrantStatus
from carepod.config import PatientEntry
from carepod.governance.models import GrantState
from carepod.health.models import FullRecord, PatientFile
from carepod.roles import Role, RoleTable

LEGAL_NOTICE_MESSAGE = "Legal notice must be accepted before access is allowed."
NO_ACTIVE_GRANT_MESSAGE = "Access is not currently granted or has been revoked."
RECORD_FORBIDDEN_MESSAGE = "You do not have access to this patient's full record."
RECORD_MISSING_MESSAGE = "No full record exists yet for this patient."
RECORD_NOT_LOADED_MESSAGE = "Record not loaded!"
FILES_NOT_LOADED_MESSAGE = "Patient files not loaded!"


@dataclass(frozen=True)
class PatientContext:
    """Who is acting, in which role, on which patient."""

    web_id: str
    role: Role
    patient_key: Optional[str]
    patient: Optional[PatientEntry]
    scope_url: Optional[str]

    @property
    def has_patient(self) -> bool:
        return self.patient is not None


def resolve_context(roles: RoleTable, web_id: str, selected_key: Optional[str]) -> PatientContext:
    """Resolve the patient a session works on.

    Args:
        roles: Role table
        web_id: Acting identity
        selected_key: Patient picked by a care role, ignored for patients

    Returns:
        The resolved context; ``patient`` is None when there is nothing to load
    """
    role = roles.detect_role(web_id)
    key = roles.effective_patient_key(role, web_id, selected_key)
    patient = roles.patients.get(key) if key else None
    return PatientContext(
        web_id=web_id,
        role=role,
        patient_key=key if patient else None,
        patient=patient,
        scope_url=roles.health_container_url(patient) if patient else None,
    )


@dataclass
class PatientView:
    """What a session currently shows for its patient."""

    full_record: Optional[FullRecord] = None
    record_status: Optional[int] = None
    record_error: Optional[str] = None
    files: List[PatientFile] = field(default_factory=list)
    files_error: Optional[str] = None
    access: AccessGrantStatus = NOTHING_GRANTED
    pending_grant: Optional[GrantState] = None
    legal_notice_text: Optional[str] = None

    @classmethod
    def blocked(cls, message: str, status: int = 403) -> "PatientView":
        """Baseline view for a refused load."""
        return cls(record_status=status, record_error=message)


class CancelToken:
    """Marks a load as superseded.

    Loads check the token after every await and stop touching shared state
    once it is cancelled.
    """

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
