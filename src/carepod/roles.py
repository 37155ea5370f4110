"""Role resolution for pod identities.

Roles are a closed enumeration resolved once from configuration. Nothing
outside this module compares identity strings to decide what someone is.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from carepod.config import PatientEntry, Settings
from carepod.core.exceptions import ConfigurationError


class Role(str, Enum):
    """Roles an identity can hold."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    EMERGENCY = "emergency"
    PHARMACY = "pharmacy"
    NURSE = "nurse"
    GOVERNANCE = "governance"
    UNKNOWN = "unknown"


# Roles that can be granted access to a patient's health container.
CARE_ROLES: Tuple[Role, ...] = (Role.DOCTOR, Role.EMERGENCY, Role.PHARMACY, Role.NURSE)


class RoleTable:
    """Static identity-to-role table built from settings."""

    def __init__(self, settings: Settings):
        """Initialize the role table.

        Args:
            settings: Application settings holding the known identities
        """
        self.settings = settings
        self.patients: Dict[str, PatientEntry] = dict(settings.patients)
        self._care_ids: Dict[Role, str] = {
            Role.DOCTOR: settings.doctor_web_id,
            Role.EMERGENCY: settings.emergency_web_id,
            Role.PHARMACY: settings.pharmacy_web_id,
            Role.NURSE: settings.nurse_web_id,
        }

    def detect_role(self, web_id: Optional[str]) -> Role:
        """Resolve the role held by an identity."""
        if not web_id:
            return Role.UNKNOWN
        if web_id == self.settings.governance_web_id:
            return Role.GOVERNANCE
        if self.patient_key_for(web_id) is not None:
            return Role.PATIENT
        for role, care_id in self._care_ids.items():
            if web_id == care_id:
                return role
        return Role.UNKNOWN

    def web_id_for(self, role: Role) -> str:
        """Identity configured for a care role."""
        try:
            return self._care_ids[role]
        except KeyError:
            raise ConfigurationError(f"No single identity for role {role.value}") from None

    def patient_key_for(self, web_id: str) -> Optional[str]:
        """Key of the patient owning ``web_id``, if any."""
        for key, patient in self.patients.items():
            if patient.web_id == web_id:
                return key
        return None

    def patient(self, key: str) -> PatientEntry:
        """Look up a configured patient by key."""
        try:
            return self.patients[key]
        except KeyError:
            raise ConfigurationError(f"Unknown patient '{key}'") from None

    @property
    def patient_web_ids(self) -> List[str]:
        """Identities of every configured patient."""
        return [p.web_id for p in self.patients.values()]

    @property
    def actors(self) -> List[str]:
        """Identities that take part in the consent protocol."""
        return [self.settings.doctor_web_id, *self.patient_web_ids]

    def effective_patient_key(
        self, role: Role, web_id: Optional[str], selected: Optional[str]
    ) -> Optional[str]:
        """Patient whose data a session works on.

        Patients are pinned to their own pod and governance never resolves
        a patient. Every other role works on the selected patient.
        """
        if role == Role.PATIENT:
            return self.patient_key_for(web_id) if web_id else None
        if role == Role.GOVERNANCE:
            return None
        return selected

    def health_container_url(self, patient: PatientEntry) -> str:
        """Scope URL of a patient's health container."""
        return f"{patient.pod_base_url}{self.settings.health_container_path}"
