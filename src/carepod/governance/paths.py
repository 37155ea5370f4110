"""Locations inside the governance pod."""

from dataclasses import dataclass

from carepod.config import Settings
from carepod.utils.hashing import sha256_hex, terms_hash


@dataclass(frozen=True)
class GovernancePaths:
    """Container and resource URLs under the governance root."""

    base: str

    @property
    def notices_container(self) -> str:
        return f"{self.base}notices/"

    @property
    def grants_container(self) -> str:
        return f"{self.base}grants/"

    @property
    def grants_state_container(self) -> str:
        return f"{self.base}grants/state/"

    @property
    def grants_acks_container(self) -> str:
        return f"{self.base}grants/acks/"

    @property
    def audit_container(self) -> str:
        return f"{self.base}audit/"

    @property
    def audit_events_container(self) -> str:
        return f"{self.base}audit/events/"

    def terms_url(self, version: str) -> str:
        return f"{self.base}notices/terms/{version}.txt"

    def state_url(self, key: str) -> str:
        return f"{self.grants_state_container}{key}.json"

    def ack_url(self, key: str, grant_id: str) -> str:
        return f"{self.grants_acks_container}{key}-{grant_id}.json"

    def event_url(self, event_id: str) -> str:
        return f"{self.audit_events_container}{event_id}.json"


@dataclass(frozen=True)
class Terms:
    """The terms-of-use document doctors must accept."""

    version: str
    text: str
    url: str

    @property
    def content_hash(self) -> str:
        return terms_hash(self.version, self.text)

    @classmethod
    def from_settings(cls, settings: Settings, paths: GovernancePaths) -> "Terms":
        return cls(
            version=settings.terms_version,
            text=settings.terms_text,
            url=paths.terms_url(settings.terms_version),
        )


def grant_key(patient_web_id: str, doctor_web_id: str, scope_url: str, length: int = 20) -> str:
    """Deterministic key of a (patient, doctor, scope) triple.

    State lookups need no index, at the cost of allowing only one grant per
    triple at a time.
    """
    return sha256_hex(f"{patient_web_id}::{doctor_web_id}::{scope_url}")[:length]
