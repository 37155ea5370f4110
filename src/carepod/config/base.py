"""Base configuration settings."""

from typing import Dict

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TERMS_TEXT = (
    "Data Use Notice: You may access this patient record only for the authorised care purpose.\n"
    "You must not retain, export, or disclose this data outside authorised systems.\n"
    "Access is logged. If access is revoked, you must stop using any retained copies immediately.\n"
    "By continuing, you confirm you understand and agree to these terms."
)


class PatientEntry(BaseModel):
    """A patient known to the deployment."""

    label: str
    web_id: str
    pod_base_url: str

    @field_validator("pod_base_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        """Pod base URLs are containers and always end with a slash."""
        return v if v.endswith("/") else v + "/"


def _default_patients() -> Dict[str, PatientEntry]:
    return {
        f"patient{n}": PatientEntry(
            label=f"Patient {n}",
            web_id=f"http://localhost:3000/{slug}/profile/card#me",
            pod_base_url=f"http://localhost:3000/{slug}/",
        )
        for n, slug in (
            (1, "patient"),
            (2, "patient2"),
            (3, "patient3"),
            (4, "patient4"),
        )
    }


class Settings(BaseSettings):
    """Application settings.

    Identities and pod locations default to a local Community Solid Server
    deployment on port 3000 with the client application served on 5173.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAREPOD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Identity provider / client application
    solid_issuer: str = "http://localhost:3000/"
    client_id: str = "http://localhost:5173/clientid.json"

    # Governance pod
    governance_pod_base: str = "http://localhost:3000/governance/"
    governance_web_id: str = "http://localhost:3000/governance/profile/card#me"

    # Care roles
    doctor_web_id: str = "http://localhost:3000/doctor/profile/card#me"
    emergency_web_id: str = "http://localhost:3000/emergency/profile/card#me"
    pharmacy_web_id: str = "http://localhost:3000/pharmacy/profile/card#me"
    nurse_web_id: str = "http://localhost:3000/nurse/profile/card#me"

    patients: Dict[str, PatientEntry] = Field(default_factory=_default_patients)

    # Terms of use
    terms_version: str = "v1.0"
    terms_text: str = DEFAULT_TERMS_TEXT

    # Resource layout
    acr_suffix: str = ".acr"
    health_container_path: str = "health/"
    full_record_name: str = "full-record.json"
    files_name: str = "files.json"

    # Governance tunables
    grant_key_length: int = Field(default=20, ge=8, le=64)
    audit_fetch_chunk_size: int = Field(default=15, ge=1)
    audit_list_limit: int = Field(default=300, ge=1)
    revocation_poll_interval: float = Field(default=2.5, gt=0)
    restrict_to_client_and_issuer: bool = True
    audit_blocked_reads: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("governance_pod_base", "health_container_path")
    @classmethod
    def ensure_container_slash(cls, v: str) -> str:
        """Container locations always end with a slash."""
        return v if v.endswith("/") else v + "/"

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only console and json renderers are available."""
        v = v.lower()
        if v not in {"console", "json"}:
            raise ValueError("log_format must be 'console' or 'json'")
        return v

    @property
    def normalized_issuer(self) -> str:
        """Issuer origin with the trailing slash the matchers expect."""
        return self.solid_issuer if self.solid_issuer.endswith("/") else self.solid_issuer + "/"
