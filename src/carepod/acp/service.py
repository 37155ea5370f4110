"""Applying and reading access-control documents on a pod."""

from dataclasses import dataclass
from typing import Mapping, Optional

from carepod.acp.builder import block_id_for, build_access_control_document
from carepod.config import Settings
from carepod.core.exceptions import CarePodException
from carepod.pod.client import ResourceClient
from carepod.roles import Role
from carepod.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccessGrantStatus:
    """Which care roles a container's ACD currently grants."""

    doctor_granted: bool = False
    emergency_granted: bool = False
    pharmacy_granted: bool = False
    nurse_granted: bool = False

    def granted(self, role: Role) -> bool:
        """Whether ``role`` is granted."""
        return bool(getattr(self, f"{role.value}_granted", False))


NOTHING_GRANTED = AccessGrantStatus()


class AccessControlService:
    """Writes and reads ACDs through one session."""

    def __init__(self, client: ResourceClient, settings: Settings):
        """Initialize the service.

        Args:
            client: Resource client bound to the acting identity
            settings: Application settings
        """
        self.client = client
        self.settings = settings

    def acr_url(self, resource_url: str) -> str:
        """Location of the ACD attached to ``resource_url``."""
        return f"{resource_url}{self.settings.acr_suffix}"

    async def put_acr(self, resource_url: str, turtle: str) -> None:
        """Replace the ACD of ``resource_url``."""
        await self.client.put_turtle(self.acr_url(resource_url), turtle)

    async def apply_access(
        self,
        resource_url: str,
        owner_web_id: str,
        role_grants: Mapping[Role, str],
        restrict: Optional[bool] = None,
    ) -> str:
        """Write the ACD for a patient's health container.

        The same controls are declared for the files listing and the full
        record next to the container.

        Returns:
            The document that was written
        """
        if restrict is None:
            restrict = self.settings.restrict_to_client_and_issuer
        turtle = build_access_control_document(
            resource_url,
            owner_web_id,
            role_grants,
            restrict=restrict,
            client_id=self.settings.client_id,
            issuer=self.settings.normalized_issuer,
            sibling_names=(self.settings.files_name, self.settings.full_record_name),
        )
        await self.put_acr(resource_url, turtle)
        logger.info(
            "access_control_applied",
            resource_url=resource_url,
            roles=sorted(role.value for role in role_grants),
            restricted=restrict,
        )
        return turtle

    async def read_access_grants(self, resource_url: str) -> AccessGrantStatus:
        """Report which care roles the ACD of ``resource_url`` grants.

        Role presence is decided by searching the document text for each
        role's block identifier. A missing, forbidden or unreadable
        document reports nothing granted.
        """
        try:
            text = await self.client.get_text(self.acr_url(resource_url))
        except (CarePodException, UnicodeDecodeError) as e:
            logger.warning("access_control_unreadable", resource_url=resource_url, error=str(e))
            return NOTHING_GRANTED
        if text is None:
            return NOTHING_GRANTED

        def has(role: Role) -> bool:
            return f"#{block_id_for(role)}" in text

        return AccessGrantStatus(
            doctor_granted=has(Role.DOCTOR),
            emergency_granted=has(Role.EMERGENCY),
            pharmacy_granted=has(Role.PHARMACY),
            nurse_granted=has(Role.NURSE),
        )
