"""Governance store bootstrap.

Run once by the governance identity. Every step is idempotent, so the
bootstrap can be re-run safely after a partial failure.
"""

from typing import List

from carepod.acp.builder import build_container_acr, build_resource_acr
from carepod.acp.service import AccessControlService
from carepod.core.exceptions import AuthorizationError
from carepod.governance.audit import AuditLog
from carepod.governance.models import AuditEvent, AuditEventFields, AuditEventType
from carepod.governance.paths import GovernancePaths, Terms
from carepod.pod.client import ResourceClient
from carepod.roles import RoleTable
from carepod.utils.logging import get_logger

logger = get_logger(__name__)


class GovernanceStore:
    """Creates the governance containers and their access controls."""

    def __init__(
        self,
        client: ResourceClient,
        acp: AccessControlService,
        paths: GovernancePaths,
        terms: Terms,
        audit: AuditLog,
        roles: RoleTable,
    ):
        """Initialize the store.

        Args:
            client: Resource client bound to the governance session
            acp: Access-control service on the same session
            paths: Governance pod locations
            terms: Terms document to publish
            audit: Audit log for the bootstrap event
            roles: Role table naming patients and the doctor
        """
        self.client = client
        self.acp = acp
        self.paths = paths
        self.terms = terms
        self.audit = audit
        self.roles = roles

    @property
    def containers(self) -> List[str]:
        """Containers in creation order, parents first."""
        p = self.paths
        return [
            p.notices_container,
            p.grants_container,
            p.grants_state_container,
            p.grants_acks_container,
            p.audit_container,
            p.audit_events_container,
        ]

    async def bootstrap(self, acting_web_id: str) -> AuditEvent:
        """Create containers, publish terms and lock everything down.

        Access layout:

        * notices and terms: readable by patients and the doctor
        * grant state: patients write, patients and the doctor read
        * acknowledgements: the doctor writes, patients and the doctor read
        * audit events: patients and the doctor write, nobody but the
          governance owner reads

        Raises:
            AuthorizationError: If ``acting_web_id`` is not the governance identity
        """
        governance = self.roles.settings.governance_web_id
        if acting_web_id != governance:
            raise AuthorizationError(
                f"Governance bootstrap must run as {governance}", "NOT_GOVERNANCE"
            )

        for container in self.containers:
            await self.client.ensure_container(container)

        await self.client.put_text(self.terms.url, self.terms.text)

        patients = self.roles.patient_web_ids
        actors = self.roles.actors
        doctor = self.roles.settings.doctor_web_id
        p = self.paths

        await self.acp.put_acr(
            p.notices_container,
            build_container_acr(p.notices_container, governance, readers=actors),
        )
        await self.acp.put_acr(
            self.terms.url,
            build_resource_acr(self.terms.url, governance, readers=actors),
        )
        await self.acp.put_acr(
            p.grants_state_container,
            build_container_acr(
                p.grants_state_container, governance, readers=actors, writers=patients
            ),
        )
        await self.acp.put_acr(
            p.grants_acks_container,
            build_container_acr(
                p.grants_acks_container, governance, readers=actors, writers=[doctor]
            ),
        )
        await self.acp.put_acr(
            p.audit_events_container,
            build_container_acr(p.audit_events_container, governance, writers=actors),
        )

        event = await self.audit.append(
            AuditEventFields(
                event_type=AuditEventType.GRANT,
                actor_web_id=governance,
                patient_web_id=governance,
                doctor_web_id=doctor,
                scope_url=p.audit_events_container,
                terms_version=self.terms.version,
                terms_hash=self.terms.content_hash,
            )
        )
        logger.info("governance_bootstrapped", base=p.base, terms_version=self.terms.version)
        return event
