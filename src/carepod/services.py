"""Service wiring for one authenticated session.

Every service shares the session's resource client, so every request made
on behalf of a user carries that user's identity.
"""

from dataclasses import dataclass
from typing import Optional

from carepod.acp.service import AccessControlService
from carepod.config import Settings, get_settings
from carepod.governance.audit import AuditLog
from carepod.governance.gate import DoctorGate
from carepod.governance.grants import GrantStateMachine
from carepod.governance.paths import GovernancePaths, Terms
from carepod.governance.store import GovernanceStore
from carepod.health.records import HealthDataService
from carepod.pod.client import ResourceClient
from carepod.pod.session import PodSession
from carepod.roles import RoleTable


@dataclass
class SessionServices:
    """All services bound to one session."""

    session: PodSession
    settings: Settings
    roles: RoleTable
    client: ResourceClient
    acp: AccessControlService
    health: HealthDataService
    paths: GovernancePaths
    terms: Terms
    audit: AuditLog
    grants: GrantStateMachine
    gate: DoctorGate
    store: GovernanceStore

    @classmethod
    def build(cls, session: PodSession, settings: Optional[Settings] = None) -> "SessionServices":
        """Wire the services for ``session``.

        Args:
            session: Authenticated session
            settings: Settings to use, defaults to the cached application settings

        Returns:
            The wired services
        """
        settings = settings or get_settings()
        roles = RoleTable(settings)
        client = ResourceClient(session)
        acp = AccessControlService(client, settings)
        paths = GovernancePaths(settings.governance_pod_base)
        terms = Terms.from_settings(settings, paths)
        audit = AuditLog(
            client,
            paths,
            chunk_size=settings.audit_fetch_chunk_size,
            list_limit=settings.audit_list_limit,
        )
        grants = GrantStateMachine(
            client, paths, terms, audit, key_length=settings.grant_key_length
        )
        gate = DoctorGate(
            client,
            grants,
            audit,
            settings.doctor_web_id,
            audit_blocked_reads=settings.audit_blocked_reads,
        )
        return cls(
            session=session,
            settings=settings,
            roles=roles,
            client=client,
            acp=acp,
            health=HealthDataService(client, settings),
            paths=paths,
            terms=terms,
            audit=audit,
            grants=grants,
            gate=gate,
            store=GovernanceStore(client, acp, paths, terms, audit, roles),
        )
