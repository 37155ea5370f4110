"""Grant state machine.

One state record per (patient, doctor, scope), stored under a key derived
from the triple::

    NO_GRANT --create--> ACTIVE --revoke--> REVOKED
                           ^                    |
                           +------create--------+

Every create overwrites the record with a fresh grant id and a fresh
acknowledgement location, so an acknowledgement given for an earlier grant
never satisfies a later one. Creating while a grant is already active
re-issues it the same way.
"""

from typing import Optional

from pydantic import ValidationError

from carepod.governance.audit import AuditLog
from carepod.governance.models import (
    AuditEventFields,
    AuditEventType,
    GrantState,
    GrantStatus,
)
from carepod.governance.paths import GovernancePaths, Terms, grant_key
from carepod.pod.client import ResourceClient
from carepod.utils.id_generator import generate_id, utc_now_iso
from carepod.utils.logging import get_logger

logger = get_logger(__name__)


class GrantStateMachine:
    """Creates, revokes and reads delegation state."""

    def __init__(
        self,
        client: ResourceClient,
        paths: GovernancePaths,
        terms: Terms,
        audit: AuditLog,
        key_length: int = 20,
    ):
        """Initialize the state machine.

        Args:
            client: Resource client bound to the acting identity
            paths: Governance pod locations
            terms: Terms in effect for new grants
            audit: Audit log transitions are recorded in
            key_length: Hex characters kept from the triple digest
        """
        self.client = client
        self.paths = paths
        self.terms = terms
        self.audit = audit
        self.key_length = key_length

    def key_for(self, patient_web_id: str, doctor_web_id: str, scope_url: str) -> str:
        """State key of a (patient, doctor, scope) triple."""
        return grant_key(patient_web_id, doctor_web_id, scope_url, self.key_length)

    async def create_grant_and_activate(
        self, patient_web_id: str, doctor_web_id: str, scope_url: str
    ) -> GrantState:
        """Issue a new active grant and record it.

        The current terms version and hash are snapshotted into the state,
        which fixes what the doctor will be asked to accept.
        """
        key = self.key_for(patient_web_id, doctor_web_id, scope_url)
        grant_id = generate_id()
        state = GrantState(
            key=key,
            patient_web_id=patient_web_id,
            doctor_web_id=doctor_web_id,
            scope_url=scope_url,
            status=GrantStatus.ACTIVE,
            updated_at=utc_now_iso(),
            terms_version=self.terms.version,
            terms_url=self.terms.url,
            terms_hash=self.terms.content_hash,
            grant_id=grant_id,
            active_grant_url=self.paths.ack_url(key, grant_id),
        )
        await self.client.put_json(self.paths.state_url(key), state.to_wire())

        await self.audit.append(
            AuditEventFields(
                event_type=AuditEventType.GRANT,
                actor_web_id=patient_web_id,
                patient_web_id=patient_web_id,
                doctor_web_id=doctor_web_id,
                scope_url=scope_url,
                grant_id=grant_id,
                ack_url=state.active_grant_url,
                terms_version=state.terms_version,
                terms_hash=state.terms_hash,
            )
        )
        logger.info("grant_activated", key=key, grant_id=grant_id, doctor=doctor_web_id)
        return state

    async def revoke_active_grant(
        self, patient_web_id: str, doctor_web_id: str, scope_url: str
    ) -> Optional[GrantState]:
        """Mark the grant revoked.

        Does nothing when no state exists. The acknowledgement record is left
        in place; it cannot satisfy any later grant anyway.

        Returns:
            The revoked state, or None if there was nothing to revoke
        """
        key = self.key_for(patient_web_id, doctor_web_id, scope_url)
        url = self.paths.state_url(key)
        data = await self.client.get_json(url)
        if data is None:
            logger.info("revoke_skipped_no_state", key=key)
            return None

        state = GrantState.model_validate(data)
        revoked = state.model_copy(
            update={"status": GrantStatus.REVOKED, "updated_at": utc_now_iso()}
        )
        await self.client.put_json(url, revoked.to_wire())

        await self.audit.append(
            AuditEventFields(
                event_type=AuditEventType.REVOKE,
                actor_web_id=patient_web_id,
                patient_web_id=patient_web_id,
                doctor_web_id=doctor_web_id,
                scope_url=scope_url,
                grant_id=state.grant_id,
                ack_url=state.active_grant_url,
                terms_version=state.terms_version,
                terms_hash=state.terms_hash,
            )
        )
        logger.info("grant_revoked", key=key, grant_id=state.grant_id)
        return revoked

    async def get_active_grant_state(
        self, patient_web_id: str, doctor_web_id: str, scope_url: str
    ) -> Optional[GrantState]:
        """Current state record, active or not, or None if none exists.

        A record that does not validate is treated as absent.
        """
        key = self.key_for(patient_web_id, doctor_web_id, scope_url)
        data = await self.client.get_json(self.paths.state_url(key))
        if data is None:
            return None
        try:
            return GrantState.model_validate(data)
        except ValidationError as e:
            logger.warning("grant_state_invalid", key=key, error=str(e))
            return None
