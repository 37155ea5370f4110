"""Doctor read gate.

A doctor may read a patient's data only while a grant is active and only
after acknowledging the terms for that specific grant.
"""

import json
from typing import Optional

from carepod.core.exceptions import (
    CarePodException,
    LegalNoticeRequiredError,
    NoActiveGrantError,
)
from carepod.governance.audit import AuditLog
from carepod.governance.grants import GrantStateMachine
from carepod.governance.models import (
    Acknowledgement,
    AuditEventFields,
    AuditEventType,
    GrantState,
)
from carepod.pod.client import ResourceClient
from carepod.utils.id_generator import utc_now_iso
from carepod.utils.logging import get_logger

logger = get_logger(__name__)

TERMS_UNAVAILABLE = "Terms could not be loaded."


class DoctorGate:
    """Consent gate evaluated before every doctor-role read."""

    def __init__(
        self,
        client: ResourceClient,
        grants: GrantStateMachine,
        audit: AuditLog,
        doctor_web_id: str,
        audit_blocked_reads: bool = True,
    ):
        """Initialize the gate.

        Args:
            client: Resource client bound to the doctor's session
            grants: Grant state machine
            audit: Audit log
            doctor_web_id: Identity of the doctor being gated
            audit_blocked_reads: Record a READ_BLOCKED event on refusal
        """
        self.client = client
        self.grants = grants
        self.audit = audit
        self.doctor_web_id = doctor_web_id
        self.audit_blocked_reads = audit_blocked_reads

    async def has_acknowledged(self, ack_url: str) -> bool:
        """Whether the doctor's acknowledgement exists at ``ack_url``.

        An acknowledgement that exists but cannot be parsed counts as given.
        This lenient reading is deliberate and logged every time it applies.
        """
        response = await self.client.fetch(ack_url)
        if not response.is_success:
            return False

        try:
            ack = json.loads(response.text)
        except ValueError:
            logger.warning("acknowledgement_unparsable_accepted", ack_url=ack_url)
            return True

        return isinstance(ack, dict) and ack.get("acknowledgedBy") == self.doctor_web_id

    async def _load_terms(self, terms_url: str) -> str:
        response = await self.client.fetch(terms_url)
        if not response.is_success:
            logger.warning("terms_unavailable", terms_url=terms_url, status=response.status_code)
            return TERMS_UNAVAILABLE
        return response.text

    async def _record_blocked(
        self, patient_web_id: str, scope_url: str, state: Optional[GrantState]
    ) -> None:
        try:
            await self.audit.append(
                AuditEventFields(
                    event_type=AuditEventType.READ_BLOCKED,
                    actor_web_id=self.doctor_web_id,
                    patient_web_id=patient_web_id,
                    doctor_web_id=self.doctor_web_id,
                    scope_url=scope_url,
                    grant_id=state.grant_id if state else None,
                )
            )
        except CarePodException as e:
            # The refusal stands whether or not it could be recorded.
            logger.warning("read_blocked_not_recorded", error=str(e))

    async def gate_or_throw(self, patient_web_id: str, scope_url: str) -> GrantState:
        """Allow or refuse a read of ``scope_url``.

        Returns:
            The active, acknowledged grant

        Raises:
            NoActiveGrantError: No grant, or the grant is not active
            LegalNoticeRequiredError: Terms not yet accepted for this grant
        """
        state = await self.grants.get_active_grant_state(
            patient_web_id, self.doctor_web_id, scope_url
        )
        if state is None or not state.is_active or not state.active_grant_url:
            logger.info("read_blocked_no_active_grant", patient=patient_web_id, scope=scope_url)
            if self.audit_blocked_reads:
                await self._record_blocked(patient_web_id, scope_url, state)
            raise NoActiveGrantError()

        if await self.has_acknowledged(state.active_grant_url):
            return state

        notice = await self._load_terms(state.terms_url)
        logger.info("legal_notice_required", grant_id=state.grant_id)
        raise LegalNoticeRequiredError(notice, state)

    async def acknowledge_grant(self, state: GrantState) -> Acknowledgement:
        """Record the doctor's acceptance of the terms for ``state``.

        The terms version and hash come from the grant, not from the live
        terms document, so later edits to the terms do not change what was
        agreed to.
        """
        ack = Acknowledgement(
            acknowledged_by=self.doctor_web_id,
            acknowledged_at=utc_now_iso(),
            terms_version=state.terms_version,
            terms_hash=state.terms_hash,
        )
        await self.client.put_json(state.active_grant_url, ack.to_wire())

        await self.audit.append(
            AuditEventFields(
                event_type=AuditEventType.NOTICE_ACK,
                actor_web_id=self.doctor_web_id,
                patient_web_id=state.patient_web_id,
                doctor_web_id=self.doctor_web_id,
                scope_url=state.scope_url,
                grant_id=state.grant_id,
                ack_url=state.active_grant_url,
                terms_version=state.terms_version,
                terms_hash=state.terms_hash,
            )
        )
        logger.info("grant_acknowledged", grant_id=state.grant_id)
        return ack
