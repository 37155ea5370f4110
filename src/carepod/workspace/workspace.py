"""Per-session patient workspace.

Holds what one signed-in identity currently sees for one patient and runs
every load, edit and access change through the consent gate and the
session's own credentials. Nothing is cached between loads.
"""

from typing import Optional

from pydantic import ValidationError

from carepod.acp.service import AccessGrantStatus
from carepod.config import Settings
from carepod.core.exceptions import (
    AuthorizationError,
    CarePodException,
    LegalNoticeRequiredError,
    NoActiveGrantError,
)
from carepod.governance.polling import RevocationPoller
from carepod.health.models import FullRecord, PatientFile, PatientFileInput
from carepod.pod.session import PodSession
from carepod.roles import Role
from carepod.services import SessionServices
from carepod.utils.logging import get_logger
from carepod.workspace.context import (
    FILES_NOT_LOADED_MESSAGE,
    LEGAL_NOTICE_MESSAGE,
    NO_ACTIVE_GRANT_MESSAGE,
    RECORD_FORBIDDEN_MESSAGE,
    RECORD_MISSING_MESSAGE,
    RECORD_NOT_LOADED_MESSAGE,
    CancelToken,
    PatientContext,
    PatientView,
    resolve_context,
)

logger = get_logger(__name__)

LOAD_ERRORS = (CarePodException, ValueError, ValidationError)


class PatientWorkspace:
    """State and actions of one session, scoped to the selected patient.

    Patients always work on their own pod. Care roles work on the selected
    patient. The governance identity never loads patient data.
    """

    def __init__(
        self,
        session: PodSession,
        settings: Optional[Settings] = None,
        selected_patient: Optional[str] = None,
        services: Optional[SessionServices] = None,
    ):
        """Initialize the workspace.

        Args:
            session: Authenticated session of the acting identity
            settings: Application settings
            selected_patient: Initial patient key for care roles, defaults
                to the first configured patient
            services: Pre-wired services, built from ``session`` if omitted
        """
        self.services = services or SessionServices.build(session, settings)
        self.session = session
        self.settings = self.services.settings
        self.roles = self.services.roles
        self.selected_patient = selected_patient or next(iter(self.roles.patients), None)
        self.view = PatientView()
        self._token = CancelToken()
        self._poller: Optional[RevocationPoller] = None

    @property
    def context(self) -> PatientContext:
        return resolve_context(self.roles, self.session.web_id, self.selected_patient)

    @property
    def role(self) -> Role:
        return self.context.role

    @property
    def polling(self) -> bool:
        """Whether a revocation poller is running for this workspace."""
        return self._poller is not None and self._poller.running

    def _begin(self) -> CancelToken:
        self._token.cancel()
        self._token = CancelToken()
        return self._token

    async def _stop_poller(self) -> None:
        poller, self._poller = self._poller, None
        if poller is not None:
            await poller.stop()

    async def _reset(self) -> None:
        self._token.cancel()
        await self._stop_poller()
        self.view = PatientView()

    def _on_revoked(self) -> None:
        logger.info("workspace_access_revoked", patient=self.selected_patient)
        self._token.cancel()
        self._poller = None
        self.view = PatientView.blocked(NO_ACTIVE_GRANT_MESSAGE)

    def _start_poller(self, ctx: PatientContext) -> None:
        if self.polling:
            return
        self._poller = RevocationPoller(
            self.services.grants,
            ctx.patient.web_id,
            self.settings.doctor_web_id,
            ctx.scope_url,
            self._on_revoked,
            interval=self.settings.revocation_poll_interval,
        )
        self._poller.start()

    def _require_patient(self) -> PatientContext:
        ctx = self.context
        if ctx.role == Role.GOVERNANCE or not ctx.has_patient:
            raise AuthorizationError(
                "This session has no patient to work on", "NO_PATIENT_CONTEXT"
            )
        return ctx

    async def load(self) -> PatientView:
        """Load the selected patient's record, files and access toggles.

        Doctors pass the consent gate first. Any failure leaves a safe
        baseline view with a message fit for the role; nothing is raised.

        Returns:
            The resulting view
        """
        token = self._begin()
        ctx = self.context
        if ctx.role == Role.GOVERNANCE or not ctx.has_patient:
            self.view = PatientView()
            return self.view

        view = PatientView()

        if ctx.role == Role.DOCTOR:
            try:
                await self.services.gate.gate_or_throw(ctx.patient.web_id, ctx.scope_url)
            except LegalNoticeRequiredError as e:
                if token.cancelled:
                    return self.view
                view = PatientView.blocked(LEGAL_NOTICE_MESSAGE)
                view.pending_grant = e.grant
                view.legal_notice_text = e.notice_text
                self.view = view
                return view
            except NoActiveGrantError:
                if token.cancelled:
                    return self.view
                self.view = PatientView.blocked(NO_ACTIVE_GRANT_MESSAGE)
                return self.view
            except LOAD_ERRORS as e:
                if token.cancelled:
                    return self.view
                logger.warning("consent_gate_failed", patient=ctx.patient_key, error=str(e))
                self.view = PatientView.blocked(RECORD_NOT_LOADED_MESSAGE, status=500)
                return self.view
            if token.cancelled:
                return self.view

        try:
            result = await self.services.health.load_full_record(
                ctx.patient.pod_base_url, auto_create_on_404=ctx.role == Role.PATIENT
            )
            view.full_record = result.data
            view.record_status = result.status
            if result.status == 403:
                view.record_error = RECORD_FORBIDDEN_MESSAGE
            elif result.status == 404:
                view.record_error = RECORD_MISSING_MESSAGE
        except LOAD_ERRORS as e:
            logger.warning("full_record_load_failed", patient=ctx.patient_key, error=str(e))
            view.record_status = getattr(e, "status_code", 500)
            view.record_error = RECORD_NOT_LOADED_MESSAGE
        if token.cancelled:
            return self.view

        try:
            view.files = await self.services.health.load_patient_files(ctx.patient.pod_base_url)
        except LOAD_ERRORS as e:
            logger.warning("patient_files_load_failed", patient=ctx.patient_key, error=str(e))
            view.files_error = FILES_NOT_LOADED_MESSAGE
        if token.cancelled:
            return self.view

        if ctx.role == Role.PATIENT:
            view.access = await self.services.acp.read_access_grants(ctx.scope_url)
            if token.cancelled:
                return self.view

        self.view = view
        if ctx.role == Role.DOCTOR and view.record_status == 200:
            self._start_poller(ctx)
        return view

    async def select_patient(self, patient_key: str) -> PatientView:
        """Switch to another patient and load it.

        Any in-flight load is cancelled and the poller stopped before the
        view is reset.

        Raises:
            ConfigurationError: If ``patient_key`` is not configured
        """
        self.roles.patient(patient_key)
        await self._reset()
        self.selected_patient = patient_key
        return await self.load()

    async def accept_notice(self) -> PatientView:
        """Acknowledge the pending grant's terms and reload."""
        pending = self.view.pending_grant
        if pending is None:
            return self.view
        await self.services.gate.acknowledge_grant(pending)
        self.view.pending_grant = None
        self.view.legal_notice_text = None
        return await self.load()

    def cancel_notice(self) -> PatientView:
        """Dismiss the pending notice without acknowledging it."""
        self.view.pending_grant = None
        self.view.legal_notice_text = None
        return self.view

    async def apply_access(
        self,
        doctor_can_read_write: bool,
        emergency_can_read: bool,
        pharmacy_can_read: bool = False,
        nurse_can_read_write: bool = False,
    ) -> AccessGrantStatus:
        """Rewrite the patient's access controls and sync the doctor grant.

        Enabling doctor access always issues a fresh grant, even when one
        is already active, so the doctor must accept the terms again.

        Returns:
            The access read back from the pod after the write

        Raises:
            AuthorizationError: If the acting identity is not a patient
        """
        ctx = self._require_patient()
        if ctx.role != Role.PATIENT:
            raise AuthorizationError("Only the patient can change access", "NOT_PATIENT")

        enabled = {
            Role.DOCTOR: doctor_can_read_write,
            Role.EMERGENCY: emergency_can_read,
            Role.PHARMACY: pharmacy_can_read,
            Role.NURSE: nurse_can_read_write,
        }
        role_grants = {
            role: self.roles.web_id_for(role) for role, on in enabled.items() if on
        }
        await self.services.acp.apply_access(ctx.scope_url, ctx.patient.web_id, role_grants)

        grants = self.services.grants
        doctor = self.settings.doctor_web_id
        if doctor_can_read_write:
            await grants.create_grant_and_activate(ctx.patient.web_id, doctor, ctx.scope_url)
        else:
            await grants.revoke_active_grant(ctx.patient.web_id, doctor, ctx.scope_url)

        self.view.access = await self.services.acp.read_access_grants(ctx.scope_url)
        return self.view.access

    async def _gate_write(self, ctx: PatientContext) -> None:
        if ctx.role == Role.DOCTOR:
            await self.services.gate.gate_or_throw(ctx.patient.web_id, ctx.scope_url)

    async def save_record(self, record: FullRecord) -> FullRecord:
        """Replace the full record.

        Raises:
            NoActiveGrantError: Doctor without an active grant
            LegalNoticeRequiredError: Doctor who has not accepted the terms
            ForbiddenError: If the pod refuses the write
        """
        ctx = self._require_patient()
        await self._gate_write(ctx)
        await self.services.health.save_full_record(ctx.patient.pod_base_url, record)
        self.view.full_record = record
        self.view.record_status = 200
        self.view.record_error = None
        return record

    async def add_file(self, file: PatientFileInput) -> PatientFile:
        ctx = self._require_patient()
        await self._gate_write(ctx)
        created = await self.services.health.add_patient_file(ctx.patient.pod_base_url, file)
        self.view.files = [*self.view.files, created]
        return created

    async def update_file(self, file_id: str, changes: PatientFileInput) -> Optional[PatientFile]:
        ctx = self._require_patient()
        await self._gate_write(ctx)
        updated = await self.services.health.update_patient_file(
            ctx.patient.pod_base_url, file_id, changes
        )
        if updated is not None:
            self.view.files = [updated if f.id == file_id else f for f in self.view.files]
        return updated

    async def delete_file(self, file_id: str) -> None:
        ctx = self._require_patient()
        await self._gate_write(ctx)
        self.view.files = await self.services.health.delete_patient_file(
            ctx.patient.pod_base_url, file_id
        )

    async def close(self) -> None:
        """Cancel any load, stop polling and clear the view."""
        await self._reset()
        logger.info("workspace_closed", web_id=self.session.web_id)
