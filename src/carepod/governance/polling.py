"""Revocation polling.

The pod cannot push changes, so a doctor session re-reads the grant state
on a fixed interval. Staleness after a revoke is bounded by one interval.
"""

import asyncio
from typing import Callable, Optional

from carepod.core.exceptions import CarePodException
from carepod.governance.grants import GrantStateMachine
from carepod.utils.logging import get_logger

logger = get_logger(__name__)


class RevocationPoller:
    """Periodic grant check bound to one (patient, doctor, scope).

    The first check runs immediately. Transient read failures are logged
    and the next tick retries. When a non-active state is observed,
    ``on_revoked`` is called once and polling ends.
    """

    def __init__(
        self,
        grants: GrantStateMachine,
        patient_web_id: str,
        doctor_web_id: str,
        scope_url: str,
        on_revoked: Callable[[], None],
        interval: float = 2.5,
    ):
        """Initialize the poller.

        Args:
            grants: Grant state machine to read state through
            patient_web_id: Patient owning the scope
            doctor_web_id: Doctor whose access is watched
            scope_url: Scope of the grant
            on_revoked: Called when the grant is no longer active
            interval: Seconds between checks
        """
        self.grants = grants
        self.patient_web_id = patient_web_id
        self.doctor_web_id = doctor_web_id
        self.scope_url = scope_url
        self.on_revoked = on_revoked
        self.interval = interval
        self._task: Optional["asyncio.Task[None]"] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        """Whether the polling task is alive."""
        return self._task is not None and not self._task.done()

    async def check_once(self) -> bool:
        """Read the grant state once.

        Returns:
            True if the grant is no longer active
        """
        state = await self.grants.get_active_grant_state(
            self.patient_web_id, self.doctor_web_id, self.scope_url
        )
        return state is None or not state.is_active

    async def _run(self) -> None:
        while not self._stopped:
            try:
                revoked = await self.check_once()
            except (CarePodException, ValueError) as e:
                logger.warning("revocation_poll_failed", scope=self.scope_url, error=str(e))
                revoked = False

            if revoked and not self._stopped:
                logger.info(
                    "grant_revocation_observed",
                    patient=self.patient_web_id,
                    scope=self.scope_url,
                )
                self._stopped = True
                self.on_revoked()
                return

            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start polling in the background. Idempotent."""
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Stop polling and wait for the task to finish."""
        self._stopped = True
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
