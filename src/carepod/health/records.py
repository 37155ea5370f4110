"""Full record and files resources in a patient's health container.

Both documents are replaced whole on every write. Editing one file entry
re-reads the listing, changes it in memory and PUTs the entire array; a
concurrent editor's change made in between is lost.
"""

from dataclasses import dataclass
from typing import List, Optional

from carepod.config import Settings
from carepod.core.exceptions import ForbiddenError
from carepod.health.models import FullRecord, PatientFile, PatientFileInput
from carepod.pod.client import ResourceClient
from carepod.utils.id_generator import generate_id, utc_now_iso
from carepod.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RecordLoadResult:
    """Outcome of reading the full record.

    ``status`` is 200 with data, or 403/404 without.
    """

    data: Optional[FullRecord]
    status: int


class HealthDataService:
    """Reads and writes a patient's health documents."""

    def __init__(self, client: ResourceClient, settings: Settings):
        """Initialize the service.

        Args:
            client: Resource client bound to the acting identity
            settings: Application settings naming the resource layout
        """
        self.client = client
        self.settings = settings

    def container_url(self, pod_base_url: str) -> str:
        return f"{pod_base_url}{self.settings.health_container_path}"

    def record_url(self, pod_base_url: str) -> str:
        return f"{self.container_url(pod_base_url)}{self.settings.full_record_name}"

    def files_url(self, pod_base_url: str) -> str:
        return f"{self.container_url(pod_base_url)}{self.settings.files_name}"

    async def load_full_record(
        self, pod_base_url: str, auto_create_on_404: bool = False
    ) -> RecordLoadResult:
        """Read the full record.

        Args:
            pod_base_url: Patient's pod root
            auto_create_on_404: Write an empty record when none exists.
                Only the owning patient should pass True.
        """
        url = self.record_url(pod_base_url)
        try:
            data = await self.client.get_json(url)
        except ForbiddenError:
            return RecordLoadResult(data=None, status=403)

        if data is None:
            if not auto_create_on_404:
                return RecordLoadResult(data=None, status=404)
            empty = FullRecord()
            await self.save_full_record(pod_base_url, empty)
            logger.info("full_record_created", url=url)
            return RecordLoadResult(data=empty, status=200)

        return RecordLoadResult(data=FullRecord.model_validate(data), status=200)

    async def save_full_record(self, pod_base_url: str, record: FullRecord) -> None:
        await self.client.put_json(
            self.record_url(pod_base_url), record.model_dump(by_alias=True)
        )

    async def load_patient_files(self, pod_base_url: str) -> List[PatientFile]:
        """The files listing, empty if it does not exist yet."""
        data = await self.client.get_json(self.files_url(pod_base_url))
        if data is None:
            return []
        return [PatientFile.model_validate(entry) for entry in data]

    async def _write_files(self, pod_base_url: str, files: List[PatientFile]) -> None:
        await self.client.put_json(
            self.files_url(pod_base_url),
            [f.model_dump(mode="json", by_alias=True) for f in files],
        )

    async def add_patient_file(
        self, pod_base_url: str, file: PatientFileInput
    ) -> PatientFile:
        """Append a new file with a fresh id and timestamps."""
        files = await self.load_patient_files(pod_base_url)
        now = utc_now_iso()
        created = PatientFile(
            **file.model_dump(),
            id=generate_id(),
            created_at=now,
            updated_at=now,
        )
        files.append(created)
        await self._write_files(pod_base_url, files)
        logger.info("patient_file_added", file_id=created.id, file_type=created.file_type.value)
        return created

    async def update_patient_file(
        self, pod_base_url: str, file_id: str, changes: PatientFileInput
    ) -> Optional[PatientFile]:
        """Replace the fields of one file, keeping its id and creation time.

        Returns:
            The updated entry, or None if no file has ``file_id``
        """
        files = await self.load_patient_files(pod_base_url)
        updated: Optional[PatientFile] = None
        for index, existing in enumerate(files):
            if existing.id == file_id:
                updated = PatientFile(
                    **changes.model_dump(),
                    id=existing.id,
                    created_at=existing.created_at,
                    updated_at=utc_now_iso(),
                )
                files[index] = updated
                break

        if updated is None:
            logger.warning("patient_file_missing", file_id=file_id)
            return None

        await self._write_files(pod_base_url, files)
        return updated

    async def delete_patient_file(self, pod_base_url: str, file_id: str) -> List[PatientFile]:
        """Remove one file; the rest keep their order.

        Returns:
            The listing as written
        """
        files = await self.load_patient_files(pod_base_url)
        remaining = [f for f in files if f.id != file_id]
        await self._write_files(pod_base_url, remaining)
        return remaining
