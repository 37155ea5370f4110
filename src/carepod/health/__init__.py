"""Patient health record resources."""

from carepod.health.models import FileType, FullRecord, PatientFile, PatientFileInput
from carepod.health.records import HealthDataService, RecordLoadResult

__all__ = [
    "FileType",
    "FullRecord",
    "HealthDataService",
    "PatientFile",
    "PatientFileInput",
    "RecordLoadResult",
]
