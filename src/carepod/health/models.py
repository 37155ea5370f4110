"""Health record resource models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FullRecord(_WireModel):
    """The patient's full record document. All fields are free text."""

    patient_name: str = ""
    date_of_birth: str = ""
    blood_type: str = ""
    address: str = ""
    allergies: str = ""
    diagnoses: str = ""
    medications: str = ""
    notes: str = ""


class FileType(str, Enum):
    """Kinds of patient file."""

    LAB = "lab"
    PRESCRIPTION = "prescription"
    IMAGING = "imaging"
    REPORT = "report"
    NOTE = "note"


class PatientFileInput(_WireModel):
    """Caller supplied fields of a patient file."""

    title: str
    description: str = ""
    content: str = ""
    file_type: FileType = Field(alias="type")
    created_by: str
    shared_with_doctor: bool = False
    shared_with_emergency: bool = False
    shared_with_nurse: bool = False
    shared_with_pharmacy: bool = False


class PatientFile(PatientFileInput):
    """One entry of the files listing."""

    id: str
    created_at: str
    updated_at: str
