import uuid
from datetime import date
from typing import Optional, List

from pydantic import BaseModel, field_validator


class LabourerBase(BaseModel):
    # Required on create; checked by the service so bulk uploads can name the failing row
    first_name: Optional[str] = None
    surname: Optional[str] = None
    id_number: Optional[str] = None
    contact_number: Optional[str] = None
    employee_type_id: Optional[uuid.UUID] = None
    # Banking
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    account_type: Optional[str] = None  # cheque|savings
    branch_code: Optional[str] = None
    # Optional
    project_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    email: Optional[str] = None
    physical_address: Optional[str] = None
    profile_photo_path: Optional[str] = None
    id_document_path: Optional[str] = None
    banking_proof_path: Optional[str] = None

    @field_validator('email', 'physical_address', 'gender', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class LabourerCreate(LabourerBase):
    pass


class LabourerUpdate(LabourerBase):
    pass


class LabourerBulkCreate(BaseModel):
    labourers: List[LabourerCreate]
