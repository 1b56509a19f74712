import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, field_validator


class ProjectBase(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[Decimal] = None
    status: Optional[str] = None  # active|completed|on_hold
    payment_period: Optional[str] = None  # fortnightly|monthly
    default_open_rate: Optional[Decimal] = None
    default_close_rate: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator('name', 'location', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ProjectCreate(ProjectBase):
    name: str


class ProjectUpdate(ProjectBase):
    pass


class AssignUserRequest(BaseModel):
    user_id: uuid.UUID


class AssignLabourersRequest(BaseModel):
    labourer_ids: List[uuid.UUID]


class EmployeeTypeCreate(BaseModel):
    name: str
    description: Optional[str] = None
    is_active: Optional[bool] = True


class EmployeeTypeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
