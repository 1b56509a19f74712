import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, List, Any

from pydantic import BaseModel, Field


class PayRateCreate(BaseModel):
    project_id: uuid.UUID
    employee_type_id: uuid.UUID
    category: str  # open_trenching|close_trenching|custom
    category_name: Optional[str] = None
    amount: Decimal = Field(ge=0)
    unit: Optional[str] = "per_meter"
    effective_date: date


class WorkLogCreate(BaseModel):
    project_id: uuid.UUID
    labourer_id: uuid.UUID
    work_date: str  # YYYY-MM-DD or ISO datetime
    open_trenching_meters: Decimal = Field(default=Decimal("0"), ge=0)
    close_trenching_meters: Decimal = Field(default=Decimal("0"), ge=0)
    additional_items: Optional[List[Any]] = None


class WorkLogUpdate(BaseModel):
    work_date: Optional[str] = None
    open_trenching_meters: Optional[Decimal] = Field(default=None, ge=0)
    close_trenching_meters: Optional[Decimal] = Field(default=None, ge=0)
    additional_items: Optional[List[Any]] = None


class PaymentPeriodCreate(BaseModel):
    project_id: uuid.UUID
    start_date: date
    end_date: date


class PaymentPeriodUpdate(BaseModel):
    status: Optional[str] = None  # open|submitted|approved|rejected|paid
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class CorrectionRequestCreate(BaseModel):
    entity_type: str  # work_log|labourer|project|payment_period
    entity_id: str
    field_name: str
    old_value: Optional[str] = None
    new_value: str
    reason: str


class CorrectionReview(BaseModel):
    status: str  # approved|rejected
    review_notes: Optional[str] = None
