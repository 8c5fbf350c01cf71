from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class InvitationStatus(str, Enum):
    PENDING = 'pending'
    USED = 'used'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'


class InvitationFilter(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    employee_id: Optional[int] = None
    status: Optional[InvitationStatus] = None
    visit_date: Optional[date] = None


class InvitationCreate(BaseModel):
    visitor_name: str
    visitor_phone: str
    visit_date: Optional[date] = None
    visit_time: Optional[time] = None

    @field_validator('visitor_name', 'visitor_phone')
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip() if value else value


class Invitation(BaseModel):
    id: str
    employee_id: int
    visitor_name: str
    visitor_phone: str
    visit_date: date
    visit_time: time
    alpha_code: str
    qr_code: str
    status: InvitationStatus
    used_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
    )


class InvitationQRCode(BaseModel):
    id: str
    alpha_code: str
    payload: str
    image_base64: str


class PublicInvitation(BaseModel):
    """What the visitor sees when opening their invitation link."""

    visitor_name: str
    visit_date: date
    visit_time: time
    alpha_code: str
    qr_code: str
    status: InvitationStatus
