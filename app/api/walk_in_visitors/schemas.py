from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class WalkInVisitorFilter(BaseModel):
    site_id: Optional[int] = None
    exit_validated: Optional[bool] = None


class WalkInVisitorCreate(BaseModel):
    first_name: str
    last_name: str
    id_card_number: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    address: Optional[str] = None
    id_card_expiry: Optional[date] = None

    @field_validator('first_name', 'last_name')
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip() if value else value


class WalkInVisitor(BaseModel):
    id: str
    site_id: int
    first_name: str
    last_name: str
    id_card_number: Optional[str] = None
    nationality: Optional[str] = None
    receipt_code: str
    receipt_qr_code: str
    scanned_by: Optional[str] = None
    exit_validated: bool
    exit_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
    )


class WalkInStats(BaseModel):
    today_entries: int
    today_exits: int
    pending_exits: int
    average_stay_minutes: Optional[int] = None
