from datetime import date, time
from typing import Optional

from pydantic import BaseModel, field_validator

from app.api.access_logs.schemas import AccessLog, ActionType
from app.api.invitations.schemas import Invitation, InvitationStatus
from app.api.walk_in_visitors.schemas import WalkInVisitor


class ScannedCode(BaseModel):
    """Raw scanner output or a manually typed code."""

    code: str

    @field_validator('code')
    @classmethod
    def validate_code(cls, v):
        if not v or not v.strip():
            raise ValueError('Code is required')
        return v


class EmployeeAccess(BaseModel):
    user_id: str
    action_type: ActionType


class InvitationPreview(BaseModel):
    id: str
    visitor_name: str
    visit_date: date
    visit_time: time
    alpha_code: str
    status: InvitationStatus
    sponsor_employee_id: int


class RedemptionResponse(BaseModel):
    log: AccessLog
    invitation: Invitation


class WalkInExitResponse(BaseModel):
    log: Optional[AccessLog] = None
    visitor: WalkInVisitor
    already_validated: bool


class WalkInCheckInResponse(BaseModel):
    log: AccessLog
    visitor: WalkInVisitor
    receipt_qr_image_base64: str
