from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class ActionType(str, Enum):
    ENTRY = 'entry'
    EXIT = 'exit'


class AccessLogFilter(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    site_id: Optional[int] = None
    action_type: Optional[ActionType] = None
    invitation_id: Optional[str] = None
    walk_in_visitor_id: Optional[str] = None
    user_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class AccessLogCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    action_type: ActionType
    site_id: int
    scanned_by: Optional[str] = None
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None
    invitation_id: Optional[str] = None
    walk_in_visitor_id: Optional[str] = None

    @model_validator(mode='after')
    def check_single_subject(self) -> 'AccessLogCreate':
        subjects = [self.user_id, self.invitation_id, self.walk_in_visitor_id]
        if sum(subject is not None for subject in subjects) != 1:
            raise ValueError(
                'An access log needs exactly one of user_id, invitation_id '
                'or walk_in_visitor_id'
            )
        return self


class AccessLog(BaseModel):
    id: int
    timestamp: datetime
    action_type: ActionType
    site_id: int
    scanned_by: Optional[str] = None
    user_id: Optional[str] = None
    invitation_id: Optional[str] = None
    walk_in_visitor_id: Optional[str] = None
    subject_type: str

    model_config = ConfigDict(
        from_attributes=True,
    )
