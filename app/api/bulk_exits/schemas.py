from typing import List

from pydantic import BaseModel, field_validator


class StageReceipt(BaseModel):
    code: str


class StagedReceipt(BaseModel):
    code: str
    visitor_id: str
    visitor_name: str
    already_validated: bool


class StagedReceipts(BaseModel):
    items: List[StagedReceipt]
    pending_count: int


class BulkExitRequest(BaseModel):
    codes: List[str]

    @field_validator('codes')
    @classmethod
    def validate_codes(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError('At least one receipt code is required')
        return v


class BulkExitResult(BaseModel):
    succeeded: int
    attempted: int
    failed_codes: List[str] = []
