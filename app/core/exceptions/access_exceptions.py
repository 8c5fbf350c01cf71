from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException, status


class AccessError(HTTPException):
    """Base class for the errors the guardian and sponsor screens tell apart."""

    error_code = 'access_error'

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code, detail, None)

    def extra(self) -> dict:
        return {}


class ValidationError(AccessError):
    error_code = 'validation_error'

    def __init__(self, detail: str):
        super().__init__(status.HTTP_422_UNPROCESSABLE_ENTITY, detail)


class NotFoundError(AccessError):
    error_code = 'not_found'

    def __init__(self, detail: str = 'Unknown code'):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


class InvalidStateError(AccessError):
    error_code = 'invalid_state'

    def __init__(
        self,
        current_status: str,
        changed_at: Optional[datetime] = None,
        detail: Optional[str] = None,
    ):
        self.current_status = current_status
        self.changed_at = changed_at
        msg = detail or f'Invitation is {current_status}'
        if changed_at and not detail:
            msg = f'{msg} since {changed_at.isoformat(timespec="seconds")}'
        super().__init__(status.HTTP_409_CONFLICT, msg)

    def extra(self) -> dict:
        return {
            'current_status': self.current_status,
            'changed_at': self.changed_at.isoformat() if self.changed_at else None,
        }


class ExpiredError(AccessError):
    error_code = 'expired'

    def __init__(self, visit_date: date, not_yet_valid: bool = False):
        self.visit_date = visit_date
        self.not_yet_valid = not_yet_valid
        if not_yet_valid:
            msg = f'Invitation is only valid on {visit_date.isoformat()}'
        else:
            msg = f'Invitation expired on {visit_date.isoformat()}'
        super().__init__(status.HTTP_410_GONE, msg)

    def extra(self) -> dict:
        return {
            'visit_date': self.visit_date.isoformat(),
            'not_yet_valid': self.not_yet_valid,
        }


class AuthorizationError(AccessError):
    error_code = 'forbidden'

    def __init__(self, detail: str = 'Not authorized'):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)


class CodeGenerationError(AccessError):
    error_code = 'code_generation_failed'

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f'Could not generate a unique code after {attempts} attempts',
        )
