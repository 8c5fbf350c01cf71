"""
Entry point used by guardians at the gate.

Every state change here follows the same order: the owning entity is moved
with a conditional update, the access log row is added to the same
transaction, and only then is the transaction committed. A rejected
credential therefore never leaves a log row behind.
"""

from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from app.api.access_logs.crud import access_log as access_log_crud
from app.api.access_logs.models import AccessLog
from app.api.access_logs.schemas import AccessLogCreate, ActionType
from app.api.invitations.crud import invitation as invitation_crud
from app.api.invitations.models import Invitation
from app.api.invitations.schemas import InvitationStatus
from app.api.walk_in_visitors.crud import walk_in_visitor as walk_in_visitor_crud
from app.api.walk_in_visitors.models import WalkInVisitor
from app.api.walk_in_visitors.schemas import WalkInVisitorCreate
from app.core.codes import INVITATION_PAYLOAD_TYPE, RECEIPT_PAYLOAD_TYPE, parse_payload
from app.core.exceptions.access_exceptions import InvalidStateError, NotFoundError
from app.core.logger import log_access_attempt, logger
from app.core.utils import current_time


class Redemption(NamedTuple):
    log: AccessLog
    invitation: Invitation


class WalkInCheckIn(NamedTuple):
    log: AccessLog
    visitor: WalkInVisitor


class WalkInExit(NamedTuple):
    log: Optional[AccessLog]
    visitor: WalkInVisitor
    already_validated: bool


class AccessValidator:
    def lookup_invitation(self, db: Session, raw_code: str) -> Invitation:
        """Read-only resolution of a scanned value, used to preview a visitor."""
        scanned = parse_payload(raw_code)
        if scanned.type not in (None, INVITATION_PAYLOAD_TYPE):
            raise NotFoundError('Not an invitation code')
        return invitation_crud.lookup(db, code=scanned.raw, invitation_id=scanned.id)

    def redeem_invitation(
        self,
        db: Session,
        raw_code: str,
        site_id: int,
        guardian_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> Redemption:
        now = now or current_time()
        log_access_attempt('redeem_invitation', raw_code, site_id, guardian_id)

        scanned = parse_payload(raw_code)
        if scanned.type not in (None, INVITATION_PAYLOAD_TYPE):
            logger.error('Scanned a %s payload as an invitation', scanned.type)
            raise NotFoundError('Not an invitation code')

        invitation = invitation_crud.redeem(
            db, code=scanned.raw, now=now, invitation_id=scanned.id
        )
        log = access_log_crud.append(
            db,
            AccessLogCreate(
                action_type=ActionType.ENTRY,
                site_id=site_id,
                scanned_by=guardian_id,
                timestamp=now,
                invitation_id=invitation.id,
            ),
        )
        db.commit()
        db.refresh(invitation)
        logger.info(
            'Entry recorded for invitation %s at site %s (log %s)',
            invitation.id,
            site_id,
            log.id,
        )
        return Redemption(log, invitation)

    def check_in_walk_in(
        self,
        db: Session,
        site_id: int,
        obj: WalkInVisitorCreate,
        guardian_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> WalkInCheckIn:
        now = now or current_time()
        visitor = walk_in_visitor_crud.check_in(
            db, site_id, obj, guardian_id=guardian_id, now=now
        )
        log = access_log_crud.append(
            db,
            AccessLogCreate(
                action_type=ActionType.ENTRY,
                site_id=site_id,
                scanned_by=guardian_id,
                timestamp=now,
                walk_in_visitor_id=visitor.id,
            ),
        )
        db.commit()
        db.refresh(visitor)
        return WalkInCheckIn(log, visitor)

    def validate_walk_in_exit(
        self,
        db: Session,
        receipt_code: str,
        site_id: int,
        guardian_id: Optional[str],
        now: Optional[datetime] = None,
        visitor_id: Optional[str] = None,
    ) -> WalkInExit:
        """
        Exit the visitor holding ``receipt_code``. A scanned receipt, or an
        explicit ``visitor_id``, pins the visitor it was issued to.
        """
        now = now or current_time()
        log_access_attempt('validate_walk_in_exit', receipt_code, site_id, guardian_id)

        scanned = parse_payload(receipt_code)
        if scanned.type not in (None, RECEIPT_PAYLOAD_TYPE):
            raise NotFoundError('Not a receipt code')
        visitor, already_validated = walk_in_visitor_crud.validate_exit(
            db, scanned.raw, now=now, visitor_id=visitor_id or scanned.id
        )
        if already_validated:
            return WalkInExit(None, visitor, True)

        log = access_log_crud.append(
            db,
            AccessLogCreate(
                action_type=ActionType.EXIT,
                site_id=site_id,
                scanned_by=guardian_id,
                timestamp=now,
                walk_in_visitor_id=visitor.id,
            ),
        )
        db.commit()
        db.refresh(visitor)
        return WalkInExit(log, visitor, False)

    def record_invitation_exit(
        self,
        db: Session,
        raw_code: str,
        site_id: int,
        guardian_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> AccessLog:
        """An invited visitor leaving. Only used invitations qualify, none change."""
        now = now or current_time()
        log_access_attempt('invitation_exit', raw_code, site_id, guardian_id)

        scanned = parse_payload(raw_code)
        if scanned.type not in (None, INVITATION_PAYLOAD_TYPE):
            raise NotFoundError('Not an invitation code')
        invitation = invitation_crud.lookup(
            db,
            code=scanned.raw,
            invitation_id=scanned.id,
            prefer=InvitationStatus.USED,
        )
        if invitation.status != InvitationStatus.USED.value:
            logger.info(
                'Exit refused for invitation %s, status is %s',
                invitation.id,
                invitation.status,
            )
            raise InvalidStateError(invitation.status, invitation.status_changed_at)

        log = access_log_crud.append(
            db,
            AccessLogCreate(
                action_type=ActionType.EXIT,
                site_id=site_id,
                scanned_by=guardian_id,
                timestamp=now,
                invitation_id=invitation.id,
            ),
        )
        db.commit()
        logger.info('Exit recorded for invitation %s at site %s', invitation.id, site_id)
        return log

    def record_employee_access(
        self,
        db: Session,
        user_id: str,
        action_type: ActionType,
        site_id: int,
        guardian_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> AccessLog:
        """Employees carry a permanent badge, so their scans only append a log."""
        log_access_attempt(f'employee_{action_type.value}', user_id, site_id, guardian_id)
        return access_log_crud.create(
            db,
            AccessLogCreate(
                action_type=action_type,
                site_id=site_id,
                scanned_by=guardian_id,
                timestamp=now or current_time(),
                user_id=user_id,
            ),
        )


access_validator = AccessValidator()
