from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from app.api.base_crud import CRUDBase
from app.api.invitations import models, schemas
from app.api.invitations.schemas import InvitationStatus
from app.core.codes import generate_payload, insert_with_unique_code
from app.core.config import settings
from app.core.exceptions.access_exceptions import (
    AuthorizationError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.core.logger import logger
from app.core.security import SYSTEM_TOKEN, Capability, TokenData
from app.core.utils import current_time, new_id, normalize_code

_TRANSITION_TIMESTAMPS = {
    InvitationStatus.USED: 'used_at',
    InvitationStatus.CANCELLED: 'cancelled_at',
    InvitationStatus.EXPIRED: 'expired_at',
}


class CRUDInvitation(CRUDBase[models.Invitation, schemas.InvitationCreate]):
    def _check_permission(self, db_obj: models.Invitation, user: TokenData) -> bool:
        if user == SYSTEM_TOKEN:
            return True
        if user.employee_id is not None and db_obj.employee_id == user.employee_id:
            return True
        return user.can(Capability.VALIDATE_ACCESS)

    def find(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[schemas.InvitationFilter] = None,
        user: Optional[TokenData] = None,
        sort_by: str = 'created_at',
        sort_order: str = 'desc',
    ) -> List[models.Invitation]:
        """Sponsors only ever see their own invitations."""
        if user and user != SYSTEM_TOKEN:
            filters = filters or schemas.InvitationFilter()
            filters.employee_id = user.employee_id
        return super().find(db, skip, limit, filters, user, sort_by, sort_order)

    def get_by_code(
        self,
        db: Session,
        code: str,
        prefer: InvitationStatus = InvitationStatus.PENDING,
    ) -> Optional[models.Invitation]:
        """Codes are reused once an invitation leaves pending, so ``prefer`` wins."""
        code = normalize_code(code)
        if not code:
            return None
        return (
            db.query(self.model)
            .filter(self.model.alpha_code == code)
            .order_by(
                case((self.model.status == prefer.value, 0), else_=1),
                self.model.created_at.desc(),
            )
            .first()
        )

    def lookup(
        self,
        db: Session,
        code: Optional[str] = None,
        invitation_id: Optional[str] = None,
        prefer: InvitationStatus = InvitationStatus.PENDING,
    ) -> models.Invitation:
        """
        Resolve an invitation from a typed code, an id, or both (as read from
        a scanned payload). When both are given they must agree.
        """
        if invitation_id:
            invitation = (
                db.query(self.model).filter(self.model.id == invitation_id).first()
            )
            if invitation and code and invitation.alpha_code != normalize_code(code):
                logger.warning(
                    'Payload code %s does not match invitation %s', code, invitation_id
                )
                invitation = None
        else:
            invitation = self.get_by_code(db, code, prefer=prefer)
            if not invitation and code:
                invitation = (
                    db.query(self.model)
                    .filter(self.model.id == code.strip())
                    .first()
                )

        if not invitation:
            logger.error('No invitation matches code=%s id=%s', code, invitation_id)
            raise NotFoundError('Unknown invitation code')
        return invitation

    def create(
        self,
        db: Session,
        obj: schemas.InvitationCreate,
        sponsor: TokenData,
        now: Optional[datetime] = None,
    ) -> models.Invitation:
        now = now or current_time()
        if sponsor.employee_id is None:
            raise AuthorizationError('Only employees can sponsor an invitation')

        missing = [
            field
            for field in ('visitor_name', 'visitor_phone', 'visit_date', 'visit_time')
            if not getattr(obj, field)
        ]
        if missing:
            raise ValidationError(f'Missing required fields: {", ".join(missing)}')
        if obj.visit_date < now.date():
            raise ValidationError('Visit date cannot be in the past')

        def build(code: str) -> models.Invitation:
            invitation = models.Invitation(
                employee_id=sponsor.employee_id,
                visitor_name=obj.visitor_name,
                visitor_phone=obj.visitor_phone,
                visit_date=obj.visit_date,
                visit_time=obj.visit_time,
                alpha_code=code,
                status=InvitationStatus.PENDING.value,
                created_at=now,
            )
            invitation.id = new_id()
            invitation.qr_code = generate_payload(invitation.id, code, issued_at=now)
            return invitation

        invitation = insert_with_unique_code(db, build, label='invitation')
        db.commit()
        db.refresh(invitation)
        logger.info(
            'Invitation %s created by employee %s for %s on %s',
            invitation.id,
            sponsor.employee_id,
            invitation.visitor_name,
            invitation.visit_date,
        )
        return invitation

    def _transition(
        self,
        db: Session,
        invitation: models.Invitation,
        target: InvitationStatus,
        now: datetime,
    ) -> None:
        """
        Move a pending invitation to ``target`` with a conditional update.
        Raises InvalidStateError when another writer got there first.
        """
        updated = (
            db.query(self.model)
            .filter(
                self.model.id == invitation.id,
                self.model.status == InvitationStatus.PENDING.value,
            )
            .update(
                {
                    self.model.status: target.value,
                    getattr(self.model, _TRANSITION_TIMESTAMPS[target]): now,
                    self.model.updated_at: now,
                },
                synchronize_session='evaluate',
            )
        )
        if updated:
            return

        db.rollback()
        db.refresh(invitation)
        logger.warning(
            'Invitation %s could not move to %s, current status is %s',
            invitation.id,
            target.value,
            invitation.status,
        )
        raise InvalidStateError(invitation.status, invitation.status_changed_at)

    def check_window(
        self, invitation: models.Invitation, now: datetime
    ) -> Optional[ExpiredError]:
        visit_date = invitation.visit_date
        today = now.date()
        if today > visit_date:
            return ExpiredError(visit_date)
        if today < visit_date:
            return ExpiredError(visit_date, not_yet_valid=True)
        if settings.ENFORCE_VISIT_TIME:
            deadline = datetime.combine(visit_date, invitation.visit_time) + timedelta(
                minutes=settings.VISIT_TIME_GRACE_MINUTES
            )
            if now > deadline:
                return ExpiredError(visit_date)
        return None

    def redeem(
        self,
        db: Session,
        code: Optional[str] = None,
        now: Optional[datetime] = None,
        invitation_id: Optional[str] = None,
    ) -> models.Invitation:
        """
        Consume a pending invitation. The change is flushed but not committed
        so the caller can commit it together with the access log.
        """
        now = now or current_time()
        invitation = self.lookup(db, code=code, invitation_id=invitation_id)

        if invitation.status == InvitationStatus.EXPIRED.value:
            logger.info('Invitation %s rejected, already expired', invitation.id)
            raise ExpiredError(invitation.visit_date)
        if invitation.status != InvitationStatus.PENDING.value:
            logger.info(
                'Invitation %s rejected, status is %s', invitation.id, invitation.status
            )
            raise InvalidStateError(invitation.status, invitation.status_changed_at)

        expired = self.check_window(invitation, now)
        if expired:
            if not expired.not_yet_valid:
                self._transition(db, invitation, InvitationStatus.EXPIRED, now)
                db.commit()
                logger.info('Invitation %s expired at redemption', invitation.id)
            raise expired

        self._transition(db, invitation, InvitationStatus.USED, now)
        logger.info('Invitation %s redeemed', invitation.id)
        return invitation

    def cancel(
        self,
        db: Session,
        id: str,
        sponsor: TokenData,
        now: Optional[datetime] = None,
    ) -> models.Invitation:
        now = now or current_time()
        invitation = db.query(self.model).filter(self.model.id == id).first()
        if not invitation:
            raise NotFoundError('Invitation not found')
        if sponsor.employee_id is None or invitation.employee_id != sponsor.employee_id:
            logger.error(
                'Actor %s tried to cancel invitation %s it does not own',
                sponsor.actor_id,
                id,
            )
            raise AuthorizationError('Only the sponsor can cancel this invitation')
        if invitation.status != InvitationStatus.PENDING.value:
            raise InvalidStateError(invitation.status, invitation.status_changed_at)

        self._transition(db, invitation, InvitationStatus.CANCELLED, now)
        db.commit()
        db.refresh(invitation)
        logger.info('Invitation %s cancelled by employee %s', id, sponsor.employee_id)
        return invitation

    def expire_overdue(self, db: Session, now: Optional[datetime] = None) -> int:
        """Apply the redemption-time expiry rule to every stale pending row."""
        now = now or current_time()
        count = (
            db.query(self.model)
            .filter(
                self.model.status == InvitationStatus.PENDING.value,
                self.model.visit_date < now.date(),
            )
            .update(
                {
                    self.model.status: InvitationStatus.EXPIRED.value,
                    self.model.expired_at: now,
                    self.model.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        db.commit()
        logger.info('Expired %s overdue invitations', count)
        return count

    def public_view(
        self, db: Session, code: str, now: Optional[datetime] = None
    ) -> schemas.PublicInvitation:
        now = now or current_time()
        invitation = self.get_by_code(db, code)
        if not invitation:
            raise NotFoundError('Unknown invitation code')

        status = InvitationStatus(invitation.status)
        if status == InvitationStatus.PENDING and invitation.visit_date < now.date():
            status = InvitationStatus.EXPIRED

        return schemas.PublicInvitation(
            visitor_name=invitation.visitor_name,
            visit_date=invitation.visit_date,
            visit_time=invitation.visit_time,
            alpha_code=invitation.alpha_code,
            qr_code=invitation.qr_code,
            status=status,
        )


invitation = CRUDInvitation(models.Invitation)
