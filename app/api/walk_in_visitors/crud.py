from datetime import datetime, time
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from app.api.base_crud import CRUDBase
from app.api.walk_in_visitors import models, schemas
from app.core.codes import RECEIPT_PAYLOAD_TYPE, generate_payload, insert_with_unique_code
from app.core.exceptions.access_exceptions import NotFoundError, ValidationError
from app.core.logger import logger
from app.core.security import SYSTEM_TOKEN, Capability, TokenData
from app.core.utils import current_time, new_id, normalize_code


class ExitValidation(NamedTuple):
    visitor: models.WalkInVisitor
    already_validated: bool


class CRUDWalkInVisitor(CRUDBase[models.WalkInVisitor, schemas.WalkInVisitorCreate]):
    def _check_permission(self, db_obj: models.WalkInVisitor, user: TokenData) -> bool:
        if user == SYSTEM_TOKEN or user.can(Capability.VIEW_ACCESS_LOGS):
            return user.site_id is None or db_obj.site_id == user.site_id
        return False

    def get_by_receipt_code(
        self, db: Session, receipt_code: str
    ) -> Optional[models.WalkInVisitor]:
        """Outstanding visitors win over older ones that reused the same code."""
        code = normalize_code(receipt_code)
        if not code:
            return None
        return (
            db.query(self.model)
            .filter(self.model.receipt_code == code)
            .order_by(self.model.exit_validated.asc(), self.model.created_at.desc())
            .first()
        )

    def lookup(
        self,
        db: Session,
        receipt_code_or_id: Optional[str] = None,
        visitor_id: Optional[str] = None,
    ) -> models.WalkInVisitor:
        """
        Resolve a visitor from a typed receipt code or id, or from the id and
        code of a scanned receipt. When both are given they must agree.
        """
        if visitor_id:
            visitor = db.query(self.model).filter(self.model.id == visitor_id).first()
            if (
                visitor
                and receipt_code_or_id
                and visitor.receipt_code != normalize_code(receipt_code_or_id)
            ):
                logger.warning(
                    'Receipt code %s does not match visitor %s',
                    receipt_code_or_id,
                    visitor_id,
                )
                visitor = None
        else:
            visitor = self.get_by_receipt_code(db, receipt_code_or_id)
            if not visitor and receipt_code_or_id and receipt_code_or_id.strip():
                visitor = (
                    db.query(self.model)
                    .filter(self.model.id == receipt_code_or_id.strip())
                    .first()
                )
        if not visitor:
            logger.error(
                'No walk-in visitor matches code=%s id=%s', receipt_code_or_id, visitor_id
            )
            raise NotFoundError('Unknown receipt code')
        return visitor

    def check_in(
        self,
        db: Session,
        site_id: int,
        obj: schemas.WalkInVisitorCreate,
        guardian_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> models.WalkInVisitor:
        """Register a visitor. The row is flushed; the caller commits it."""
        now = now or current_time()
        if not obj.first_name or not obj.last_name:
            raise ValidationError('First and last name are required')

        def build(code: str) -> models.WalkInVisitor:
            visitor_id = new_id()
            return models.WalkInVisitor(
                id=visitor_id,
                site_id=site_id,
                scanned_by=guardian_id,
                receipt_code=code,
                receipt_qr_code=generate_payload(
                    visitor_id, code, kind=RECEIPT_PAYLOAD_TYPE, issued_at=now
                ),
                exit_validated=False,
                created_at=now,
                **obj.model_dump(),
            )

        visitor = insert_with_unique_code(db, build, label='walk-in receipt')
        logger.info(
            'Walk-in visitor %s checked in at site %s with receipt %s',
            visitor.id,
            site_id,
            visitor.receipt_code,
        )
        return visitor

    def validate_exit(
        self,
        db: Session,
        receipt_code_or_id: Optional[str] = None,
        now: Optional[datetime] = None,
        visitor_id: Optional[str] = None,
    ) -> ExitValidation:
        """
        Mark a visitor as exited. Re-validating an exited receipt is not an
        error, it reports ``already_validated``. The change is flushed but not
        committed so the caller can commit it with the access log.
        """
        now = now or current_time()
        visitor = self.lookup(db, receipt_code_or_id, visitor_id=visitor_id)
        if visitor.exit_validated:
            logger.info('Receipt %s already validated', visitor.receipt_code)
            return ExitValidation(visitor, True)

        updated = (
            db.query(self.model)
            .filter(
                self.model.id == visitor.id,
                self.model.exit_validated == False,  # noqa: E712
            )
            .update(
                {self.model.exit_validated: True, self.model.exit_at: now},
                synchronize_session='evaluate',
            )
        )
        if not updated:
            # Another guardian validated this receipt in the meantime
            db.rollback()
            db.refresh(visitor)
            logger.info('Receipt %s validated concurrently', visitor.receipt_code)
            return ExitValidation(visitor, True)

        logger.info('Exit validated for walk-in visitor %s', visitor.id)
        return ExitValidation(visitor, False)

    def find(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[schemas.WalkInVisitorFilter] = None,
        user: Optional[TokenData] = None,
        sort_by: str = 'created_at',
        sort_order: str = 'desc',
    ) -> List[models.WalkInVisitor]:
        if user and user.site_id is not None:
            filters = filters or schemas.WalkInVisitorFilter()
            filters.site_id = user.site_id
        return super().find(db, skip, limit, filters, user, sort_by, sort_order)

    def stats(
        self, db: Session, site_id: int, now: Optional[datetime] = None
    ) -> schemas.WalkInStats:
        now = now or current_time()
        start = datetime.combine(now.date(), time.min)
        end = datetime.combine(now.date(), time.max)

        visitors = (
            db.query(self.model)
            .filter(
                self.model.site_id == site_id,
                self.model.created_at >= start,
                self.model.created_at <= end,
            )
            .all()
        )
        exited = [v for v in visitors if v.exit_validated and v.exit_at]

        average_stay = None
        if exited:
            total_minutes = sum(
                (v.exit_at - v.created_at).total_seconds() // 60 for v in exited
            )
            average_stay = round(total_minutes / len(exited))

        return schemas.WalkInStats(
            today_entries=len(visitors),
            today_exits=len([v for v in visitors if v.exit_validated]),
            pending_exits=len([v for v in visitors if not v.exit_validated]),
            average_stay_minutes=average_stay,
        )


walk_in_visitor = CRUDWalkInVisitor(models.WalkInVisitor)
