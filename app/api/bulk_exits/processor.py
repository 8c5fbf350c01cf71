"""
Batch exit validation for walk-in receipts.

A guardian stages receipts one by one (each is looked up immediately so an
already exited visitor can be removed before committing), then validates the
whole list. Items are processed independently: one failure is rolled back,
logged and skipped without stopping the batch.
"""

from datetime import datetime, timedelta
from threading import Lock
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.access.validator import access_validator
from app.api.bulk_exits import schemas
from app.api.walk_in_visitors.crud import walk_in_visitor as walk_in_visitor_crud
from app.core.codes import RECEIPT_PAYLOAD_TYPE, parse_payload
from app.core.exceptions.access_exceptions import (
    AccessError,
    NotFoundError,
    ValidationError,
)
from app.core.logger import logger
from app.core.utils import current_time, normalize_code


class BulkExitProcessor:
    def __init__(self):
        self._items: List[schemas.StagedReceipt] = []

    @property
    def items(self) -> List[schemas.StagedReceipt]:
        return list(self._items)

    @property
    def pending(self) -> List[schemas.StagedReceipt]:
        return [item for item in self._items if not item.already_validated]

    def stage(self, db: Session, code: str) -> schemas.StagedReceipt:
        scanned = parse_payload(code)
        if not scanned.raw:
            raise ValidationError('Receipt code is required')
        if scanned.type not in (None, RECEIPT_PAYLOAD_TYPE):
            raise NotFoundError('Not a receipt code')

        visitor = walk_in_visitor_crud.lookup(db, scanned.raw, visitor_id=scanned.id)
        if any(item.visitor_id == visitor.id for item in self._items):
            raise ValidationError(
                f'Receipt {visitor.receipt_code} is already in the list'
            )
        item = schemas.StagedReceipt(
            code=visitor.receipt_code,
            visitor_id=visitor.id,
            visitor_name=visitor.full_name,
            already_validated=bool(visitor.exit_validated),
        )
        self._items.append(item)
        return item

    def unstage(self, code: str) -> bool:
        code = normalize_code(code)
        remaining = [item for item in self._items if item.code != code]
        removed = len(remaining) != len(self._items)
        self._items = remaining
        return removed

    def clear(self) -> None:
        self._items = []

    def validate_all(
        self,
        db: Session,
        site_id: int,
        guardian_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> schemas.BulkExitResult:
        to_process = self.pending
        if not to_process:
            raise ValidationError('No valid receipts to process')

        succeeded = 0
        failed_codes = []
        for item in to_process:
            try:
                result = access_validator.validate_walk_in_exit(
                    db,
                    item.code,
                    site_id,
                    guardian_id,
                    now=now,
                    visitor_id=item.visitor_id,
                )
            except (AccessError, SQLAlchemyError) as e:
                db.rollback()
                logger.error('Error validating receipt %s: %s', item.code, e)
                failed_codes.append(item.code)
                continue

            if result.already_validated:
                logger.info('Receipt %s was validated by someone else', item.code)
                failed_codes.append(item.code)
                continue
            succeeded += 1

        logger.info(
            '%s/%s exits validated at site %s by %s',
            succeeded,
            len(to_process),
            site_id,
            guardian_id,
        )
        self.clear()
        return schemas.BulkExitResult(
            succeeded=succeeded,
            attempted=len(to_process),
            failed_codes=failed_codes,
        )

    def process_codes(
        self,
        db: Session,
        codes: List[str],
        site_id: int,
        guardian_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> schemas.BulkExitResult:
        """Stage then validate in one go; unknown codes count as failed items."""
        unresolved = []
        for code in filter(None, (c.strip() for c in codes if c)):
            try:
                self.stage(db, code)
            except ValidationError:
                logger.info('Skipping receipt %s, already in the batch', code)
            except AccessError as e:
                logger.error('Could not stage receipt %s: %s', code, e.detail)
                if normalize_code(code) not in unresolved:
                    unresolved.append(normalize_code(code))

        if not self.pending and not unresolved:
            raise ValidationError('No valid receipts to process')

        if self.pending:
            result = self.validate_all(db, site_id, guardian_id, now=now)
        else:
            self.clear()
            result = schemas.BulkExitResult(succeeded=0, attempted=0)

        return schemas.BulkExitResult(
            succeeded=result.succeeded,
            attempted=result.attempted + len(unresolved),
            failed_codes=result.failed_codes + unresolved,
        )


class BulkExitStagingStore:
    """Per-guardian staged lists, dropped after a period without activity."""

    def __init__(self, expiry: timedelta = timedelta(hours=1)):
        self._processors: Dict[str, Tuple[datetime, BulkExitProcessor]] = {}
        self._expiry = expiry
        self._lock = Lock()

    def get(self, guardian_id: str) -> BulkExitProcessor:
        with self._lock:
            self._clean_expired()
            _, processor = self._processors.get(
                guardian_id, (None, BulkExitProcessor())
            )
            self._processors[guardian_id] = (current_time(), processor)
            return processor

    def discard(self, guardian_id: str) -> None:
        with self._lock:
            self._processors.pop(guardian_id, None)

    def _clean_expired(self) -> None:
        """Remove idle lists - already protected by lock in public methods"""
        now = current_time()
        expired = [
            k
            for k, (touched_at, _) in self._processors.items()
            if now - touched_at > self._expiry
        ]
        for key in expired:
            logger.info('Dropping idle bulk exit list of %s', key)
            del self._processors[key]
