from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.bulk_exits import schemas
from app.api.bulk_exits.dependencies import get_bulk_exit_store
from app.api.bulk_exits.processor import BulkExitProcessor, BulkExitStagingStore
from app.core.database import get_db
from app.core.exceptions.access_exceptions import NotFoundError
from app.core.security import Capability, TokenData, require_capability, require_site

router = APIRouter()

guardian = require_capability(Capability.VALIDATE_ACCESS)


def _staged(processor: BulkExitProcessor) -> schemas.StagedReceipts:
    return schemas.StagedReceipts(
        items=processor.items, pending_count=len(processor.pending)
    )


@router.get('/receipts', response_model=schemas.StagedReceipts)
def get_staged_receipts(
    current_user: TokenData = Depends(guardian),
    store: BulkExitStagingStore = Depends(get_bulk_exit_store),
):
    return _staged(store.get(current_user.actor_id))


@router.post('/receipts', response_model=schemas.StagedReceipts)
def stage_receipt(
    receipt: schemas.StageReceipt,
    current_user: TokenData = Depends(guardian),
    store: BulkExitStagingStore = Depends(get_bulk_exit_store),
    db: Session = Depends(get_db),
):
    processor = store.get(current_user.actor_id)
    processor.stage(db, receipt.code)
    return _staged(processor)


@router.delete('/receipts/{code}', response_model=schemas.StagedReceipts)
def unstage_receipt(
    code: str,
    current_user: TokenData = Depends(guardian),
    store: BulkExitStagingStore = Depends(get_bulk_exit_store),
):
    processor = store.get(current_user.actor_id)
    if not processor.unstage(code):
        raise NotFoundError(f'Receipt {code} is not in the list')
    return _staged(processor)


@router.post('/commit', response_model=schemas.BulkExitResult)
def commit_bulk_exit(
    current_user: TokenData = Depends(guardian),
    store: BulkExitStagingStore = Depends(get_bulk_exit_store),
    db: Session = Depends(get_db),
):
    processor = store.get(current_user.actor_id)
    return processor.validate_all(
        db, site_id=require_site(current_user), guardian_id=current_user.actor_id
    )


@router.post('/', response_model=schemas.BulkExitResult, status_code=status.HTTP_200_OK)
def bulk_exit(
    request: schemas.BulkExitRequest,
    current_user: TokenData = Depends(guardian),
    db: Session = Depends(get_db),
):
    """Stage and validate a list of receipts in one call."""
    return BulkExitProcessor().process_codes(
        db,
        request.codes,
        site_id=require_site(current_user),
        guardian_id=current_user.actor_id,
    )
