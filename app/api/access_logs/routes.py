from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.access_logs import schemas
from app.api.access_logs.crud import access_log as access_log_crud
from app.core.database import get_db
from app.core.security import Capability, TokenData, require_capability

router = APIRouter()


@router.get('/', response_model=list[schemas.AccessLog])
def get_access_logs(
    current_user: TokenData = Depends(require_capability(Capability.VIEW_ACCESS_LOGS)),
    filters: schemas.AccessLogFilter = Depends(),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return access_log_crud.find(
        db=db,
        skip=skip,
        limit=limit,
        filters=filters,
        user=current_user,
    )


@router.get('/{log_id}', response_model=schemas.AccessLog)
def get_access_log(
    log_id: int,
    current_user: TokenData = Depends(require_capability(Capability.VIEW_ACCESS_LOGS)),
    db: Session = Depends(get_db),
):
    return access_log_crud.get(db=db, id=log_id, user=current_user)
