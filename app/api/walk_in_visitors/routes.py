from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.walk_in_visitors import schemas
from app.api.walk_in_visitors.crud import walk_in_visitor as walk_in_visitor_crud
from app.core.database import get_db
from app.core.security import Capability, TokenData, require_capability, require_site

router = APIRouter()

viewer = require_capability(Capability.VIEW_ACCESS_LOGS)


@router.get('/', response_model=list[schemas.WalkInVisitor])
def get_walk_in_visitors(
    current_user: TokenData = Depends(viewer),
    filters: schemas.WalkInVisitorFilter = Depends(),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return walk_in_visitor_crud.find(
        db=db,
        skip=skip,
        limit=limit,
        filters=filters,
        user=current_user,
    )


@router.get('/stats', response_model=schemas.WalkInStats)
def get_walk_in_stats(
    current_user: TokenData = Depends(viewer),
    db: Session = Depends(get_db),
):
    return walk_in_visitor_crud.stats(db=db, site_id=require_site(current_user))


@router.get('/{visitor_id}', response_model=schemas.WalkInVisitor)
def get_walk_in_visitor(
    visitor_id: str,
    current_user: TokenData = Depends(viewer),
    db: Session = Depends(get_db),
):
    return walk_in_visitor_crud.get(db=db, id=visitor_id, user=current_user)
