from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.invitations import schemas
from app.api.invitations.crud import invitation as invitation_crud
from app.core.codes import generate_qr_base64
from app.core.database import get_db
from app.core.logger import logger
from app.core.security import Capability, TokenData, get_current_user, require_capability

router = APIRouter()


@router.post('/', response_model=schemas.Invitation, status_code=201)
def create_invitation(
    invitation: schemas.InvitationCreate,
    current_user: TokenData = Depends(require_capability(Capability.CREATE_INVITATION)),
    db: Session = Depends(get_db),
):
    logger.info('Creating invitation for employee %s', current_user.employee_id)
    return invitation_crud.create(db=db, obj=invitation, sponsor=current_user)


@router.get('/', response_model=list[schemas.Invitation])
def get_invitations(
    current_user: TokenData = Depends(require_capability(Capability.CREATE_INVITATION)),
    filters: schemas.InvitationFilter = Depends(),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return invitation_crud.find(
        db=db,
        skip=skip,
        limit=limit,
        filters=filters,
        user=current_user,
    )


@router.get('/public/{code}', response_model=schemas.PublicInvitation)
def get_public_invitation(
    code: str,
    db: Session = Depends(get_db),
):
    return invitation_crud.public_view(db=db, code=code)


@router.get('/{invitation_id}', response_model=schemas.Invitation)
def get_invitation(
    invitation_id: str,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return invitation_crud.get(db=db, id=invitation_id, user=current_user)


@router.get('/{invitation_id}/qr', response_model=schemas.InvitationQRCode)
def get_invitation_qr(
    invitation_id: str,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    invitation = invitation_crud.get(db=db, id=invitation_id, user=current_user)
    return schemas.InvitationQRCode(
        id=invitation.id,
        alpha_code=invitation.alpha_code,
        payload=invitation.qr_code,
        image_base64=generate_qr_base64(invitation.qr_code),
    )


@router.post('/{invitation_id}/cancel', response_model=schemas.Invitation)
def cancel_invitation(
    invitation_id: str,
    current_user: TokenData = Depends(require_capability(Capability.CANCEL_INVITATION)),
    db: Session = Depends(get_db),
):
    return invitation_crud.cancel(db=db, id=invitation_id, sponsor=current_user)
