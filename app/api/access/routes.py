from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.access import schemas
from app.api.access.validator import access_validator
from app.api.access_logs.schemas import AccessLog
from app.api.walk_in_visitors.schemas import WalkInVisitorCreate
from app.core.codes import generate_qr_base64
from app.core.database import get_db
from app.core.security import Capability, TokenData, require_capability, require_site

router = APIRouter()

guardian = require_capability(Capability.VALIDATE_ACCESS)


@router.post('/invitations/lookup', response_model=schemas.InvitationPreview)
def lookup_invitation(
    scanned: schemas.ScannedCode,
    current_user: TokenData = Depends(guardian),
    db: Session = Depends(get_db),
):
    invitation = access_validator.lookup_invitation(db=db, raw_code=scanned.code)
    return schemas.InvitationPreview(
        id=invitation.id,
        visitor_name=invitation.visitor_name,
        visit_date=invitation.visit_date,
        visit_time=invitation.visit_time,
        alpha_code=invitation.alpha_code,
        status=invitation.status,
        sponsor_employee_id=invitation.employee_id,
    )


@router.post('/invitations/redeem', response_model=schemas.RedemptionResponse)
def redeem_invitation(
    scanned: schemas.ScannedCode,
    current_user: TokenData = Depends(guardian),
    db: Session = Depends(get_db),
):
    redemption = access_validator.redeem_invitation(
        db=db,
        raw_code=scanned.code,
        site_id=require_site(current_user),
        guardian_id=current_user.actor_id,
    )
    return schemas.RedemptionResponse(
        log=redemption.log, invitation=redemption.invitation
    )


@router.post('/invitations/exit', response_model=AccessLog, status_code=201)
def record_invitation_exit(
    scanned: schemas.ScannedCode,
    current_user: TokenData = Depends(guardian),
    db: Session = Depends(get_db),
):
    return access_validator.record_invitation_exit(
        db=db,
        raw_code=scanned.code,
        site_id=require_site(current_user),
        guardian_id=current_user.actor_id,
    )


@router.post('/walk-ins', response_model=schemas.WalkInCheckInResponse, status_code=201)
def check_in_walk_in(
    visitor: WalkInVisitorCreate,
    current_user: TokenData = Depends(guardian),
    db: Session = Depends(get_db),
):
    check_in = access_validator.check_in_walk_in(
        db=db,
        site_id=require_site(current_user),
        obj=visitor,
        guardian_id=current_user.actor_id,
    )
    return schemas.WalkInCheckInResponse(
        log=check_in.log,
        visitor=check_in.visitor,
        receipt_qr_image_base64=generate_qr_base64(check_in.visitor.receipt_qr_code),
    )


@router.post('/walk-ins/exit', response_model=schemas.WalkInExitResponse)
def validate_walk_in_exit(
    scanned: schemas.ScannedCode,
    current_user: TokenData = Depends(guardian),
    db: Session = Depends(get_db),
):
    result = access_validator.validate_walk_in_exit(
        db=db,
        receipt_code=scanned.code,
        site_id=require_site(current_user),
        guardian_id=current_user.actor_id,
    )
    return schemas.WalkInExitResponse(
        log=result.log,
        visitor=result.visitor,
        already_validated=result.already_validated,
    )


@router.post('/employees', response_model=AccessLog, status_code=201)
def record_employee_access(
    access: schemas.EmployeeAccess,
    current_user: TokenData = Depends(guardian),
    db: Session = Depends(get_db),
):
    return access_validator.record_employee_access(
        db=db,
        user_id=access.user_id,
        action_type=access.action_type,
        site_id=require_site(current_user),
        guardian_id=current_user.actor_id,
    )
