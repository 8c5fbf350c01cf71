from datetime import time

from sqlalchemy.orm import Session

from app.api.access.validator import access_validator
from app.api.invitations import schemas as invitation_schemas
from app.api.invitations.crud import invitation as invitation_crud
from app.api.walk_in_visitors import schemas as walk_in_schemas
from app.core.config import settings
from app.core.database import SessionLocal, create_db
from app.core.security import Role, TokenData
from app.core.utils import current_time

DEMO_SITE_ID = 1

DEMO_INVITATIONS = [
    ('Jean Dupont', '+221770000001', time(9, 30)),
    ('Awa Ndiaye', '+221770000002', time(14, 0)),
    ('Moussa Diop', '+221770000003', time(16, 45)),
]

DEMO_WALK_INS = [
    ('Fatou', 'Sarr', '1234567890123'),
    ('Ibrahima', 'Fall', '9876543210987'),
]


def create_invitations(db: Session):
    print('Creating invitations...')
    sponsor = TokenData(actor_id='demo-employee', role=Role.EMPLOYEE, employee_id=1)
    today = current_time().date()
    for visitor_name, visitor_phone, visit_time in DEMO_INVITATIONS:
        invitation = invitation_crud.create(
            db,
            invitation_schemas.InvitationCreate(
                visitor_name=visitor_name,
                visitor_phone=visitor_phone,
                visit_date=today,
                visit_time=visit_time,
            ),
            sponsor,
        )
        print(f'Invitation {invitation.alpha_code} - {visitor_name} at {visit_time}')


def create_walk_ins(db: Session):
    print('Checking in walk-in visitors...')
    for first_name, last_name, id_card_number in DEMO_WALK_INS:
        check_in = access_validator.check_in_walk_in(
            db,
            DEMO_SITE_ID,
            walk_in_schemas.WalkInVisitorCreate(
                first_name=first_name,
                last_name=last_name,
                id_card_number=id_card_number,
            ),
            guardian_id='demo-guardian',
        )
        print(f'Receipt {check_in.visitor.receipt_code} - {first_name} {last_name}')


def main():
    create_db()
    db = SessionLocal()
    try:
        print('\nDatabase Connection Information:')
        print(f'Host: {settings.DB_HOST}')
        print(f'Port: {settings.DB_PORT}')
        print(f'Database Name: {settings.DB_NAME}')
        print(f'Username: {settings.DB_USERNAME}')

        print('\nThis script will create demo data in the database:')
        print(f'1. {len(DEMO_INVITATIONS)} pending invitations for today')
        print(f'2. {len(DEMO_WALK_INS)} walk-in visitors on site {DEMO_SITE_ID}')

        confirm = input('Do you want to proceed? (y/N): ')
        if confirm.lower() != 'y':
            print('Operation cancelled')
            return

        create_invitations(db)
        create_walk_ins(db)
    finally:
        db.close()


if __name__ == '__main__':
    main()
