import re
from datetime import datetime, time, timedelta

import pytest
from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

from app.api.access.validator import access_validator
from app.api.access_logs.crud import access_log as access_log_crud
from app.api.access_logs.models import AccessLog
from app.api.walk_in_visitors.crud import walk_in_visitor as walk_in_visitor_crud
from app.api.walk_in_visitors.models import WalkInVisitor
from app.api.walk_in_visitors.schemas import WalkInVisitorCreate
from app.core.exceptions.access_exceptions import NotFoundError

from tests.conftest import OTHER_SITE_ID, SITE_ID


def _exit(client, headers, code):
    return client.post('/access/walk-ins/exit', json={'code': code}, headers=headers)


def test_check_in_walk_in(client, guardian_headers, db_session):
    response = client.post(
        '/access/walk-ins',
        json={
            'first_name': ' Fatou ',
            'last_name': 'Sarr',
            'id_card_number': '1 234 1990 00012',
            'birth_date': '1990-04-12',
            'nationality': 'SEN',
        },
        headers=guardian_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    visitor = data['visitor']
    assert visitor['first_name'] == 'Fatou'
    assert visitor['site_id'] == SITE_ID
    assert visitor['scanned_by'] == 'guardian-1'
    assert visitor['exit_validated'] is False
    assert re.fullmatch(r'[A-Z0-9]{6}', visitor['receipt_code'])
    assert data['receipt_qr_image_base64']
    assert data['log']['action_type'] == 'entry'
    assert data['log']['walk_in_visitor_id'] == visitor['id']

    assert db_session.query(AccessLog).count() == 1


def test_check_in_walk_in_requires_names(client, guardian_headers, db_session):
    response = client.post(
        '/access/walk-ins',
        json={'first_name': 'Fatou', 'last_name': '  '},
        headers=guardian_headers,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()['error'] == 'validation_error'
    assert db_session.query(WalkInVisitor).count() == 0
    assert db_session.query(AccessLog).count() == 0


def test_validate_exit(client, guardian_headers, create_test_walk_in, db_session):
    visitor = create_test_walk_in('AB12CD')

    response = _exit(client, guardian_headers, ' ab12cd ')

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data['already_validated'] is False
    assert data['visitor']['exit_validated'] is True
    assert data['visitor']['exit_at'] is not None
    assert data['log']['action_type'] == 'exit'
    assert data['log']['walk_in_visitor_id'] == visitor.id


def test_validate_exit_twice(client, guardian_headers, create_test_walk_in, db_session):
    create_test_walk_in('AB12CD')

    first = _exit(client, guardian_headers, 'AB12CD').json()
    response = _exit(client, guardian_headers, 'AB12CD')

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data['already_validated'] is True
    assert data['log'] is None
    assert data['visitor']['exit_at'] == first['visitor']['exit_at']
    assert (
        db_session.query(AccessLog).filter(AccessLog.action_type == 'exit').count()
        == 1
    )


def test_validate_exit_scanned_receipt(client, guardian_headers, create_test_walk_in):
    visitor = create_test_walk_in('AB12CD')
    response = _exit(client, guardian_headers, visitor.receipt_qr_code)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()['visitor']['id'] == visitor.id


def test_validate_exit_with_invitation_payload(
    client, guardian_headers, test_invitation
):
    response = _exit(client, guardian_headers, test_invitation.qr_code)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_validate_exit_unknown_receipt(client, guardian_headers, db_session):
    response = _exit(client, guardian_headers, 'NOPE99')
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()['detail'] == 'Unknown receipt code'
    assert db_session.query(AccessLog).count() == 0


def test_receipt_code_reused_after_exit(db_session, create_test_walk_in):
    old = create_test_walk_in('AB12CD', exit_validated=True)
    new = create_test_walk_in('AB12CD', first_name='Ousmane')

    assert walk_in_visitor_crud.get_by_receipt_code(db_session, 'ab12cd').id == new.id

    result = walk_in_visitor_crud.validate_exit(db_session, 'AB12CD')
    assert result.already_validated is False
    assert result.visitor.id == new.id
    assert old.id != new.id


def test_concurrent_exit_validation(file_db_sessions, create_test_walk_in):
    first_guardian = file_db_sessions()
    second_guardian = file_db_sessions()

    visitor = create_test_walk_in('AB12CD', session=first_guardian)
    assert visitor.exit_validated is False

    access_validator.validate_walk_in_exit(
        second_guardian, 'AB12CD', SITE_ID, 'guardian-2'
    )

    # The first guardian still holds the outstanding row in memory
    result = access_validator.validate_walk_in_exit(
        first_guardian, 'AB12CD', SITE_ID, 'guardian-1'
    )

    assert result.already_validated is True
    assert result.log is None
    assert first_guardian.query(AccessLog).count() == 1


def test_list_walk_in_visitors_is_site_scoped(
    client, guardian_headers, create_test_walk_in
):
    own = create_test_walk_in('AB12CD')
    create_test_walk_in('ZZ99ZZ', site_id=OTHER_SITE_ID)

    response = client.get('/walk-in-visitors/', headers=guardian_headers)
    assert response.status_code == status.HTTP_200_OK
    assert [v['id'] for v in response.json()] == [own.id]


def test_list_walk_in_visitors_pending_exits(
    client, manager_headers, create_test_walk_in
):
    pending = create_test_walk_in('AB12CD')
    create_test_walk_in('ZZ99ZZ', exit_validated=True)

    response = client.get(
        '/walk-in-visitors/',
        params={'exit_validated': False},
        headers=manager_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert [v['id'] for v in response.json()] == [pending.id]


def test_get_walk_in_visitor_other_site(
    client, other_guardian_headers, create_test_walk_in
):
    visitor = create_test_walk_in('AB12CD')
    response = client.get(
        f'/walk-in-visitors/{visitor.id}', headers=other_guardian_headers
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_walk_in_visitors_not_visible_to_employees(client, sponsor_headers):
    response = client.get('/walk-in-visitors/', headers=sponsor_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_walk_in_stats(db_session, create_test_walk_in, today):
    now = datetime.combine(today, time(12, 0))
    create_test_walk_in('AB12CD', created_at=now - timedelta(hours=2))
    create_test_walk_in('CD34EF', created_at=now - timedelta(hours=1))
    exited = create_test_walk_in('ZZ99ZZ', created_at=now - timedelta(minutes=45))
    create_test_walk_in('GH56IJ', site_id=OTHER_SITE_ID, created_at=now)
    create_test_walk_in('KL78MN', created_at=now - timedelta(days=1))

    exited.exit_validated = True
    exited.exit_at = now
    db_session.commit()

    stats = walk_in_visitor_crud.stats(db_session, SITE_ID, now=now)

    assert stats.today_entries == 3
    assert stats.today_exits == 1
    assert stats.pending_exits == 2
    assert stats.average_stay_minutes == 45


def test_walk_in_stats_endpoint(client, guardian_headers, create_test_walk_in):
    create_test_walk_in('AB12CD')

    response = client.get('/walk-in-visitors/stats', headers=guardian_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data['today_entries'] == 1
    assert data['pending_exits'] == 1
    assert data['average_stay_minutes'] is None


def test_validate_exit_by_visitor_id(client, guardian_headers, create_test_walk_in):
    visitor = create_test_walk_in('AB12CD')

    response = _exit(client, guardian_headers, visitor.id)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()['visitor']['id'] == visitor.id
    assert response.json()['already_validated'] is False


def test_rescanning_old_receipt_leaves_new_holder_on_site(
    client, guardian_headers, create_test_walk_in, db_session
):
    old = create_test_walk_in('AB12CD', exit_validated=True)
    new = create_test_walk_in('AB12CD', first_name='Ousmane')

    response = _exit(client, guardian_headers, old.receipt_qr_code)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data['visitor']['id'] == old.id
    assert data['already_validated'] is True
    assert data['log'] is None

    db_session.refresh(new)
    assert new.exit_validated is False
    assert db_session.query(AccessLog).count() == 0


def test_validate_exit_payload_with_mismatched_code(db_session, create_test_walk_in):
    visitor = create_test_walk_in('AB12CD')

    with pytest.raises(NotFoundError):
        walk_in_visitor_crud.validate_exit(db_session, 'ZZ99ZZ', visitor_id=visitor.id)

    db_session.refresh(visitor)
    assert visitor.exit_validated is False


def test_check_in_is_rolled_back_with_its_entry_log(db_session, monkeypatch):
    def failing_append(db, obj):
        raise SQLAlchemyError('disk full')

    monkeypatch.setattr(access_log_crud, 'append', failing_append)

    with pytest.raises(SQLAlchemyError):
        access_validator.check_in_walk_in(
            db_session,
            SITE_ID,
            WalkInVisitorCreate(first_name='Fatou', last_name='Sarr'),
            guardian_id='guardian-1',
        )
    db_session.rollback()

    assert db_session.query(WalkInVisitor).count() == 0
