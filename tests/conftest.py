from datetime import datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.bulk_exits.dependencies import get_bulk_exit_store
from app.api.bulk_exits.processor import BulkExitStagingStore
from app.api.invitations.crud import invitation as invitation_crud
from app.api.invitations.schemas import InvitationCreate
from app.api.walk_in_visitors.models import WalkInVisitor
from app.core import models  # noqa: F401
from app.core.codes import RECEIPT_PAYLOAD_TYPE, generate_payload
from app.core.config import Environment, settings
from app.core.database import Base, get_db
from app.core.security import ALGORITHM, Role, TokenData
from app.core.utils import current_time, new_id
from main import app

SITE_ID = 1
OTHER_SITE_ID = 2


@pytest.fixture(scope='session', autouse=True)
def check_test_environment():
    if settings.ENVIRONMENT != Environment.TEST:
        raise RuntimeError(
            f'Tests can only be executed in test environment. Current environment: {settings.ENVIRONMENT}'
        )


@pytest.fixture(scope='session', autouse=True)
def setup_test_secret_key():
    """Sign test tokens with a known key"""
    original_secret_key = settings.SECRET_KEY
    settings.SECRET_KEY = 'test_secret_key'
    yield
    settings.SECRET_KEY = original_secret_key


@pytest.fixture(scope='session')
def test_db_engine():
    engine = create_engine(
        settings.SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope='function')
def db_session(test_db_engine):
    """Create a fresh database session for each test"""
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_db_engine
    )

    # Drop and recreate all tables before each test
    Base.metadata.drop_all(bind=test_db_engine)
    Base.metadata.create_all(bind=test_db_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope='function')
def file_db_sessions(tmp_path):
    """
    Sessions on separate connections to a file database, for simulating two
    guardians working at the same time.
    """
    engine = create_engine(
        f'sqlite:///{tmp_path / "access.db"}',
        connect_args={'check_same_thread': False},
    )
    Base.metadata.create_all(bind=engine)
    SessionFactory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    sessions = []

    def _open():
        session = SessionFactory()
        sessions.append(session)
        return session

    yield _open

    for session in sessions:
        session.close()
    engine.dispose()


@pytest.fixture(scope='function')
def bulk_exit_store():
    return BulkExitStagingStore()


@pytest.fixture(scope='function')
def client(db_session, bulk_exit_store):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_bulk_exit_store] = lambda: bulk_exit_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_access_token(data: dict, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({'exp': current_time() + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def get_auth_headers(actor_id: str, role: Role, **claims) -> dict:
    """Generate auth headers as the identity provider would issue them"""
    data = {'sub': actor_id, 'role': role.value, **claims}
    access_token = create_access_token(data=data, expires_delta=timedelta(minutes=5))
    return {'Authorization': f'Bearer {access_token}'}


@pytest.fixture
def sponsor():
    return TokenData(actor_id='employee-user-1', role=Role.EMPLOYEE, employee_id=1)


@pytest.fixture
def other_sponsor():
    return TokenData(actor_id='employee-user-2', role=Role.EMPLOYEE, employee_id=2)


@pytest.fixture
def sponsor_headers(sponsor):
    return get_auth_headers(sponsor.actor_id, sponsor.role, employee_id=1)


@pytest.fixture
def other_sponsor_headers(other_sponsor):
    return get_auth_headers(other_sponsor.actor_id, other_sponsor.role, employee_id=2)


@pytest.fixture
def guardian_headers():
    return get_auth_headers('guardian-1', Role.GUARDIAN, site_id=SITE_ID)


@pytest.fixture
def other_guardian_headers():
    return get_auth_headers('guardian-2', Role.GUARDIAN, site_id=OTHER_SITE_ID)


@pytest.fixture
def manager_headers():
    return get_auth_headers('manager-1', Role.MANAGER)


@pytest.fixture
def today():
    return current_time().date()


@pytest.fixture
def create_test_invitation(db_session, sponsor):
    """Factory fixture creating invitations through the state machine"""

    def _create_invitation(
        visit_date=None,
        visitor_name='Jean Dupont',
        visit_time=time(14, 0),
        session=None,
        owner=None,
    ):
        visit_date = visit_date or current_time().date()
        # Past visits can only be created "back then"
        created_at = min(current_time(), datetime.combine(visit_date, time(8, 0)))
        return invitation_crud.create(
            session or db_session,
            InvitationCreate(
                visitor_name=visitor_name,
                visitor_phone='+221770000000',
                visit_date=visit_date,
                visit_time=visit_time,
            ),
            owner or sponsor,
            now=created_at,
        )

    yield _create_invitation


@pytest.fixture
def test_invitation(create_test_invitation):
    return create_test_invitation()


@pytest.fixture
def create_test_walk_in(db_session):
    """Factory fixture inserting walk-in visitors with a chosen receipt code"""

    def _create_walk_in(
        receipt_code,
        first_name='Fatou',
        last_name='Sarr',
        exit_validated=False,
        site_id=SITE_ID,
        created_at=None,
        session=None,
    ):
        session = session or db_session
        visitor_id = new_id()
        now = current_time()
        visitor = WalkInVisitor(
            id=visitor_id,
            site_id=site_id,
            first_name=first_name,
            last_name=last_name,
            receipt_code=receipt_code,
            receipt_qr_code=generate_payload(
                visitor_id, receipt_code, kind=RECEIPT_PAYLOAD_TYPE
            ),
            scanned_by='guardian-1',
            exit_validated=exit_validated,
            exit_at=now if exit_validated else None,
            created_at=created_at or now,
        )
        session.add(visitor)
        session.commit()
        return visitor

    yield _create_walk_in
