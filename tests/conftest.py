import os

# Cheap hashes for the test run; must be set before taskflow.config is imported.
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import taskflow.models as models
from taskflow.database import Base
from taskflow.security import hash_password
from taskflow.services import Identity, TaskEngine

from .fakes import FakeNotifier

TEST_DATABASE_URL = "sqlite://"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEFAULT_PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def db_session() -> Session:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_user(
    session: Session,
    username: str,
    role: str = "user",
    status: str = "active",
    password: str = DEFAULT_PASSWORD,
) -> models.User:
    user = models.User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(password),
        first_name=username.capitalize(),
        last_name="Tester",
        role=models.UserRole(role),
        status=models.UserStatus(status),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def identity_for(user: models.User) -> Identity:
    return Identity(user_id=user.id, role=user.role)


@pytest.fixture()
def admin(db_session: Session) -> models.User:
    return make_user(db_session, "admin", role="admin")


@pytest.fixture()
def alice(db_session: Session) -> models.User:
    return make_user(db_session, "alice")


@pytest.fixture()
def bob(db_session: Session) -> models.User:
    return make_user(db_session, "bob")


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def task_engine(db_session: Session, notifier: FakeNotifier) -> TaskEngine:
    return TaskEngine(db_session, notifier)
