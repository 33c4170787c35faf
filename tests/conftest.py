"""
Pytest fixtures for the test suite.

Data-layer and engine tests use an in-memory SQLite engine and a session that
rolls back after each test, so tests do not affect each other.

API tests run the FastAPI app against a seeded, file-backed SQLite database
under `tmp_path` and authenticate with HS256 tokens signed with the app secret.
"""
from __future__ import annotations

from dataclasses import dataclass, field

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from crm_scope.settings import get_settings


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    test_engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    # pysqlite defers BEGIN on its own; emit it ourselves so SAVEPOINTs nest correctly.
    @event.listens_for(test_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return test_engine


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from crm_scope.db.base import Base
    import crm_scope.models.crm  # noqa: F401
    import crm_scope.models.org  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
        # commit() inside a test releases a savepoint; the outer transaction still rolls back.
        join_transaction_mode="create_savepoint",
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def seeded(db_session):
    """The demo organisation (see crm_scope.db.init_db); employees keyed by emp code."""
    from crm_scope.db.init_db import seed

    employees = seed(db_session)
    db_session.commit()
    return employees


def make_token(user_id: int) -> str:
    return jwt.encode({"id": user_id}, get_settings().jwt_secret, algorithm="HS256")


@dataclass
class ApiHarness:
    client: TestClient
    session_factory: sessionmaker
    users: dict[str, int] = field(default_factory=dict)
    employees: dict[str, int] = field(default_factory=dict)

    def headers(self, emp_code: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(self.users[emp_code])}"}


@pytest.fixture
def api(tmp_path):
    """
    Running app over a freshly seeded database.

    `api.headers("E-1004")` authenticates as the user behind employee E-1004.
    """
    from crm_scope.db.base import Base
    from crm_scope.db.init_db import seed
    from crm_scope.main import create_app
    from crm_scope.security.config import load_security_config

    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'api.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    factory = sessionmaker(bind=test_engine, autocommit=False, autoflush=False, class_=Session)

    with factory() as db:
        employees = seed(db)
        db.commit()
        users = {code: e.user_id for code, e in employees.items()}
        employee_ids = {code: e.id for code, e in employees.items()}

    app = create_app(
        session_factory=factory,
        security_config=load_security_config(get_settings().resolved_security_config_path()),
    )
    with TestClient(app) as client:
        yield ApiHarness(client=client, session_factory=factory, users=users, employees=employee_ids)

    test_engine.dispose()
