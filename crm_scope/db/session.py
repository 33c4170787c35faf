from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from crm_scope.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_session_factory(request: Request) -> sessionmaker:
    return getattr(request.app.state, "session_factory", None) or SessionLocal


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Main DB dependency.

    Route handlers keep writing plain `select(Model)` queries; row scoping is
    applied by the `do_orm_execute` listener in `crm_scope.db.filters`, which
    reads the request's authorization context from `Session.info["authz"]`.
    """

    db = get_session_factory(request)()
    try:
        authz = getattr(getattr(request, "state", None), "authz", None)
        if authz is not None:
            db.info["authz"] = authz
        yield db
    finally:
        db.close()
