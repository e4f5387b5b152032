"""Tests for engine construction and the session_scope unit of work."""

import pytest
from sqlalchemy import select

from procurement_kernel.db.engine import build_engine, session_scope
from procurement_kernel.domain.capabilities import Role
from procurement_kernel.models.user import UserModel


def _user(email: str) -> UserModel:
    return UserModel(email=email, full_name="Scope Test", role=Role.EMPLOYEE.value)


def _find(session, email: str):
    return session.scalar(select(UserModel).where(UserModel.email == email))


class TestBuildEngine:
    def test_sqlite_enforces_foreign_keys(self):
        engine = build_engine("sqlite://")
        try:
            with engine.connect() as conn:
                assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
        finally:
            engine.dispose()

    def test_postgres_pool_options_override_defaults(self):
        # no connection is opened until first use
        engine = build_engine("postgresql://user:pw@localhost/procurement", pool_size=5)
        assert engine.pool.size() == 5
        assert engine.dialect.name == "postgresql"
        engine.dispose()


class TestSessionScope:
    def test_error_rolls_back(self, db_tables):
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(_user("rollback@example.com"))
                session.flush()
                raise ValueError("abort")

        with session_scope() as session:
            assert _find(session, "rollback@example.com") is None

    def test_success_commits(self, db_tables):
        with session_scope() as session:
            session.add(_user("commit@example.com"))

        with session_scope() as session:
            user = _find(session, "commit@example.com")
            assert user is not None
            session.delete(user)
