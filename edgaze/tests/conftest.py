import os
import tempfile
_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret
os.environ["ENV"] = "test"
os.environ.pop("JWT_AUDIENCE", None)

_TMP_DIR = tempfile.mkdtemp(prefix="edgaze-tests-")
os.environ.setdefault("STORAGE_ROOT", os.path.join(_TMP_DIR, "storage"))

import sqlite3
import subprocess
from pathlib import Path

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

TEST_DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{os.path.join(_TMP_DIR, 'edgaze_test.db')}"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

_url = make_url(TEST_DATABASE_URL)
IS_POSTGRES = _url.drivername.startswith("postgresql")

from edgaze.database import Base  # noqa: E402
import edgaze.models  # noqa: E402,F401
from edgaze.main import app  # noqa: E402
from edgaze.services.run_ledger import RUN_COUNT_FUNCTION  # noqa: E402
from edgaze.services.rate_limit import build_bug_report_limiter  # noqa: E402


def _sqlite_run_count(user_id, workflow_id, draft_id):
    # same filter as the Postgres function in the migrations
    conn = sqlite3.connect(_url.database)
    try:
        if draft_id is not None:
            row = conn.execute(
                "SELECT count(*) FROM workflow_runs WHERE user_id = ? AND draft_id = ? "
                "AND status IN ('completed', 'failed') AND completed_at IS NOT NULL",
                (user_id, draft_id),
            ).fetchone()
        else:
            row = conn.execute(
                "SELECT count(*) FROM workflow_runs WHERE user_id = ? AND workflow_id = ? "
                "AND status IN ('completed', 'failed') AND completed_at IS NOT NULL",
                (user_id, workflow_id),
            ).fetchone()
        return row[0]
    finally:
        conn.close()


@event.listens_for(Engine, "connect")
def _install_sqlite_functions(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.create_function(RUN_COUNT_FUNCTION, 3, _sqlite_run_count)


engine = create_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


def _clear_tables() -> None:
    if IS_POSTGRES:
        with engine.begin() as conn:
            rows = conn.execute(
                text(
                    """
                    SELECT tablename
                    FROM pg_tables
                    WHERE schemaname = 'public'
                      AND tablename <> 'alembic_version'
                    """
                )
            ).fetchall()

            table_names = [row[0] for row in rows]
            if table_names:
                quoted = ", ".join([f'"public"."{name}"' for name in table_names])
                conn.execute(text(f"TRUNCATE TABLE {quoted} RESTART IDENTITY CASCADE"))
        return

    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database():
    if IS_POSTGRES:
        _ensure_database_exists(TEST_DATABASE_URL)

        env = os.environ.copy()
        env["DATABASE_URL"] = TEST_DATABASE_URL

        subprocess.run(
            ["alembic", "upgrade", "head"],
            check=True,
            cwd=Path(__file__).resolve().parents[2],
            env=env,
        )
    else:
        Base.metadata.create_all(engine)

    yield

    engine.dispose()


@pytest.fixture(scope="function", autouse=True)
def _truncate_tables_between_tests():
    _clear_tables()
    yield
    _clear_tables()


@pytest.fixture()
def client():
    with TestClient(app) as c:
        # no Redis server in the suite
        app.state.bug_report_limiter = build_bug_report_limiter(FakeAsyncRedis(server=FakeServer()))
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
