import os
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "postgresql://localhost/edgaze")


class Database:
    """Engine plus session factory, owned by the application lifespan."""

    def __init__(self, database_url: Optional[str] = None):
        self.url = database_url or get_database_url()

        connect_args = {}
        if self.url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        self.engine: Engine = create_engine(self.url, connect_args=connect_args)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
