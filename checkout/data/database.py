# checkout/data/database.py
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from checkout.utils.settings import DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """
    Store handle passed into every component.

    Owns the engine (connection pool) and the session factory. Opened once
    at process start and closed at shutdown.
    """

    def __init__(self, url: str | None = None, echo: bool = False):
        self.url = url or DATABASE_URL
        self.echo = echo
        self.engine: Engine | None = None
        self.SessionLocal: sessionmaker | None = None

    def _engine_kwargs(self) -> dict:
        if self.url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in self.url or self.url.rstrip("/") == "sqlite:":
                # one shared connection, otherwise every checkout sees an empty database
                kwargs["poolclass"] = StaticPool
            return kwargs
        return {"pool_size": DB_POOL_SIZE, "max_overflow": DB_MAX_OVERFLOW, "pool_pre_ping": True}

    def open(self) -> "Database":
        if self.engine is not None:
            return self

        # models must be registered in Base.metadata before create_all
        import checkout.data.models  # noqa: F401

        self.engine = create_engine(self.url, echo=self.echo, **self._engine_kwargs())
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database opened, tables: {sorted(Base.metadata.tables.keys())}")
        return self

    def session(self) -> Session:
        if self.SessionLocal is None:
            raise RuntimeError("Database is not open")
        return self.SessionLocal()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connection pool closed")
        self.engine = None
        self.SessionLocal = None


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
