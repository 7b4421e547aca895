import functools

from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ..config import settings
from ..domain.errors import TransientPersistenceError

connect_args = {}
engine_kwargs = {"pool_pre_ping": True}
if settings.DATABASE_URL.startswith("postgresql"):
    connect_args = {"client_encoding": "utf8"}
    engine_kwargs.update(pool_size=10, max_overflow=20, pool_recycle=3600)
elif settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, echo=False, **engine_kwargs)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


class Base(DeclarativeBase): pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def insert_for(db: Session, model):
    """INSERT с поддержкой ON CONFLICT для текущего диалекта (PostgreSQL в проде, SQLite локально)."""
    table = getattr(model, "__table__", model)
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(table)
    if dialect == "sqlite":
        return sqlite_insert(table)
    raise RuntimeError(f"upsert is not supported for dialect {dialect!r}")


def translate_db_errors(fn):
    """Turn lost-connection errors into TransientPersistenceError; everything else propagates."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except OperationalError as e:
            raise TransientPersistenceError("Database unavailable") from e
        except DBAPIError as e:
            if e.connection_invalidated:
                raise TransientPersistenceError("Database connection lost") from e
            raise
    return wrapper


class SessionUnitOfWork:
    """Commit/rollback of the request session with the same error translation as the repositories."""

    def __init__(self, db: Session): self.db = db

    @translate_db_errors
    def commit(self) -> None:
        self.db.commit()

    @translate_db_errors
    def rollback(self) -> None:
        self.db.rollback()
