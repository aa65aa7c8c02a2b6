"""
Database configuration and session management.

Uses SQLAlchemy 2.x style with DeclarativeBase. Every request gets its own
short-lived session; no key state is cached between requests.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from cardgate.core.config import get_settings

settings = get_settings()

# DATABASE_URL > PG* vars > POSTGRES_* vars > SQLite
database_url = settings.sqlalchemy_database_uri
is_sqlite = database_url.startswith("sqlite")


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """
    Turn on foreign key enforcement for every new SQLite connection.

    SQLite ignores usage_logs.key_id ON DELETE CASCADE unless the pragma is
    set per connection. PostgreSQL enforces it natively.
    """
    @event.listens_for(target, "connect")
    def _set_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_engine(
    database_url,
    pool_pre_ping=not is_sqlite,
    echo=settings.DEBUG,
    connect_args={"check_same_thread": False} if is_sqlite else {},
)

if is_sqlite:
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for all database models using SQLAlchemy 2.x style."""
    pass


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
