import time
from typing import Iterator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import Settings
from .logging_config import get_logger

logger = get_logger(__name__)


# Columns added to ``users`` after the first release, as (name, SQLite DDL)
_USER_SUBSCRIPTION_COLUMNS = [
    ("plan", "TEXT NOT NULL DEFAULT 'free'"),
    ("is_paid", "BOOLEAN NOT NULL DEFAULT 0"),
    ("trial_start", "DATETIME"),
    ("trial_end", "DATETIME"),
    ("subscription_type", "TEXT"),
]


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    return _is_sqlite(url) and (url in {"sqlite://", "sqlite:///"} or ":memory:" in url)


class Database:
    """Owns the engine for one running application.

    Created on startup, kept on ``app.state.db`` and disposed on shutdown.
    """

    def __init__(self, settings: Settings):
        self.url = settings.database_url
        if _is_memory_sqlite(self.url):
            # A single shared connection, otherwise every session sees an empty database
            self.engine: Engine = create_engine(
                self.url,
                echo=settings.sql_echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        elif _is_sqlite(self.url):
            self.engine = create_engine(
                self.url,
                echo=settings.sql_echo,
                connect_args={"check_same_thread": False, "timeout": 60},
                poolclass=NullPool,  # avoid multiple pooled connections holding write locks
            )
        else:
            self.engine = create_engine(self.url, echo=settings.sql_echo)

    def session(self) -> Session:
        return Session(self.engine)

    def init_db(self) -> None:
        from .models import budget, category, expense, feature_flag, monthly_budget, user  # noqa: F401

        if _is_sqlite(self.url) and not _is_memory_sqlite(self.url):
            # Configure SQLite pragmas to reduce locking
            try:
                with self.engine.connect() as conn:
                    conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
                    conn.exec_driver_sql("PRAGMA busy_timeout=60000;")
            except OperationalError:
                # The database may be momentarily locked (e.g. during reloader startup)
                logger.warning("Could not set SQLite pragmas", exc_info=True)

        SQLModel.metadata.create_all(self.engine)
        self._migrate_sqlite()
        logger.info("Database ready", extra={"url": self.url.split("@")[-1]})

    def _migrate_sqlite(self) -> None:
        """Add subscription columns to a ``users`` table created by an older release."""
        if not _is_sqlite(self.url):
            return
        try:
            with self.engine.begin() as conn:
                cols = conn.exec_driver_sql("PRAGMA table_info('users');").fetchall()
                col_names = {row[1] for row in cols}  # row[1] is the column name
                for name, ddl in _USER_SUBSCRIPTION_COLUMNS:
                    if name not in col_names:
                        conn.exec_driver_sql(f"ALTER TABLE users ADD COLUMN {name} {ddl}")
                        logger.info("Added column users.%s", name)
        except OperationalError:
            # Best-effort migration; do not block startup if the DB is locked
            logger.warning("Skipped users table migration", exc_info=True)

    def dispose(self) -> None:
        self.engine.dispose()


def get_session(request: Request) -> Iterator[Session]:
    db: Database = request.app.state.db
    with db.session() as session:
        yield session


def commit_with_retry(session: Session, *instances, attempts: int = 3, delay: float = 0.25) -> None:
    """Add ``instances`` and commit, retrying on transient SQLite locks.

    Raises ``OperationalError`` once ``attempts`` are exhausted.
    """
    for attempt in range(attempts):
        try:
            for instance in instances:
                session.add(instance)
            session.commit()
            break
        except OperationalError:
            session.rollback()
            if attempt == attempts - 1:
                raise
            logger.warning("Database busy, retrying commit", extra={"attempt": attempt + 1})
            time.sleep(delay * (attempt + 1))
    for instance in instances:
        session.refresh(instance)
