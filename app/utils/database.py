from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from app.core.config import (
    DATABASE_URL,
    DB_ECHO,
    DB_POOL_SIZE,
    DB_MAX_OVERFLOW,
)


# ---------------------
# SQLAlchemy engine / session / Base
# ---------------------
def build_engine(url: str = DATABASE_URL):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # one shared connection, otherwise every checkout sees an empty DB
            kwargs["poolclass"] = StaticPool

        eng = create_engine(url, echo=DB_ECHO, future=True, **kwargs)

        # pysqlite defers BEGIN until the first DML statement; take control so
        # SELECT ... + UPDATE ... run inside one transaction and SAVEPOINT works
        @event.listens_for(eng, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cur = dbapi_connection.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        @event.listens_for(eng, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return eng

    return create_engine(
        url,
        echo=DB_ECHO,
        pool_pre_ping=True,  # drops dead connections automatically
        pool_size=DB_POOL_SIZE,
        max_overflow=DB_MAX_OVERFLOW,
        future=True,
    )


engine = build_engine()

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
