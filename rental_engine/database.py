from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, create_engine, Session
from rental_engine.config import settings


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=False,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout,
            },
        )

        # pysqlite defers BEGIN until the first write, which lets two
        # read-then-write transactions deadlock on lock upgrade. Take the
        # write lock up front so writers queue on the busy timeout instead.
        @event.listens_for(engine, "connect")
        def _sqlite_connect(dbapi_conn, _connection_record):
            dbapi_conn.isolation_level = None
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,      # checks dead connections
        pool_recycle=1800        # refresh every 30 min
    )


engine = build_engine(settings.database_url)


def create_db_and_tables(bind: Engine = None):
    from rental_engine import models  # noqa: F401  registers every table
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session


def is_unique_violation(exc: IntegrityError, column: Optional[str] = None) -> bool:
    """
    True when the driver reports a unique/primary key violation. With
    `column`, only when the message names that column or its constraint.
    """
    orig = getattr(exc, "orig", None)
    if column is not None and column not in str(orig):
        return False
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    if "23505" in (getattr(orig, "pgcode", None), getattr(orig, "sqlstate", None)):
        return True
    return "UNIQUE constraint failed" in str(orig)
