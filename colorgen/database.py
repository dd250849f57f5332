from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine

    SQLite databases get their parent directory created and are opened with
    check_same_thread=False so worker coroutines and request handlers can share
    the file.
    """
    url = make_url(database_url)
    connect_args = {}

    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(database_url, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine):
    """Create tables that do not exist yet"""
    from . import models  # noqa: F401  (register mappers)

    Base.metadata.create_all(bind=engine)
    logger.info("[DB] Schema ready")


@contextmanager
def session_scope(session_factory: Callable[[], Session]) -> Iterator[Session]:
    """
    One session per unit of work

    Rolls back on any exception and always closes the session. Callers commit
    explicitly (usually through a repository's commit()).
    """
    session = session_factory()
    try:
        yield session
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()
