from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from lexdesk.core.config import get_settings


def build_engine(database_url: str, echo: bool = False) -> Engine:
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


_settings = get_settings()
engine = build_engine(_settings.database_url, echo=_settings.sql_echo)


def init_db(bind: Engine | None = None) -> None:
    # register every table on SQLModel.metadata
    import lexdesk.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """Commit everything staged inside the block, or roll all of it back."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
