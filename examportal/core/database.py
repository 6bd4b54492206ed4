import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


class Database:
    """Store handle with an explicit connect/disconnect lifecycle.

    One instance per process, built by the application lifespan and passed to
    request handlers through ``get_db``.
    """

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        self.engine_kwargs = engine_kwargs
        self.engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None

    def connect(self) -> None:
        if self.engine is not None:
            return
        self.engine = create_engine(self.url, future=True, pool_pre_ping=True, **self.engine_kwargs)
        self._sessionmaker = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, future=True)
        logger.info(f"Database engine created for {self.engine.url.render_as_string(hide_password=True)}")

    def disconnect(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._sessionmaker = None
        logger.info("Database engine disposed")

    def create_all(self) -> None:
        """Create tables from the ORM metadata. Production schemas are managed externally."""
        from examportal.models.orm import Base
        Base.metadata.create_all(self.engine)

    def session(self) -> Session:
        if self._sessionmaker is None:
            raise RuntimeError("Database is not connected")
        return self._sessionmaker()

    def ping(self) -> bool:
        with self.session() as db:
            db.execute(text("SELECT 1"))
        return True


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or nothing."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_db(request: Request):
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
