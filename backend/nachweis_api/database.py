from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from . import models, services
from .config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = f"sqlite:///{settings.sqlite_path}"

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    future=True,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db() -> Generator[Session, None, None]:
    """Request scoped session; work left uncommitted by a failed request is dropped."""

    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bootstrap_admin: Optional[str] = None) -> None:
    """Create missing tables and, on an empty user table, the first admin."""

    models.Base.metadata.create_all(bind=engine)
    logger.info("Datenbank unter %s bereit", settings.sqlite_path)
    if bootstrap_admin:
        with db_session() as session:
            services.bootstrap_admin(session, bootstrap_admin)
