from __future__ import annotations

import datetime as dt
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from nachweis_api import models
from nachweis_api.database import get_db
from nachweis_api.main import app


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(scope="function")
def plain_session() -> Generator[Session, None, None]:
    """Stand-alone in-memory database for tests that need a real rollback."""

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    models.Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(scope="function")
def users(session: Session) -> Dict[str, int]:
    people = {
        "azubi": models.User(username="lena", name="Lena Azubi", role=models.Role.AZUBI.value),
        "azubi2": models.User(username="tom", name="Tom Azubi", role=models.Role.AZUBI.value),
        "trainer": models.User(username="meier", name="Frau Meier", role=models.Role.AUSBILDER.value),
        "trainer2": models.User(username="schulz", name="Herr Schulz", role=models.Role.AUSBILDER.value),
        "admin": models.User(username="admin", name="Admin", role=models.Role.ADMIN.value),
    }
    session.add_all(people.values())
    session.commit()
    return {key: user.id for key, user in people.items()}


@pytest.fixture(scope="function")
def client(session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def sample_week() -> dt.date:
    return dt.date(2024, 3, 4)


@pytest.fixture()
def as_user(users: Dict[str, int]) -> Callable[[str], Dict[str, str]]:
    def _headers(key: str) -> Dict[str, str]:
        return {"X-User-Id": str(users[key])}

    return _headers


@pytest.fixture()
def record_payload(users: Dict[str, int], sample_week: dt.date) -> Callable[..., dict]:
    def _payload(number: int, trainer: str = "trainer", week_start: Optional[dt.date] = None, **extra) -> dict:
        week_start = week_start or sample_week
        payload = {
            "number": number,
            "periodStart": week_start.isoformat(),
            "periodEnd": (week_start + dt.timedelta(days=4)).isoformat(),
            "trainerId": users[trainer],
            "activities": [
                {"day": "TUESDAY", "slot": 1, "section": "Schule", "description": "Berufsschule", "hours": 6},
                {"day": "MONDAY", "slot": 2, "section": "Meeting", "description": "Daily", "hours": 0.5},
                {"day": "MONDAY", "slot": 1, "section": "Entwickeln", "description": "API-Integration und Testing", "hours": 3},
            ],
        }
        payload.update(extra)
        return payload

    return _payload
