from __future__ import annotations

import asyncio
import inspect
from typing import Callable, Dict, Generator

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nachweis_api import models
from nachweis_api.database import get_db
from nachweis_api.main import app
from nachweis_client.api_client import ApiClient


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run ``async def`` tests without pytest-asyncio."""
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        kwargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
        asyncio.run(pyfuncitem.obj(**kwargs))
        return True
    return None


@pytest.fixture()
def backend() -> Generator[Dict[str, int], None, None]:
    """Real API on a private in-memory database; yields the seeded user ids."""

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    models.Base.metadata.create_all(bind=engine)
    SessionTesting = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    with SessionTesting() as session:
        people = {
            "azubi": models.User(username="lena", name="Lena Azubi", role=models.Role.AZUBI.value),
            "trainer": models.User(username="meier", name="Frau Meier", role=models.Role.AUSBILDER.value),
            "admin": models.User(username="admin", name="Admin", role=models.Role.ADMIN.value),
        }
        session.add_all(people.values())
        session.commit()
        ids = {key: user.id for key, user in people.items()}

    def override_get_db():
        db = SessionTesting()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield ids
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


@pytest.fixture()
def api_for(backend: Dict[str, int]) -> Callable[[str], ApiClient]:
    def _client(who: str) -> ApiClient:
        return ApiClient(
            "http://testserver",
            user_id=backend[who],
            transport=httpx.ASGITransport(app=app),
        )

    return _client


def mock_api(handler: Callable[[httpx.Request], httpx.Response], user_id: int = 1) -> ApiClient:
    return ApiClient("http://testserver", user_id=user_id, transport=httpx.MockTransport(handler))


@pytest.fixture()
def make_mock_api() -> Callable[..., ApiClient]:
    return mock_api
