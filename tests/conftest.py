"""Pytest configuration and fixtures

Provides:
- settings: test Settings (in-memory SQLite, fast cache timeouts)
- db: AsyncSession on a fresh in-memory database per test
- redis_client: fakeredis client; cache: CacheLayer on top of it
- switchable_redis / down_cache: a cache whose Redis can be taken offline
- project_service / task_service: services wired to db and cache
- client: httpx AsyncClient bound to the FastAPI app
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("CACHE_CONNECT_ATTEMPTS", "1")

from datetime import datetime, timedelta, timezone  # noqa: E402

from fakeredis import FakeServer  # noqa: E402
from fakeredis import aioredis as fake_aioredis  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from app.cache.layer import CacheLayer  # noqa: E402
from app.core.config import Settings  # noqa: E402
from app.database import build_engine, build_session_factory  # noqa: E402
from app.models import Project, Task  # noqa: E402
from app.repositories.project_repository import ProjectRepository  # noqa: E402
from app.repositories.task_repository import TaskRepository  # noqa: E402
from app.services.project_service import ProjectService  # noqa: E402
from app.services.task_service import TaskService  # noqa: E402


class SwitchableRedis:
    """Wraps a Redis client; while ``down`` every command raises ConnectionError."""

    def __init__(self, inner):
        self.inner = inner
        self.down = False

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if not callable(attr):
            return attr

        async def call(*args, **kwargs):
            if self.down:
                raise RedisConnectionError("emulated outage")
            return await attr(*args, **kwargs)

        return call


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        cache_connect_attempts=1,
        cache_backoff_base_seconds=0,
        cache_timeout_seconds=0.5,
        cache_connect_timeout_seconds=0.5,
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = build_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    async with build_session_factory(engine)() as session:
        yield session


@pytest_asyncio.fixture
async def redis_client():
    client = fake_aioredis.FakeRedis(
        server=FakeServer(), decode_responses=True
    )
    yield client
    await client.flushall()


@pytest_asyncio.fixture
async def cache(settings, redis_client):
    layer = CacheLayer(settings, redis=redis_client)
    await layer.init_cache()
    return layer


@pytest.fixture
def switchable_redis(redis_client):
    return SwitchableRedis(redis_client)


@pytest_asyncio.fixture
async def down_cache(settings, switchable_redis):
    """Connected at startup, then Redis goes away."""
    layer = CacheLayer(settings, redis=switchable_redis)
    await layer.init_cache()
    switchable_redis.down = True
    return layer


def _services(db, cache):
    projects, tasks = ProjectRepository(db), TaskRepository(db)
    return (
        ProjectService(projects, tasks, cache, cache_ttl=600),
        TaskService(tasks, projects, cache, cache_ttl=600),
    )


@pytest.fixture
def project_service(db, cache):
    return _services(db, cache)[0]


@pytest.fixture
def task_service(db, cache):
    return _services(db, cache)[1]


@pytest.fixture
def services_for(db):
    """Build (ProjectService, TaskService) over the test db for any cache."""
    return lambda cache: _services(db, cache)


@pytest.fixture
def make_project(db):
    async def factory(name="Project", offset_minutes=0, **fields):
        fields.setdefault("description", f"{name} description")
        created = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(
            minutes=offset_minutes
        )
        project = Project(name=name, created_at=created, updated_at=created, **fields)
        db.add(project)
        await db.commit()
        await db.refresh(project)
        return project

    return factory


@pytest.fixture
def make_task(db):
    async def factory(project_id, title="Task", offset_minutes=0, **fields):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(
            minutes=offset_minutes
        )
        task = Task(
            title=title,
            project_id=project_id,
            created_at=created,
            updated_at=created,
            **fields,
        )
        db.add(task)
        await db.commit()
        await db.refresh(task)
        return task

    return factory


@pytest_asyncio.fixture
async def client(engine, cache):
    from app.database import get_db
    from app.main import app

    session_factory = build_session_factory(engine)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.cache = cache
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
