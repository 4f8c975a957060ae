from dataclasses import dataclass, field
from typing import Any, Dict, List, Set
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from routers import rate_limit
from routers.cleanup import get_object_store
from services.object_store import ObjectStore, StoredObject


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


class FakeObjectStore(ObjectStore):
    """In-memory store with Cloudinary's plain `startswith` prefix matching."""

    def __init__(self):
        self.objects: Dict[str, str] = {}
        self.failing: Set[str] = set()
        self.deleted: List[str] = []
        self.deleted_folders: List[str] = []
        self.list_calls: List[str] = []

    def put(self, public_id: str, resource_type: str = "image") -> None:
        self.objects[public_id] = resource_type

    async def list_objects(self, prefix: str) -> List[StoredObject]:
        self.list_calls.append(prefix)
        return [
            StoredObject(public_id=public_id, resource_type=resource_type)
            for public_id, resource_type in sorted(self.objects.items())
            if public_id.startswith(prefix)
        ]

    async def delete_object(self, obj: StoredObject) -> bool:
        if obj.public_id in self.failing:
            raise RuntimeError(f"destroy failed for {obj.public_id}")
        self.objects.pop(obj.public_id, None)
        self.deleted.append(obj.public_id)
        return True

    async def delete_folder(self, folder: str) -> None:
        if any(public_id.startswith(f"{folder}/") for public_id in self.objects):
            raise RuntimeError("Folder is not empty")
        self.deleted_folders.append(folder)


@dataclass
class ApiHarness:
    client: AsyncClient
    session_maker: async_sessionmaker
    store: FakeObjectStore
    dispatch: MagicMock
    extras: Dict[str, Any] = field(default_factory=dict)

    async def add(self, *rows) -> None:
        async with self.session_maker() as session:
            session.add_all(rows)
            await session.commit()

    async def get(self, model, ident):
        async with self.session_maker() as session:
            return await session.get(model, ident)

    async def all(self, statement):
        async with self.session_maker() as session:
            result = await session.execute(statement)
            return result.scalars().all()


@pytest_asyncio.fixture
async def api(tmp_path):
    db_path = tmp_path / "assignly.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    store = FakeObjectStore()

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: store
    with patch("routers.orders.dispatch_file_cleanup") as dispatch:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield ApiHarness(client=client, session_maker=session_maker, store=store, dispatch=dispatch)

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_object_store, None)
    await engine.dispose()
