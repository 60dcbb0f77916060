# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
import os
import tempfile
from typing import AsyncGenerator, Awaitable, Callable

# Configura o ambiente ANTES de importar a app (settings é lido no import)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["DB_CREATE_ALL"] = "false"
os.environ["TIME_SWEEP_INTERVAL_S"] = "0"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="docuflow-uploads-")
os.environ["MAX_UPLOAD_MB"] = "1"

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from app.api.deps import get_db
from app.db.session import build_engine, init_models
from app.main import start_server

"""
Fixtures compartilhadas.


- `engine`: SQLite em memória (StaticPool) com o schema criado a partir do `metadata`.
- `client`: AsyncClient (ASGITransport) com `get_db` apontando para o engine de teste.
- `new_client` / `signup`: clientes extras (um cookie de sessão por usuário) e cadastro rápido.
"""

BASE_URL = "http://testserver"
DEFAULT_PASSWORD = "s3nha-forte"


@pytest_asyncio.fixture
async def engine():
    eng = build_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def new_client(session_factory) -> AsyncGenerator[Callable[[], AsyncClient], None]:
    async def _get_db():
        async with session_factory() as session:
            yield session

    start_server.dependency_overrides[get_db] = _get_db
    clients: list[AsyncClient] = []

    def _make() -> AsyncClient:
        c = AsyncClient(transport=ASGITransport(app=start_server), base_url=BASE_URL)
        clients.append(c)
        return c

    yield _make

    for c in clients:
        await c.aclose()
    start_server.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(new_client) -> AsyncClient:
    return new_client()


@pytest_asyncio.fixture
async def signup() -> Callable[..., Awaitable[dict]]:
    async def _signup(c: AsyncClient, email: str, first_name: str = "Ana", last_name: str = "Souza") -> dict:
        res = await c.post("/api/auth/register", json={
            "email": email,
            "password": DEFAULT_PASSWORD,
            "firstName": first_name,
            "lastName": last_name,
        })
        assert res.status_code == 201, res.text
        return res.json()

    return _signup


@pytest_asyncio.fixture
async def user(client, signup) -> dict:
    return await signup(client, "ana@docuflow.dev")


@pytest_asyncio.fixture
async def crm_project(client, user) -> dict:
    res = await client.post("/api/crm/projects", json={"name": "Website redesign", "projectType": "one_time"})
    assert res.status_code == 201, res.text
    return res.json()
