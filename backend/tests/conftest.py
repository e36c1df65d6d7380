import asyncio
import os
import tempfile

# 在导入 app 之前设置，避免测试写入工作目录
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="trade-orders-logs-"))
os.environ.setdefault("SQLITE_DATABASE_URI", "sqlite:///" + os.path.join(tempfile.mkdtemp(), "unused.db"))
os.environ.setdefault("TARIFF_AUTO_REFRESH_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from app.core.deps import get_db
from app.db.base import Base
from app.db.session import enable_sqlite_foreign_keys
from app import models  # noqa: F401
from app.main import app

API = "/api/v1"


@pytest.fixture
def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    enable_sqlite_foreign_keys(engine)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
def run_db(session_factory):
    """在独立会话中执行 async 函数并提交"""

    def runner(func):
        async def wrapped():
            async with session_factory() as session:
                result = await func(session)
                await session.commit()
                return result

        return asyncio.run(wrapped())

    return runner


@pytest.fixture
def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    # 不进入 lifespan，避免启动调度器和默认数据库
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


def make_item(**overrides):
    item = {
        "product_code": "ST-100",
        "description": "Mens Crew Tee",
        "material": "100% Cotton",
        "collection": "Basics",
        "quantity": 100,
        "customer_unit_price": "10",
        "vendor_unit_price": "6",
        "tariff_rate": "0.1",
    }
    item.update(overrides)
    return item


@pytest.fixture
def create_order(client):
    def factory(items=None, **overrides):
        payload = {
            "vpo_number": "VPO-1001",
            "customer_name": "Acme Retail",
            "supplier_name": "Shanghai Garment Co",
            "supplier_address": "88 Nanjing Rd, Shanghai, China",
            "ship_to": "Acme DC, Los Angeles",
            "items": items if items is not None else [make_item()],
        }
        payload.update(overrides)
        response = client.post(f"{API}/orders/", json=payload)
        assert response.status_code == 200, response.text
        return response.json()

    return factory


@pytest.fixture
def create_container(client):
    def factory(container_no="MSCU1234567", **overrides):
        payload = {"container_no": container_no, "vessel_name": "MSC Aurora"}
        payload.update(overrides)
        response = client.post(f"{API}/logistics/containers", json=payload)
        assert response.status_code == 200, response.text
        return response.json()

    return factory


@pytest.fixture
def trigger(client):
    def factory(order_id, action, **params):
        response = client.post(f"{API}/workflow/orders/{order_id}/trigger", json={"action": action, **params})
        assert response.status_code == 200, response.text
        return response.json()

    return factory


@pytest.fixture
def pay(client):
    def factory(target_type, target_id, amount, **params):
        response = client.post(
            f"{API}/finance/payments",
            json={"target_type": target_type, "target_id": target_id, "amount": str(amount), **params},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return factory


@pytest.fixture
def item_payload():
    return make_item


@pytest.fixture
def fetch_order(client):
    def factory(order_id):
        response = client.get(f"{API}/orders/{order_id}")
        assert response.status_code == 200, response.text
        return response.json()

    return factory
