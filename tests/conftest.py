"""测试夹具：为 pytest 提供数据库、本地对象存储与客户端的共享配置。"""

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"

# 在导入应用之前指定测试库，避免模块加载时按默认配置连接 PostgreSQL
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)

from app.main import app  # noqa: E402
from app.packages.drive.core.dependencies import get_db, get_object_store  # noqa: E402
from app.packages.drive.db import session as db_session  # noqa: E402
from app.packages.drive.db.init_db import init_db  # noqa: E402
from app.packages.drive.models.base import Base  # noqa: E402
from app.packages.drive.models.trash_entry import TrashEntry  # noqa: E402
from app.packages.drive.services.object_store import LocalObjectStore  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture(autouse=True)
def clean_trash_table() -> Generator[None, None, None]:
    """每个用例结束后清空回收站记录，保证用例之间互不影响。"""
    yield
    with db_session.SessionLocal() as session:
        session.query(TrashEntry).delete()
        session.commit()


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(tmp_path) -> LocalObjectStore:
    """基于临时目录的本地对象存储。"""
    return LocalObjectStore(tmp_path, bucket="test-bucket")


@pytest.fixture()
def client(store: LocalObjectStore):
    """构建 FastAPI TestClient，并注入测试专用的数据库与存储依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
