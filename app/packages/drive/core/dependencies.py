"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from collections.abc import Generator
from functools import lru_cache

from fastapi import Path
from sqlalchemy.orm import Session

from app.packages.drive.core.context import WorkspaceContext, build_context
from app.packages.drive.db import session as db_session
from app.packages.drive.services.object_store import ObjectStore, build_object_store


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def _default_store() -> ObjectStore:
    return build_object_store()


def get_object_store() -> ObjectStore:
    """返回按配置构建的对象存储（进程内复用同一实例）。"""
    return _default_store()


def get_workspace_context(
    workspace_id: str = Path(..., description="工作区 ID，同时作为存储前缀"),
) -> WorkspaceContext:
    return build_context(workspace_id)
