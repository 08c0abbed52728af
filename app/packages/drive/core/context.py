"""工作区上下文：显式描述当前请求所属的工作区。

路由通过 ``Depends(get_workspace_context)`` 获得上下文对象并逐层传递给服务层；
同时写入 ContextVar 以便日志等横切逻辑读取，并通知已注册的订阅者。
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Callable, List, Optional

from app.packages.drive.core.constants import TRASH_ROOT
from app.packages.drive.core.exceptions import ValidationError
from app.packages.drive.core.logger import get_request_id
from app.packages.drive.utils.path_utils import validate_segment


@dataclass(frozen=True)
class WorkspaceContext:
    workspace_id: str
    request_id: Optional[str] = None


ContextListener = Callable[[Optional[WorkspaceContext]], None]

_context_ctx: ContextVar[Optional[WorkspaceContext]] = ContextVar("workspace_context", default=None)
_listeners: List[ContextListener] = []


def subscribe(listener: ContextListener) -> Callable[[], None]:
    """注册上下文变更回调，返回取消订阅函数。"""
    _listeners.append(listener)

    def _unsubscribe() -> None:
        if listener in _listeners:
            _listeners.remove(listener)

    return _unsubscribe


def set_context(context: Optional[WorkspaceContext]) -> None:
    _context_ctx.set(context)
    for listener in list(_listeners):
        listener(context)


def get_context() -> Optional[WorkspaceContext]:
    return _context_ctx.get()


def build_context(workspace_id: str) -> WorkspaceContext:
    """校验工作区 ID 并构造上下文（ID 作为存储前缀，不允许包含路径分隔符）。"""
    ws = validate_segment(workspace_id, label="工作区 ID")
    if ws == TRASH_ROOT:
        raise ValidationError(f"工作区 ID 不能为保留名称: {ws}")
    context = WorkspaceContext(workspace_id=ws, request_id=get_request_id())
    set_context(context)
    return context
