"""异常处理模块：定义统一的业务异常与响应格式。

文件存储相关的错误分类：
- ValidationError：输入不合法（空文件夹名、名称包含路径分隔符等），前端就地提示；
- NotFoundError：引用的路径或回收站记录不存在，``reason`` 区分具体原因；
- ConflictError：移动/写入的目标路径已被占用，不做自动合并；
- OrphanInconsistency：回收站记录与对象存储出现分叉（内部错误，需人工或审计任务修复）。

批量操作的部分失败不以异常表达，见 ``services.results.BatchResult``。
"""

from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data

    @property
    def msg(self) -> str:
        return str(self.detail)


class ValidationError(AppException):
    def __init__(self, msg: str, data=None) -> None:
        super().__init__(msg, status.HTTP_400_BAD_REQUEST, data)


class NotFoundError(AppException):
    """目标不存在。``reason`` 取值：record_missing / object_missing / path_missing。"""

    RECORD_MISSING = "record_missing"
    OBJECT_MISSING = "object_missing"
    PATH_MISSING = "path_missing"

    def __init__(self, msg: str, *, reason: str = PATH_MISSING, data: Optional[dict[str, Any]] = None) -> None:
        payload = {"reason": reason}
        if data:
            payload.update(data)
        super().__init__(msg, status.HTTP_404_NOT_FOUND, payload)
        self.reason = reason


class ConflictError(AppException):
    def __init__(self, msg: str, data=None) -> None:
        super().__init__(msg, status.HTTP_409_CONFLICT, data)


class OrphanInconsistency(AppException):
    """对象已移入回收站前缀但未能登记回收站记录。"""

    def __init__(self, msg: str, *, trash_path: str, original_path: str) -> None:
        super().__init__(
            msg,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"reason": "orphaned", "trashPath": trash_path, "originalPath": original_path},
        )
        self.trash_path = trash_path
        self.original_path = original_path


class StorageError(AppException):
    """对象存储调用失败（网络、权限等），原样上抛给前端提示。"""

    def __init__(self, msg: str, data=None) -> None:
        super().__init__(msg, status.HTTP_502_BAD_GATEWAY, data)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = {"msg": exc.detail, "data": getattr(exc, "data", None), "code": exc.status_code}
    return JSONResponse(status_code=exc.status_code, content=payload)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：将未捕获异常转换为标准的 500 响应结构。"""
    payload = {
        "msg": "服务器内部错误",
        "data": None,
        "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
