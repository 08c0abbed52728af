"""响应封装：构建系统统一的返回结构。"""

from typing import Any

from app.packages.drive.core.constants import HTTP_STATUS_OK
from app.packages.drive.services.results import BatchResult


def create_response(msg: str, data: Any = None, code: int = HTTP_STATUS_OK) -> dict[str, Any]:
    """按照 ``msg``、``data``、``code`` 组合出统一响应体。"""
    return {"msg": msg, "data": data, "code": code}


def batch_response(action: str, result: BatchResult, *, key_name: str = "path") -> dict[str, Any]:
    """批量操作始终返回逐项结果；部分失败时由前端据此重新拉取列表。"""
    if result.fail_count == 0:
        msg = f"{action}成功"
    elif result.success_count == 0:
        msg = f"{action}失败"
    else:
        msg = f"部分{action}失败：成功 {result.success_count} 项，失败 {result.fail_count} 项"
    return create_response(msg, result.to_dict(key_name), HTTP_STATUS_OK)
