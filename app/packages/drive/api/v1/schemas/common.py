"""通用响应封装模型。"""

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ResponseEnvelope(BaseModel, Generic[T]):
    """系统统一的响应外层结构。"""

    msg: str
    data: Optional[T] = None
    code: int
    meta: Optional[Dict[str, Any]] = None


class ItemOutcomeOut(BaseModel):
    path: Optional[str] = None
    id: Optional[str] = None
    status: str
    reason: Optional[str] = None
    error: Optional[str] = None


class BatchResultOut(BaseModel):
    processed: int
    successCount: int
    failCount: int
    details: list[ItemOutcomeOut]
