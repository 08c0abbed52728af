"""回收站请求/响应模型。"""

from typing import Any

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class TrashBody(BaseModel):
    paths: list[str] = Field(..., min_length=1)


class TrashEntryOut(BaseModel):
    id: str
    workspaceId: str
    originalPath: str
    fileName: str
    fileSize: int
    contentType: str
    trashPath: str
    deletedAt: str | None = None
    expiresAt: str | None = None
    daysRemaining: int


TrashListResponse = ResponseEnvelope[list[TrashEntryOut]]
TrashMutationResponse = ResponseEnvelope[Any]
