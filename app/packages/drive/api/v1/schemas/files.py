"""文件管理 - 文件/文件夹 操作请求/响应模型。"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import BatchResultOut, ResponseEnvelope


class FolderCreateBody(BaseModel):
    name: str = Field(..., min_length=1)


class MoveBody(BaseModel):
    path: str = Field(..., min_length=1)
    targetFolder: Optional[str] = None  # None 表示移动到工作区根目录


class DeleteBody(BaseModel):
    paths: list[str] = Field(..., min_length=1)


class FileItemOut(BaseModel):
    id: str
    name: str
    originalName: str
    size: int
    type: str
    path: str
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    url: str


class UploadResultOut(BaseModel):
    items: list[FileItemOut]
    result: BatchResultOut


FolderListResponse = ResponseEnvelope[list[str]]
FolderMutationResponse = ResponseEnvelope[Any]
FilesListResponse = ResponseEnvelope[list[FileItemOut]]
FileItemResponse = ResponseEnvelope[FileItemOut]
UploadResponse = ResponseEnvelope[UploadResultOut]
BatchResponse = ResponseEnvelope[BatchResultOut]
