"""文件夹路由：列举、新建与递归删除工作区内的文件夹。"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.packages.drive.api.v1.schemas.files import (
    BatchResponse,
    FolderCreateBody,
    FolderListResponse,
    FolderMutationResponse,
)
from app.packages.drive.core.constants import HTTP_STATUS_OK
from app.packages.drive.core.context import WorkspaceContext
from app.packages.drive.core.dependencies import get_object_store, get_workspace_context
from app.packages.drive.core.responses import batch_response, create_response
from app.packages.drive.services.folder_service import folder_service
from app.packages.drive.services.object_store import ObjectStore

router = APIRouter(prefix="/workspaces/{workspace_id}/folders", tags=["folders"])


@router.get("", response_model=FolderListResponse)
def list_folders(
    ctx: WorkspaceContext = Depends(get_workspace_context),
    store: ObjectStore = Depends(get_object_store),
):
    folders = folder_service.list_folders(store, workspace_id=ctx.workspace_id)
    return create_response("获取文件夹列表成功", folders, HTTP_STATUS_OK)


@router.post("", response_model=FolderMutationResponse)
def create_folder(
    payload: FolderCreateBody,
    ctx: WorkspaceContext = Depends(get_workspace_context),
    store: ObjectStore = Depends(get_object_store),
):
    name = folder_service.create_folder(store, workspace_id=ctx.workspace_id, name=payload.name)
    return create_response("文件夹创建成功", {"folderName": name}, HTTP_STATUS_OK)


@router.delete("/{name}", response_model=BatchResponse)
def delete_folder(
    name: str,
    ctx: WorkspaceContext = Depends(get_workspace_context),
    store: ObjectStore = Depends(get_object_store),
):
    result = folder_service.delete_folder(store, workspace_id=ctx.workspace_id, name=name)
    return batch_response("文件夹删除", result)
