"""文件路由：列表/搜索、上传、批量永久删除与拖拽移动。"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from app.packages.drive.api.v1.schemas.files import (
    BatchResponse,
    DeleteBody,
    FileItemResponse,
    FilesListResponse,
    MoveBody,
    UploadResponse,
)
from app.packages.drive.core.constants import HTTP_STATUS_OK
from app.packages.drive.core.context import WorkspaceContext
from app.packages.drive.core.dependencies import get_object_store, get_workspace_context
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import batch_response, create_response
from app.packages.drive.services.file_service import file_service
from app.packages.drive.services.folder_service import folder_service
from app.packages.drive.services.object_store import ObjectStore

router = APIRouter(prefix="/workspaces/{workspace_id}/files", tags=["files"])


@router.get("", response_model=FilesListResponse)
def list_files(
    folder: Optional[str] = Query(None, description="文件夹名称；为空时列出整个工作区"),
    recursive: Optional[bool] = Query(None, description="是否递归；默认整个工作区递归、指定文件夹不递归"),
    search: Optional[str] = Query(None),
    ctx: WorkspaceContext = Depends(get_workspace_context),
    store: ObjectStore = Depends(get_object_store),
):
    logger.info("files.list workspace=%s folder=%s recursive=%s", ctx.workspace_id, folder, recursive)
    items = folder_service.list_files(
        store,
        workspace_id=ctx.workspace_id,
        folder=folder,
        recursive=recursive,
        search=search,
    )
    return create_response("获取文件列表成功", [it.to_dict() for it in items], HTTP_STATUS_OK)


@router.post("", response_model=UploadResponse)
async def upload_files(
    folder: Optional[str] = Query(None, description="目标文件夹；为空时上传到工作区根目录"),
    files: list[UploadFile] = File(...),
    ctx: WorkspaceContext = Depends(get_workspace_context),
    store: ObjectStore = Depends(get_object_store),
):
    materials: list[tuple[str, bytes, Optional[str]]] = []
    for up in files:
        content = await up.read()
        materials.append((up.filename or "", content, up.content_type))
    uploaded, result = file_service.upload_files(
        store,
        workspace_id=ctx.workspace_id,
        files=materials,
        folder=folder,
    )
    resp = batch_response("上传", result)
    resp["data"] = {"items": [it.to_dict() for it in uploaded], "result": resp["data"]}
    return resp


@router.delete("", response_model=BatchResponse)
def delete_files(
    payload: DeleteBody,
    ctx: WorkspaceContext = Depends(get_workspace_context),
    store: ObjectStore = Depends(get_object_store),
):
    result = file_service.delete_files(store, workspace_id=ctx.workspace_id, paths=payload.paths)
    return batch_response("删除", result)


@router.post("/move", response_model=FileItemResponse)
def move_file(
    payload: MoveBody,
    ctx: WorkspaceContext = Depends(get_workspace_context),
    store: ObjectStore = Depends(get_object_store),
):
    item = file_service.move_file(
        store,
        workspace_id=ctx.workspace_id,
        path=payload.path,
        target_folder=payload.targetFolder,
    )
    return create_response("文件移动成功", item.to_dict(), HTTP_STATUS_OK)
