"""回收站路由。

工作区内：移入回收站、列表、还原、永久删除、清空；
另提供无参数的过期清理入口，供外部定时任务（cron 等）触发。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope
from app.packages.drive.api.v1.schemas.files import BatchResponse, FileItemResponse
from app.packages.drive.api.v1.schemas.trash import TrashBody, TrashListResponse, TrashMutationResponse
from app.packages.drive.core.constants import HTTP_STATUS_OK
from app.packages.drive.core.context import WorkspaceContext
from app.packages.drive.core.dependencies import get_db, get_object_store, get_workspace_context
from app.packages.drive.core.responses import batch_response, create_response
from app.packages.drive.core.timezone import utcnow
from app.packages.drive.services.object_store import ObjectStore
from app.packages.drive.services.trash_service import serialize_entry, trash_service

router = APIRouter(prefix="/workspaces/{workspace_id}/trash", tags=["trash"])
jobs_router = APIRouter(prefix="/trash", tags=["trash"])


@router.post("", response_model=BatchResponse)
def move_to_trash(
    payload: TrashBody,
    ctx: WorkspaceContext = Depends(get_workspace_context),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    result = trash_service.move_to_trash(db, store, workspace_id=ctx.workspace_id, paths=payload.paths)
    return batch_response("移入回收站", result)


@router.get("", response_model=TrashListResponse)
def list_trash(
    ctx: WorkspaceContext = Depends(get_workspace_context),
    db: Session = Depends(get_db),
):
    now = utcnow()
    entries = trash_service.list_trash(db, workspace_id=ctx.workspace_id)
    return create_response("获取回收站列表成功", [serialize_entry(e, now=now) for e in entries], HTTP_STATUS_OK)


@router.post("/{entry_id}/restore", response_model=FileItemResponse)
def restore_from_trash(
    entry_id: str,
    ctx: WorkspaceContext = Depends(get_workspace_context),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    item = trash_service.restore_from_trash(db, store, workspace_id=ctx.workspace_id, entry_id=entry_id)
    return create_response("文件已还原", item.to_dict(), HTTP_STATUS_OK)


@router.delete("/{entry_id}", response_model=TrashMutationResponse)
def permanently_delete(
    entry_id: str,
    ctx: WorkspaceContext = Depends(get_workspace_context),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    trash_service.permanently_delete(db, store, workspace_id=ctx.workspace_id, entry_id=entry_id)
    return create_response("文件已永久删除", {"id": entry_id}, HTTP_STATUS_OK)


@router.delete("", response_model=BatchResponse)
def empty_trash(
    ctx: WorkspaceContext = Depends(get_workspace_context),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    result = trash_service.empty_trash(db, store, workspace_id=ctx.workspace_id)
    return batch_response("清空回收站", result, key_name="id")


@jobs_router.post("/cleanup", response_model=BatchResponse)
def cleanup_expired(
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    result = trash_service.cleanup_expired(db, store)
    return batch_response("过期清理", result, key_name="id")


@jobs_router.post("/audit", response_model=ResponseEnvelope[dict])
def audit_trash(
    repair: bool = False,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    report = trash_service.audit(db, store, repair=repair)
    return create_response("回收站审计完成", report.to_dict(), HTTP_STATUS_OK)
