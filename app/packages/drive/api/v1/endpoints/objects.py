"""公共对象访问路由：为 LOCAL 存储提供 ``public_url`` 指向的下载地址。"""

from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.packages.drive.core.dependencies import get_object_store
from app.packages.drive.services.file_service import file_service
from app.packages.drive.services.object_store import ObjectStore

router = APIRouter(prefix="/objects", tags=["objects"])


@router.get("/{path:path}")
def get_object(path: str, store: ObjectStore = Depends(get_object_store)):
    content, item = file_service.download(store, path=path)
    return Response(
        content=content,
        media_type=item.type,
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(item.name)}"},
    )
