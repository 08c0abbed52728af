"""文件登记：文件的展示信息随对象元数据保存，而不是单独的数据库表。

上传时写入 ``originalName``/``mimeType``/``size``；读取时缺失元数据按
大小 0、类型 ``application/octet-stream``、名称取存储键降级处理。
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from app.packages.drive.core.constants import DEFAULT_CONTENT_TYPE
from app.packages.drive.core.timezone import isoformat
from app.packages.drive.services.object_store import ObjectMetadata, ObjectStore, StoredEntry


@dataclass
class FileItem:
    id: str
    name: str
    original_name: str
    size: int
    type: str
    path: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "originalName": self.original_name,
            "size": self.size,
            "type": self.type,
            "path": self.path,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "url": self.url,
        }


def guess_content_type(file_name: str, declared: Optional[str] = None) -> str:
    if declared and declared.strip():
        return declared.strip()
    mime, _ = mimetypes.guess_type(file_name or "")
    return mime or DEFAULT_CONTENT_TYPE


def build_metadata(original_name: str, content_type: str, size: int) -> ObjectMetadata:
    return ObjectMetadata(original_name=original_name, mime_type=content_type, size_bytes=size)


def to_file_item(store: ObjectStore, entry: StoredEntry) -> FileItem:
    """把存储条目转换为界面展示用的文件项。``name`` 为原始文件名，``original_name`` 为存储键名。"""
    meta = entry.metadata
    display_name = (meta.original_name if meta and meta.original_name else None) or entry.name
    size = meta.size_bytes if meta and meta.size_bytes is not None else 0
    content_type = (meta.mime_type if meta and meta.mime_type else None) or DEFAULT_CONTENT_TYPE
    return FileItem(
        id=entry.path,
        name=display_name,
        original_name=entry.name,
        size=int(size),
        type=content_type,
        path=entry.path,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
        url=store.public_url(entry.path),
    )
