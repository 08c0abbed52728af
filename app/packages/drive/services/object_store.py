"""对象存储适配层：统一封装本地目录与 S3 兼容存储的按键读写。

对象存储本身没有“目录”概念，键以 '/' 分隔模拟层级：
- ``list`` 只返回一层，子前缀以 ``is_folder=True`` 的条目表示，更深层由调用方递归；
- ``remove`` 逐个路径返回结果，不保证原子性，也不回滚已成功的删除；
- ``move`` 源不存在抛 ``NotFoundError``，目标已存在抛 ``ConflictError``（不覆盖）；
- ``public_url`` 仅做地址推导，不保证可访问性。
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional
from urllib.parse import quote, unquote

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from app.packages.drive.core.config import Settings, get_settings
from app.packages.drive.core.constants import (
    DEFAULT_CONTENT_TYPE,
    FOLDER_MARKER_NAME,
    OBJECT_METADATA_VERSION,
)
from app.packages.drive.core.exceptions import (
    AppException,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.packages.drive.core.logger import logger
from app.packages.drive.services.results import (
    REASON_INVALID,
    REASON_NOT_FOUND,
    REASON_STORAGE,
    BatchResult,
)
from app.packages.drive.utils.path_utils import basename, norm_key


# ------------------------------------------
# 公共数据结构
# ------------------------------------------


class ObjectMetadata(BaseModel):
    """上传时随对象写入的元数据（带版本号）。

    读取时对缺失或格式不一致的字段保持宽容：历史对象或绕过本服务写入的对象
    可能完全没有元数据。
    """

    version: int = OBJECT_METADATA_VERSION
    original_name: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> Optional["ObjectMetadata"]:
        if not raw:
            return None
        lowered = {str(k).lower().replace("_", "").replace("-", ""): v for k, v in raw.items()}

        def _pick(*names: str) -> Any:
            for n in names:
                if lowered.get(n) not in (None, ""):
                    return lowered[n]
            return None

        original_name = _pick("originalname")
        if isinstance(original_name, str):
            original_name = unquote(original_name)
        mime_type = _pick("mimetype", "contenttype")
        size_raw = _pick("sizebytes", "size")
        try:
            size_bytes = int(size_raw) if size_raw is not None else None
        except (TypeError, ValueError):
            size_bytes = None
        try:
            version = int(_pick("version") or OBJECT_METADATA_VERSION)
        except (TypeError, ValueError):
            version = OBJECT_METADATA_VERSION
        if original_name is None and mime_type is None and size_bytes is None:
            return None
        return cls(
            version=version,
            original_name=original_name,
            mime_type=str(mime_type) if mime_type is not None else None,
            size_bytes=size_bytes,
        )

    def to_wire(self) -> dict[str, str]:
        """S3 用户元数据只接受 ASCII 字符串，原始文件名做 URL 编码。"""
        payload = {"version": str(self.version)}
        if self.original_name is not None:
            payload["originalname"] = quote(self.original_name, safe="")
        if self.mime_type is not None:
            payload["mimetype"] = self.mime_type
        if self.size_bytes is not None:
            payload["size"] = str(self.size_bytes)
        return payload


@dataclass
class StoredEntry:
    name: str
    path: str
    is_folder: bool = False
    size: int = 0
    content_type: Optional[str] = None
    metadata: Optional[ObjectMetadata] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_marker(self) -> bool:
        return not self.is_folder and self.name == FOLDER_MARKER_NAME


class ObjectStore:
    """对象存储接口。"""

    bucket: str

    def list(self, prefix: str) -> List[StoredEntry]:
        raise NotImplementedError

    def stat(self, path: str) -> StoredEntry:
        raise NotImplementedError

    def exists(self, path: str) -> bool:
        try:
            self.stat(path)
        except NotFoundError:
            return False
        return True

    def put(
        self,
        path: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
        metadata: Optional[ObjectMetadata] = None,
        overwrite: bool = True,
    ) -> StoredEntry:
        raise NotImplementedError

    def read(self, path: str) -> bytes:
        raise NotImplementedError

    def remove(self, paths: Iterable[str]) -> BatchResult:
        raise NotImplementedError

    def move(self, from_path: str, to_path: str) -> None:
        raise NotImplementedError

    def public_url(self, path: str) -> str:
        raise NotImplementedError


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalObjectStore(ObjectStore):
    """以本地目录模拟对象存储：对象内容位于 objects/，元数据以 JSON 存于 metadata/。

    删除或移动后会向上清理空目录，保证“前缀存在 <=> 至少包含一个对象”。
    """

    def __init__(self, root: str | Path, *, bucket: str = "workspace-files", public_base_url: Optional[str] = None):
        self.bucket = bucket
        self.root = (Path(root) / bucket).resolve()
        self.objects_dir = self.root / "objects"
        self.meta_dir = self.root / "metadata"
        self.public_base_url = (public_base_url or "/api/v1/objects").rstrip("/")
        try:
            self.objects_dir.mkdir(parents=True, exist_ok=True)
            self.meta_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - 极端情况下可能失败
            raise StorageError(f"无法创建本地存储目录: {exc}") from exc

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, key: str) -> Path:
        rel = norm_key(key)
        candidate = (self.objects_dir / rel).resolve()
        try:
            candidate.relative_to(self.objects_dir)
        except ValueError as exc:
            raise ValidationError("非法路径: 越权访问") from exc
        return candidate

    def _meta_path(self, key: str) -> Path:
        return self.meta_dir / f"{norm_key(key)}.json"

    def _read_meta(self, key: str) -> tuple[Optional[ObjectMetadata], Optional[str], Optional[datetime]]:
        meta_file = self._meta_path(key)
        if not meta_file.is_file():
            return None, None, None
        try:
            raw = json.loads(meta_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Unreadable metadata for object %s, ignoring", key)
            return None, None, None
        created_at = None
        if raw.get("createdAt"):
            try:
                created_at = datetime.fromisoformat(raw["createdAt"])
            except ValueError:
                created_at = None
        return ObjectMetadata.from_raw(raw.get("metadata")), raw.get("contentType"), created_at

    def _entry_for(self, key: str, target: Path) -> StoredEntry:
        st = target.stat()
        metadata, content_type, created_at = self._read_meta(key)
        updated_at = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
        return StoredEntry(
            name=target.name,
            path=norm_key(key),
            is_folder=False,
            size=int(st.st_size),
            content_type=content_type,
            metadata=metadata,
            created_at=created_at or updated_at,
            updated_at=updated_at,
        )

    def _prune(self, start: Path, stop: Path) -> None:
        current = start
        while current != stop and stop in current.parents:
            try:
                current.rmdir()
            except OSError:
                return
            current = current.parent

    def list(self, prefix: str) -> List[StoredEntry]:
        base = self._resolve(prefix)
        if not base.is_dir():
            return []
        base_key = norm_key(prefix)
        items: list[StoredEntry] = []
        try:
            for entry in sorted(base.iterdir(), key=lambda p: p.name):
                key = f"{base_key}/{entry.name}" if base_key else entry.name
                if entry.is_dir():
                    items.append(StoredEntry(name=entry.name, path=key, is_folder=True))
                elif entry.is_file():
                    items.append(self._entry_for(key, entry))
        except PermissionError as exc:
            raise StorageError("无法读取目录内容：权限不足") from exc
        return items

    def stat(self, path: str) -> StoredEntry:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError(f"对象不存在: {norm_key(path)}", data={"path": norm_key(path)})
        return self._entry_for(path, target)

    def put(
        self,
        path: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
        metadata: Optional[ObjectMetadata] = None,
        overwrite: bool = True,
    ) -> StoredEntry:
        key = norm_key(path)
        target = self._resolve(key)
        if target.is_dir():
            raise ConflictError(f"目标路径是文件夹: {key}")
        if target.exists() and not overwrite:
            raise ConflictError(f"目标已存在: {key}")
        now = datetime.now(timezone.utc)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(data)
            meta_file = self._meta_path(key)
            meta_file.parent.mkdir(parents=True, exist_ok=True)
            meta_file.write_text(
                json.dumps(
                    {
                        "contentType": content_type or DEFAULT_CONTENT_TYPE,
                        "createdAt": now.isoformat(),
                        "metadata": metadata.model_dump() if metadata else None,
                    },
                    ensure_ascii=False,
                ),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.exception("Local put failed: %s", key)
            raise StorageError(f"写入失败: {key}") from exc
        return self._entry_for(key, target)

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError(f"对象不存在: {norm_key(path)}", data={"path": norm_key(path)})
        return target.read_bytes()

    def remove(self, paths: Iterable[str]) -> BatchResult:
        result = BatchResult()
        for raw in paths:
            key = norm_key(raw)
            try:
                target = self._resolve(key)
            except AppException as exc:
                result.failure(key, REASON_INVALID, exc.msg)
                continue
            if not target.is_file():
                result.failure(key, REASON_NOT_FOUND, "对象不存在")
                continue
            try:
                target.unlink()
                meta_file = self._meta_path(key)
                if meta_file.exists():
                    meta_file.unlink()
                    self._prune(meta_file.parent, self.meta_dir)
                self._prune(target.parent, self.objects_dir)
                result.success(key)
            except OSError as exc:
                logger.exception("Local remove failed: %s", key)
                result.failure(key, REASON_STORAGE, str(exc))
        return result

    def move(self, from_path: str, to_path: str) -> None:
        src_key, dst_key = norm_key(from_path), norm_key(to_path)
        src = self._resolve(src_key)
        dst = self._resolve(dst_key)
        if not src.is_file():
            raise NotFoundError(f"源对象不存在: {src_key}", data={"path": src_key})
        if dst.exists():
            raise ConflictError(f"目标已存在: {dst_key}", data={"path": dst_key})
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            os.replace(src, dst)
            src_meta, dst_meta = self._meta_path(src_key), self._meta_path(dst_key)
            if src_meta.exists():
                dst_meta.parent.mkdir(parents=True, exist_ok=True)
                os.replace(src_meta, dst_meta)
                self._prune(src_meta.parent, self.meta_dir)
            self._prune(src.parent, self.objects_dir)
        except OSError as exc:
            logger.exception("Local move failed: %s -> %s", src_key, dst_key)
            raise StorageError(f"移动失败: {src_key}") from exc

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(norm_key(path))}"


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _is_not_found(exc: ClientError) -> bool:
    return _error_code(exc) in {"404", "NoSuchKey", "NotFound"}


class S3ObjectStore(ObjectStore):
    def __init__(
        self,
        *,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client: Any = None,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    def _head(self, key: str) -> dict:
        try:
            return self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_not_found(exc):
                raise NotFoundError(f"对象不存在: {key}", data={"path": key}) from exc
            raise StorageError(f"读取对象信息失败: {key}") from exc

    def _entry_from_head(self, key: str, head: dict) -> StoredEntry:
        modified = head.get("LastModified")
        return StoredEntry(
            name=basename(key),
            path=key,
            size=int(head.get("ContentLength") or 0),
            content_type=head.get("ContentType"),
            metadata=ObjectMetadata.from_raw(head.get("Metadata")),
            created_at=modified,
            updated_at=modified,
        )

    def list(self, prefix: str) -> List[StoredEntry]:
        base = norm_key(prefix)
        s3_prefix = f"{base}/" if base else ""
        paginator = self._client.get_paginator("list_objects_v2")
        items: list[StoredEntry] = []
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=s3_prefix, Delimiter="/"):
                for common in page.get("CommonPrefixes", []):  # folders
                    name = common.get("Prefix", "")[len(s3_prefix):].rstrip("/")
                    if name:
                        items.append(StoredEntry(name=name, path=f"{s3_prefix}{name}", is_folder=True))
                for content in page.get("Contents", []):  # files at this level
                    key = content.get("Key") or ""
                    name = key[len(s3_prefix):]
                    if not name or "/" in name:
                        continue
                    # list 不返回用户元数据，需逐个 head 补齐
                    head = self._head(key)
                    items.append(self._entry_from_head(key, head))
        except ClientError as exc:
            raise StorageError(f"列举对象失败: {s3_prefix}") from exc
        items.sort(key=lambda e: e.name)
        return items

    def stat(self, path: str) -> StoredEntry:
        key = norm_key(path)
        return self._entry_from_head(key, self._head(key))

    def put(
        self,
        path: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
        metadata: Optional[ObjectMetadata] = None,
        overwrite: bool = True,
    ) -> StoredEntry:
        key = norm_key(path)
        if not overwrite and self.exists(key):
            raise ConflictError(f"目标已存在: {key}")
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or DEFAULT_CONTENT_TYPE,
                Metadata=metadata.to_wire() if metadata else {},
            )
        except (ClientError, BotoCoreError) as exc:
            logger.exception("S3 put failed: %s", key)
            raise StorageError(f"写入失败: {key}") from exc
        return self.stat(key)

    def read(self, path: str) -> bytes:
        key = norm_key(path)
        try:
            resp = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_not_found(exc):
                raise NotFoundError(f"对象不存在: {key}", data={"path": key}) from exc
            raise StorageError(f"读取失败: {key}") from exc
        return resp["Body"].read()

    def remove(self, paths: Iterable[str]) -> BatchResult:
        result = BatchResult()
        existing: list[str] = []
        # S3 删除不存在的键也会返回成功，先逐个确认以便区分并发删除造成的缺失
        for raw in paths:
            key = norm_key(raw)
            try:
                self._head(key)
            except NotFoundError:
                result.failure(key, REASON_NOT_FOUND, "对象不存在")
                continue
            except StorageError as exc:
                result.failure(key, REASON_STORAGE, exc.msg)
                continue
            existing.append(key)

        for i in range(0, len(existing), 1000):
            batch = existing[i : i + 1000]
            try:
                resp = self._client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": False},
                )
            except (ClientError, BotoCoreError) as exc:
                logger.exception("S3 batch delete failed (%s keys)", len(batch))
                for k in batch:
                    result.failure(k, REASON_STORAGE, str(exc))
                continue
            errors = {e.get("Key"): e for e in resp.get("Errors", [])}
            for k in batch:
                if k in errors:
                    result.failure(k, REASON_STORAGE, errors[k].get("Message") or errors[k].get("Code"))
                else:
                    result.success(k)
        return result

    def move(self, from_path: str, to_path: str) -> None:
        src_key, dst_key = norm_key(from_path), norm_key(to_path)
        self._head(src_key)
        if self.exists(dst_key):
            raise ConflictError(f"目标已存在: {dst_key}", data={"path": dst_key})
        try:
            self._client.copy_object(
                Bucket=self.bucket,
                Key=dst_key,
                CopySource={"Bucket": self.bucket, "Key": src_key},
                MetadataDirective="COPY",
            )
            self._client.delete_object(Bucket=self.bucket, Key=src_key)
        except ClientError as exc:
            if _is_not_found(exc):
                raise NotFoundError(f"源对象不存在: {src_key}", data={"path": src_key}) from exc
            logger.exception("S3 move failed: %s -> %s", src_key, dst_key)
            raise StorageError(f"移动失败: {src_key}") from exc

    def public_url(self, path: str) -> str:
        key = quote(norm_key(path))
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region or 'us-east-1'}.amazonaws.com/{key}"


def build_object_store(settings: Optional[Settings] = None) -> ObjectStore:
    settings = settings or get_settings()
    t = (settings.storage_backend or "").upper()
    if t == "LOCAL":
        return LocalObjectStore(
            settings.local_storage_directory,
            bucket=settings.storage_bucket,
            public_base_url=settings.public_base_url or f"{settings.api_v1_str}/objects",
        )
    if t == "S3":
        if not settings.storage_bucket:
            raise AppException("S3 配置不完整：缺少 bucket", 500)
        return S3ObjectStore(
            bucket=settings.storage_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            public_base_url=settings.public_base_url,
        )
    raise AppException(f"不支持的存储类型: {settings.storage_backend}", 500)
