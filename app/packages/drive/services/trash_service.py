"""回收站服务：软删除、还原、永久删除与过期清理。

状态流转：Live -> Trashed -> {Restored(回到 Live), Purged(终态)}，还原与清理互斥，先到者生效。

一致性约定（对象存储与 trash_files 表之间没有事务）：
- 软删除先移动对象再插入记录；插入失败时不回滚移动，记录告警并抛出 ``OrphanInconsistency``；
- 清理先删对象再删记录；对象删除失败则保留记录，避免丢失对未删除对象的追踪；
- 还原/清理发现一侧缺失时顺手清理另一侧（仅记录日志，不作为用户可见错误，
  还原时对象缺失仍需返回 ``NotFoundError(object_missing)``）。
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.drive.core.constants import DEFAULT_CONTENT_TYPE, TRASH_RETENTION_DAYS
from app.packages.drive.core.exceptions import (
    AppException,
    ConflictError,
    NotFoundError,
    OrphanInconsistency,
    StorageError,
    ValidationError,
)
from app.packages.drive.core.logger import logger
from app.packages.drive.core.timezone import ensure_utc, isoformat, utcnow
from app.packages.drive.crud.trash_entry import trash_entry_crud
from app.packages.drive.models.trash_entry import TrashEntry
from app.packages.drive.services.folder_service import folder_service
from app.packages.drive.services.object_store import ObjectStore
from app.packages.drive.services.registry import FileItem, to_file_item
from app.packages.drive.services.results import (
    REASON_CONFLICT,
    REASON_DB,
    REASON_INVALID,
    REASON_NOT_FOUND,
    REASON_ORPHANED,
    REASON_STORAGE,
    REASON_UNEXPECTED,
    STATUS_ERROR,
    AuditReport,
    BatchResult,
    ItemOutcome,
)
from app.packages.drive.utils.path_utils import basename, is_within, join_key, norm_key, trash_prefix

_TRASH_NAME = re.compile(r"^\d+_(?:[0-9a-f]{32}_)?(?P<name>.+)$")


def build_trash_path(workspace_id: str, file_name: str, deleted_at: datetime, entry_id: str) -> str:
    """回收站键带上记录 ID：同一毫秒内删除不同文件夹中的同名文件也不会冲突。"""
    ts = int(deleted_at.timestamp() * 1000)
    return join_key(trash_prefix(workspace_id), f"{ts}_{uuid.UUID(entry_id).hex}_{file_name}")


def serialize_entry(entry: TrashEntry, *, now: Optional[datetime] = None) -> dict[str, Any]:
    current = now or utcnow()
    expires_at = ensure_utc(entry.expires_at)
    remaining = max((expires_at - current).days, 0) if expires_at else 0
    return {
        "id": entry.id,
        "workspaceId": entry.workspace_id,
        "originalPath": entry.original_path,
        "fileName": entry.file_name,
        "fileSize": int(entry.file_size or 0),
        "contentType": entry.content_type,
        "trashPath": entry.trash_path,
        "deletedAt": isoformat(entry.deleted_at),
        "expiresAt": isoformat(entry.expires_at),
        "daysRemaining": remaining,
    }


class TrashService:
    # ----------------------------
    # 软删除
    # ----------------------------
    def move_file_to_trash(self, db: Session, store: ObjectStore, *, workspace_id: str, path: str) -> TrashEntry:
        key = norm_key(path)
        if not is_within(key, workspace_id):
            raise ValidationError(f"路径不属于当前工作区: {path}", data={"path": path})

        entry = store.stat(key)
        if entry.is_marker:
            raise ValidationError("文件夹占位对象不能移入回收站", data={"path": key})

        # 移动前快照元数据：记录表不重复保存对象存储中的信息
        meta = entry.metadata
        display_name = (meta.original_name if meta and meta.original_name else None) or entry.name
        size = meta.size_bytes if meta and meta.size_bytes is not None else entry.size
        content_type = (meta.mime_type if meta and meta.mime_type else None) or entry.content_type or DEFAULT_CONTENT_TYPE

        entry_id = str(uuid.uuid4())
        deleted_at = utcnow()
        trash_path = build_trash_path(workspace_id, entry.name, deleted_at, entry_id)
        store.move(key, trash_path)

        try:
            record = trash_entry_crud.create(
                db,
                {
                    "id": entry_id,
                    "workspace_id": workspace_id,
                    "original_path": key,
                    "file_name": display_name,
                    "file_size": int(size or 0),
                    "content_type": content_type,
                    "trash_path": trash_path,
                    "deleted_at": deleted_at,
                    "expires_at": deleted_at + timedelta(days=TRASH_RETENTION_DAYS),
                },
            )
        except SQLAlchemyError as exc:
            logger.warning(
                "trash.orphan object moved without record workspace=%s original=%s trash=%s",
                workspace_id, key, trash_path, exc_info=True,
            )
            raise OrphanInconsistency(
                "文件已移入回收站但记录写入失败，请稍后执行回收站审计修复",
                trash_path=trash_path,
                original_path=key,
            ) from exc

        logger.info("trash.move workspace=%s %s -> %s id=%s", workspace_id, key, trash_path, record.id)
        return record

    def move_to_trash(self, db: Session, store: ObjectStore, *, workspace_id: str, paths: Iterable[str]) -> BatchResult:
        result = BatchResult()
        for path in paths:
            try:
                self.move_file_to_trash(db, store, workspace_id=workspace_id, path=path)
            except OrphanInconsistency as exc:
                result.failure(norm_key(path), REASON_ORPHANED, exc.msg)
            except NotFoundError as exc:
                result.failure(norm_key(path), REASON_NOT_FOUND, exc.msg)
            except ConflictError as exc:
                result.failure(norm_key(path), REASON_CONFLICT, exc.msg)
            except ValidationError as exc:
                result.failure(norm_key(path), REASON_INVALID, exc.msg)
            except StorageError as exc:
                result.failure(norm_key(path), REASON_STORAGE, exc.msg)
            else:
                result.success(norm_key(path))
        return result

    # ----------------------------
    # 查询
    # ----------------------------
    def list_trash(self, db: Session, *, workspace_id: str) -> List[TrashEntry]:
        return trash_entry_crud.list_by_workspace(db, workspace_id=workspace_id)

    def _get_entry(self, db: Session, *, workspace_id: str, entry_id: str) -> TrashEntry:
        record = trash_entry_crud.get_in_workspace(db, workspace_id=workspace_id, id=entry_id)
        if record is None:
            raise NotFoundError("回收站记录不存在", reason=NotFoundError.RECORD_MISSING, data={"id": entry_id})
        return record

    def _drop_record(self, db: Session, record: TrashEntry) -> bool:
        entry_id, trash_path = record.id, record.trash_path
        try:
            trash_entry_crud.hard_delete(db, record)
        except SQLAlchemyError:
            logger.error("trash.record delete failed id=%s trash=%s", entry_id, trash_path, exc_info=True)
            return False
        return True

    # ----------------------------
    # 还原
    # ----------------------------
    def restore_from_trash(self, db: Session, store: ObjectStore, *, workspace_id: str, entry_id: str) -> FileItem:
        record = self._get_entry(db, workspace_id=workspace_id, entry_id=entry_id)
        trash_path, original_path = record.trash_path, record.original_path

        if not store.exists(trash_path):
            logger.warning("trash.orphan record without object id=%s trash=%s, removing record", record.id, trash_path)
            self._drop_record(db, record)
            raise NotFoundError(
                "回收站中的文件已不存在",
                reason=NotFoundError.OBJECT_MISSING,
                data={"id": entry_id, "trashPath": trash_path},
            )

        store.move(trash_path, original_path)
        if not self._drop_record(db, record):
            logger.warning("trash.orphan restored object still has a record id=%s", entry_id)
        logger.info("trash.restore workspace=%s id=%s -> %s", workspace_id, entry_id, original_path)
        return to_file_item(store, store.stat(original_path))

    # ----------------------------
    # 永久删除 / 清理
    # ----------------------------
    def purge(self, db: Session, store: ObjectStore, record: TrashEntry) -> ItemOutcome:
        """删除对象后删除记录；对象删除失败时保留记录。"""
        entry_id, trash_path = record.id, record.trash_path
        removed = store.remove([trash_path]).items[0]
        if not removed.ok:
            if removed.reason != REASON_NOT_FOUND:
                logger.error("trash.purge storage failure id=%s trash=%s: %s", entry_id, trash_path, removed.message)
                return ItemOutcome(key=entry_id, status=STATUS_ERROR, reason=REASON_STORAGE, message=removed.message)
            logger.warning("trash.orphan record without object id=%s trash=%s, removing record", entry_id, trash_path)

        if not self._drop_record(db, record):
            return ItemOutcome(key=entry_id, status=STATUS_ERROR, reason=REASON_DB, message="删除回收站记录失败")
        logger.info("trash.purge id=%s trash=%s", entry_id, trash_path)
        return ItemOutcome(key=entry_id)

    def _purge_safely(self, db: Session, store: ObjectStore, record: TrashEntry) -> ItemOutcome:
        entry_id = record.id
        try:
            return self.purge(db, store, record)
        except Exception as exc:
            # 单条失败不影响批次中的其余条目
            logger.exception("trash.purge unexpected error id=%s", entry_id)
            db.rollback()
            return ItemOutcome(key=entry_id, status=STATUS_ERROR, reason=REASON_UNEXPECTED, message=str(exc))

    def permanently_delete(self, db: Session, store: ObjectStore, *, workspace_id: str, entry_id: str) -> None:
        record = self._get_entry(db, workspace_id=workspace_id, entry_id=entry_id)
        outcome = self.purge(db, store, record)
        if outcome.ok:
            return
        if outcome.reason == REASON_DB:
            raise AppException(outcome.message or "永久删除失败", 500, outcome.to_dict("id"))
        raise StorageError(outcome.message or "永久删除失败", data=outcome.to_dict("id"))

    def empty_trash(self, db: Session, store: ObjectStore, *, workspace_id: str) -> BatchResult:
        result = BatchResult()
        for record in trash_entry_crud.list_by_workspace(db, workspace_id=workspace_id):
            result.add(self._purge_safely(db, store, record))
        return result

    def cleanup_expired(self, db: Session, store: ObjectStore, *, now: Optional[datetime] = None) -> BatchResult:
        """过期清理：对 ``expires_at <= now`` 的记录逐条清理，单条失败继续处理后续条目。"""
        current = now or utcnow()
        expired = trash_entry_crud.list_expired(db, now=current)
        result = BatchResult()
        if not expired:
            logger.info("trash.cleanup no expired items")
            return result

        logger.info("trash.cleanup found %s expired items", len(expired))
        for record in expired:
            result.add(self._purge_safely(db, store, record))
        logger.info("trash.cleanup finished success=%s failed=%s", result.success_count, result.fail_count)
        return result

    # ----------------------------
    # 一致性审计
    # ----------------------------
    def audit(
        self,
        db: Session,
        store: ObjectStore,
        *,
        workspace_id: Optional[str] = None,
        repair: bool = False,
    ) -> AuditReport:
        """比对回收站记录与 trash/ 前缀下的对象。

        ``repair`` 时删除无对象的记录，并为无记录的对象补登记（重新计 30 天有效期），
        使其最终被过期清理回收。
        """
        report = AuditReport()
        records = trash_entry_crud.list_by_workspace(db, workspace_id=workspace_id)
        tracked = {r.trash_path for r in records}

        for record in records:
            if not store.exists(record.trash_path):
                report.dangling_records.append(record.id)
                if repair:
                    if self._drop_record(db, record):
                        report.repaired.success(record.id, reason="record_removed")
                    else:
                        report.repaired.failure(record.id, REASON_DB)

        prefix = trash_prefix(workspace_id)
        for entry in folder_service.walk(store, prefix):
            if entry.is_folder or entry.path in tracked:
                continue
            report.untracked_objects.append(entry.path)
            if repair:
                report.repaired.add(self._register_untracked(db, entry))

        if report.consistent:
            logger.info("trash.audit consistent workspace=%s", workspace_id or "*")
        else:
            logger.warning(
                "trash.audit workspace=%s dangling=%s untracked=%s repaired=%s",
                workspace_id or "*", len(report.dangling_records), len(report.untracked_objects),
                report.repaired.success_count,
            )
        return report

    def _register_untracked(self, db: Session, entry) -> ItemOutcome:
        # trash/{workspace_id}/{ts}_{entry_id_hex}_{name}
        if trash_entry_crud.get_by_trash_path(db, trash_path=entry.path) is not None:
            # 审计快照之后已由并发的软删除补齐记录
            return ItemOutcome(key=entry.path, reason="already_tracked")
        parts = entry.path.split("/")
        if len(parts) < 3:
            return ItemOutcome(key=entry.path, status=STATUS_ERROR, reason=REASON_INVALID, message="无法识别所属工作区")
        workspace_id = parts[1]
        match = _TRASH_NAME.match(basename(entry.path))
        stored_name = match.group("name") if match else basename(entry.path)
        meta = entry.metadata
        now = utcnow()
        try:
            trash_entry_crud.create(
                db,
                {
                    "workspace_id": workspace_id,
                    "original_path": join_key(workspace_id, stored_name),
                    "file_name": (meta.original_name if meta and meta.original_name else None) or stored_name,
                    "file_size": int((meta.size_bytes if meta and meta.size_bytes is not None else entry.size) or 0),
                    "content_type": (meta.mime_type if meta and meta.mime_type else None)
                    or entry.content_type
                    or DEFAULT_CONTENT_TYPE,
                    "trash_path": entry.path,
                    "deleted_at": now,
                    "expires_at": now + timedelta(days=TRASH_RETENTION_DAYS),
                },
            )
        except SQLAlchemyError as exc:
            logger.error("trash.audit failed to register %s", entry.path, exc_info=True)
            return ItemOutcome(key=entry.path, status=STATUS_ERROR, reason=REASON_DB, message=str(exc))
        return ItemOutcome(key=entry.path, reason="record_created")


trash_service = TrashService()
