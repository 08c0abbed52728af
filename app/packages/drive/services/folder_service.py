"""文件夹模拟层：以“前缀 + .keep 占位对象”在对象存储上模拟文件夹。

- 文件夹存在 <=> 列举其前缀至少返回一个条目（占位对象或任意后代文件）；
- 创建即写入 ``{ws}/{name}/.keep``，重复创建等同覆盖占位对象；
- 删除分两阶段：先完整枚举子树，再一次性批量删除，逐个路径返回结果。
"""

from __future__ import annotations

from typing import List, Optional

from app.packages.drive.core.constants import FOLDER_MARKER_NAME
from app.packages.drive.core.exceptions import NotFoundError
from app.packages.drive.core.logger import logger
from app.packages.drive.services.object_store import ObjectStore, StoredEntry
from app.packages.drive.services.registry import FileItem, to_file_item
from app.packages.drive.services.results import (
    REASON_ALREADY_ABSENT,
    REASON_NOT_FOUND,
    BatchResult,
)
from app.packages.drive.utils.path_utils import join_key, validate_segment


class FolderService:
    # ----------------------------
    # 文件夹
    # ----------------------------
    def list_folders(self, store: ObjectStore, *, workspace_id: str) -> List[str]:
        entries = store.list(workspace_id)
        return sorted(e.name for e in entries if e.is_folder)

    def create_folder(self, store: ObjectStore, *, workspace_id: str, name: str) -> str:
        folder = validate_segment(name, label="文件夹名称")
        marker = join_key(workspace_id, folder, FOLDER_MARKER_NAME)
        store.put(marker, b"", content_type="text/plain", overwrite=True)
        logger.info("folders.create workspace=%s folder=%s", workspace_id, folder)
        return folder

    def delete_folder(self, store: ObjectStore, *, workspace_id: str, name: str) -> BatchResult:
        folder = validate_segment(name, label="文件夹名称")
        prefix = join_key(workspace_id, folder)

        # 阶段一：枚举全部后代对象（含嵌套占位对象）
        keys = [e.path for e in self.walk(store, prefix) if not e.is_folder]
        if not keys:
            raise NotFoundError(f"文件夹不存在: {folder}", data={"path": prefix})
        marker = join_key(prefix, FOLDER_MARKER_NAME)
        if marker not in keys:
            keys.append(marker)

        # 阶段二：批量删除；并发删除导致的缺失视为已完成
        removed = store.remove(keys)
        result = BatchResult()
        for outcome in removed.items:
            if outcome.ok:
                result.success(outcome.key)
            elif outcome.reason == REASON_NOT_FOUND:
                result.success(outcome.key, reason=REASON_ALREADY_ABSENT)
            else:
                result.add(outcome)
        if result.fail_count:
            logger.warning(
                "folders.delete partially failed workspace=%s folder=%s failed=%s",
                workspace_id, folder, [o.key for o in result.failures],
            )
        else:
            logger.info("folders.delete workspace=%s folder=%s objects=%s", workspace_id, folder, len(keys))
        return result

    # ----------------------------
    # 文件列表
    # ----------------------------
    def walk(self, store: ObjectStore, prefix: str) -> List[StoredEntry]:
        """逐层列举前缀下的全部条目（先序），子文件夹条目本身也会返回。"""
        collected: list[StoredEntry] = []
        for entry in store.list(prefix):
            collected.append(entry)
            if entry.is_folder:
                collected.extend(self.walk(store, entry.path))
        return collected

    def list_files(
        self,
        store: ObjectStore,
        *,
        workspace_id: str,
        folder: Optional[str] = None,
        recursive: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> List[FileItem]:
        """列出文件（跳过占位对象）。

        未指定 ``folder`` 时默认递归整个工作区；指定 ``folder`` 时默认只列该层。
        ``search`` 按展示名称做不区分大小写的包含匹配。
        """
        if folder is None:
            prefix = workspace_id
            deep = True if recursive is None else recursive
        else:
            prefix = join_key(workspace_id, validate_segment(folder, label="文件夹名称"))
            deep = False if recursive is None else recursive

        entries = self.walk(store, prefix) if deep else store.list(prefix)
        items = [to_file_item(store, e) for e in entries if not e.is_folder and not e.is_marker]

        needle = (search or "").strip().lower()
        if needle:
            items = [it for it in items if needle in it.name.lower()]
        return items


folder_service = FolderService()
