"""文件操作服务：上传、删除、移动与读取工作区内的文件。"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from app.packages.drive.core.exceptions import ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.services.object_store import ObjectStore
from app.packages.drive.services.registry import (
    FileItem,
    build_metadata,
    guess_content_type,
    to_file_item,
)
from app.packages.drive.services.results import REASON_INVALID, BatchResult
from app.packages.drive.utils.path_utils import (
    basename,
    is_within,
    join_key,
    norm_key,
    sanitize_file_name,
    validate_segment,
)


class FileService:
    def _require_in_workspace(self, workspace_id: str, path: str) -> str:
        key = norm_key(path)
        if not is_within(key, workspace_id):
            raise ValidationError(f"路径不属于当前工作区: {path}", data={"path": path})
        return key

    def _folder_prefix(self, workspace_id: str, folder: Optional[str]) -> str:
        if folder is None or not folder.strip():
            return workspace_id
        return join_key(workspace_id, validate_segment(folder, label="文件夹名称"))

    # ----------------------------
    # 上传
    # ----------------------------
    def upload_file(
        self,
        store: ObjectStore,
        *,
        workspace_id: str,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
        folder: Optional[str] = None,
    ) -> FileItem:
        """上传单个文件。

        存储键由清洗后的文件名生成，同名（清洗后）文件直接覆盖，不追加去重后缀；
        原始文件名写入对象元数据用于展示。
        """
        stored_name = sanitize_file_name(file_name)
        key = join_key(self._folder_prefix(workspace_id, folder), stored_name)
        mime = guess_content_type(file_name, content_type)
        entry = store.put(
            key,
            data,
            content_type=mime,
            metadata=build_metadata(file_name, mime, len(data)),
            overwrite=True,
        )
        logger.info("files.upload workspace=%s key=%s size=%s", workspace_id, key, len(data))
        return to_file_item(store, entry)

    def upload_files(
        self,
        store: ObjectStore,
        *,
        workspace_id: str,
        files: Iterable[Tuple[str, bytes, Optional[str]]],
        folder: Optional[str] = None,
    ) -> Tuple[List[FileItem], BatchResult]:
        uploaded: list[FileItem] = []
        result = BatchResult()
        for file_name, data, content_type in files:
            try:
                item = self.upload_file(
                    store,
                    workspace_id=workspace_id,
                    file_name=file_name,
                    data=data,
                    content_type=content_type,
                    folder=folder,
                )
            except ValidationError as exc:
                result.failure(file_name or "", REASON_INVALID, exc.msg)
                continue
            uploaded.append(item)
            result.success(item.path)
        return uploaded, result

    # ----------------------------
    # 删除 / 移动
    # ----------------------------
    def delete_files(self, store: ObjectStore, *, workspace_id: str, paths: Iterable[str]) -> BatchResult:
        """永久删除一个或多个文件；单个失败不会中断其余删除。"""
        keys = [self._require_in_workspace(workspace_id, p) for p in paths]
        if not keys:
            raise ValidationError("未选择任何文件")
        result = store.remove(keys)
        if result.fail_count:
            logger.warning(
                "files.delete workspace=%s ok=%s failed=%s",
                workspace_id, result.success_count, [o.key for o in result.failures],
            )
        else:
            logger.info("files.delete workspace=%s count=%s", workspace_id, result.success_count)
        return result

    def move_file(
        self,
        store: ObjectStore,
        *,
        workspace_id: str,
        path: str,
        target_folder: Optional[str] = None,
    ) -> FileItem:
        """将文件移动到目标文件夹（``None`` 表示工作区根目录）。"""
        src = self._require_in_workspace(workspace_id, path)
        dst_dir = self._folder_prefix(workspace_id, target_folder)
        dst = join_key(dst_dir, basename(src))
        if dst != src:
            store.move(src, dst)
            logger.info("files.move workspace=%s %s -> %s", workspace_id, src, dst)
        return to_file_item(store, store.stat(dst))

    def download(self, store: ObjectStore, *, path: str) -> Tuple[bytes, FileItem]:
        key = norm_key(path)
        entry = store.stat(key)
        return store.read(key), to_file_item(store, entry)


file_service = FileService()
