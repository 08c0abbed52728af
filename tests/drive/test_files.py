"""文件登记与文件操作测试：上传覆盖、批量删除、移动与元数据降级。"""

import pytest

from app.packages.drive.core.constants import DEFAULT_CONTENT_TYPE
from app.packages.drive.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.packages.drive.services.file_service import file_service
from app.packages.drive.services.folder_service import folder_service
from app.packages.drive.services.object_store import LocalObjectStore
from app.packages.drive.services.results import REASON_NOT_FOUND

WS = "ws-files"


def test_upload_stores_sanitized_key_and_original_name(store: LocalObjectStore):
    item = file_service.upload_file(
        store, workspace_id=WS, file_name="My Report (Final)!.pdf", data=b"%PDF-1.7"
    )

    assert item.path == f"{WS}/My_Report__Final__.pdf"
    assert item.name == "My Report (Final)!.pdf"
    assert item.original_name == "My_Report__Final__.pdf"
    assert item.type == "application/pdf"
    assert item.size == 8
    assert item.url.endswith(f"/{WS}/My_Report__Final__.pdf")


def test_names_colliding_after_sanitizing_overwrite_each_other(store: LocalObjectStore):
    file_service.upload_file(store, workspace_id=WS, file_name="a b.txt", data=b"first")
    file_service.upload_file(store, workspace_id=WS, file_name="a(b.txt", data=b"second!")

    items = folder_service.list_files(store, workspace_id=WS)
    assert len(items) == 1
    assert items[0].path == f"{WS}/a_b.txt"
    assert items[0].name == "a(b.txt"
    assert store.read(f"{WS}/a_b.txt") == b"second!"


def test_upload_files_reports_invalid_names_per_item(store: LocalObjectStore):
    uploaded, result = file_service.upload_files(
        store,
        workspace_id=WS,
        files=[("ok.txt", b"1", "text/plain"), (".keep", b"", None)],
        folder="docs",
    )

    assert [it.path for it in uploaded] == [f"{WS}/docs/ok.txt"]
    assert result.success_count == 1
    assert result.fail_count == 1


def test_bulk_delete_keeps_going_after_a_missing_file(store: LocalObjectStore):
    file_service.upload_file(store, workspace_id=WS, file_name="a.txt", data=b"a")
    file_service.upload_file(store, workspace_id=WS, file_name="b.txt", data=b"b")

    result = file_service.delete_files(
        store,
        workspace_id=WS,
        paths=[f"{WS}/a.txt", f"{WS}/missing.txt", f"{WS}/b.txt"],
    )

    assert result.success_count == 2
    assert result.fail_count == 1
    assert result.is_partial_failure
    assert result.failures[0].key == f"{WS}/missing.txt"
    assert result.failures[0].reason == REASON_NOT_FOUND
    assert folder_service.list_files(store, workspace_id=WS) == []


def test_delete_rejects_paths_outside_the_workspace(store: LocalObjectStore):
    with pytest.raises(ValidationError):
        file_service.delete_files(store, workspace_id=WS, paths=["other-ws/a.txt"])
    with pytest.raises(ValidationError):
        file_service.delete_files(store, workspace_id=WS, paths=[])


def test_move_between_folders_and_back_to_root(store: LocalObjectStore):
    folder_service.create_folder(store, workspace_id=WS, name="archive")
    file_service.upload_file(store, workspace_id=WS, file_name="plan.txt", data=b"p")

    moved = file_service.move_file(store, workspace_id=WS, path=f"{WS}/plan.txt", target_folder="archive")
    assert moved.path == f"{WS}/archive/plan.txt"
    assert moved.name == "plan.txt"
    assert not store.exists(f"{WS}/plan.txt")

    back = file_service.move_file(store, workspace_id=WS, path=moved.path, target_folder=None)
    assert back.path == f"{WS}/plan.txt"
    # 占位对象保留，文件夹仍然存在
    assert folder_service.list_folders(store, workspace_id=WS) == ["archive"]


def test_move_to_same_folder_is_a_no_op(store: LocalObjectStore):
    file_service.upload_file(store, workspace_id=WS, file_name="plan.txt", data=b"p")
    item = file_service.move_file(store, workspace_id=WS, path=f"{WS}/plan.txt")
    assert item.path == f"{WS}/plan.txt"


def test_move_never_overwrites_existing_target(store: LocalObjectStore):
    file_service.upload_file(store, workspace_id=WS, file_name="plan.txt", data=b"root", folder=None)
    file_service.upload_file(store, workspace_id=WS, file_name="plan.txt", data=b"nested", folder="archive")

    with pytest.raises(ConflictError):
        file_service.move_file(store, workspace_id=WS, path=f"{WS}/plan.txt", target_folder="archive")
    assert store.read(f"{WS}/archive/plan.txt") == b"nested"


def test_move_missing_file_raises_not_found(store: LocalObjectStore):
    with pytest.raises(NotFoundError):
        file_service.move_file(store, workspace_id=WS, path=f"{WS}/ghost.txt", target_folder="archive")


def test_listing_degrades_when_metadata_is_missing(store: LocalObjectStore):
    target = store.objects_dir / WS / "legacy.dat"
    target.parent.mkdir(parents=True)
    target.write_bytes(b"12345")

    items = folder_service.list_files(store, workspace_id=WS)

    assert len(items) == 1
    assert items[0].name == "legacy.dat"
    assert items[0].size == 0
    assert items[0].type == DEFAULT_CONTENT_TYPE


def test_download_returns_bytes_and_display_info(store: LocalObjectStore):
    file_service.upload_file(store, workspace_id=WS, file_name="hello world.txt", data=b"hi")
    content, item = file_service.download(store, path=f"{WS}/hello_world.txt")
    assert content == b"hi"
    assert item.name == "hello world.txt"
    assert item.type == "text/plain"
