"""文件夹模拟层测试：占位对象、递归列举与两阶段删除。"""

import pytest

from app.packages.drive.core.exceptions import NotFoundError, ValidationError
from app.packages.drive.services.file_service import file_service
from app.packages.drive.services.folder_service import folder_service
from app.packages.drive.services.object_store import LocalObjectStore
from app.packages.drive.services.results import REASON_ALREADY_ABSENT, BatchResult

WS = "ws-folders"


def _upload(store, name, folder=None, data=b"data"):
    return file_service.upload_file(store, workspace_id=WS, file_name=name, data=data, folder=folder)


def test_create_then_list_then_delete_round_trip(store: LocalObjectStore):
    folder_service.create_folder(store, workspace_id=WS, name="campaigns")
    assert folder_service.list_folders(store, workspace_id=WS) == ["campaigns"]
    assert store.exists(f"{WS}/campaigns/.keep")

    result = folder_service.delete_folder(store, workspace_id=WS, name="campaigns")

    assert result.fail_count == 0
    assert folder_service.list_folders(store, workspace_id=WS) == []


def test_create_folder_twice_is_idempotent(store: LocalObjectStore):
    folder_service.create_folder(store, workspace_id=WS, name="docs")
    folder_service.create_folder(store, workspace_id=WS, name="docs")
    assert folder_service.list_folders(store, workspace_id=WS) == ["docs"]


@pytest.mark.parametrize("bad", ["", "  ", "a/b", ".keep"])
def test_create_folder_rejects_invalid_names(store: LocalObjectStore, bad):
    with pytest.raises(ValidationError):
        folder_service.create_folder(store, workspace_id=WS, name=bad)


def test_folder_exists_while_it_has_files_even_without_marker(store: LocalObjectStore):
    _upload(store, "brief.txt", folder="implicit")
    assert folder_service.list_folders(store, workspace_id=WS) == ["implicit"]


def test_recursive_listing_skips_markers(store: LocalObjectStore):
    folder_service.create_folder(store, workspace_id=WS, name="docs")
    _upload(store, "root.txt")
    _upload(store, "a.txt", folder="docs")
    store.put(f"{WS}/docs/nested/.keep", b"")
    store.put(f"{WS}/docs/nested/b.txt", b"b")

    everything = folder_service.list_files(store, workspace_id=WS)
    assert sorted(it.path for it in everything) == [
        f"{WS}/docs/a.txt",
        f"{WS}/docs/nested/b.txt",
        f"{WS}/root.txt",
    ]

    one_level = folder_service.list_files(store, workspace_id=WS, folder="docs")
    assert [it.path for it in one_level] == [f"{WS}/docs/a.txt"]

    deep = folder_service.list_files(store, workspace_id=WS, folder="docs", recursive=True)
    assert len(deep) == 2


def test_search_matches_display_names(store: LocalObjectStore):
    _upload(store, "Summer Launch.pdf")
    _upload(store, "notes.txt")

    found = folder_service.list_files(store, workspace_id=WS, search="launch")
    assert [it.name for it in found] == ["Summer Launch.pdf"]


def test_delete_folder_removes_whole_subtree(store: LocalObjectStore):
    folder_service.create_folder(store, workspace_id=WS, name="docs")
    _upload(store, "a.txt", folder="docs")
    store.put(f"{WS}/docs/nested/b.txt", b"b")

    result = folder_service.delete_folder(store, workspace_id=WS, name="docs")

    assert sorted(o.key for o in result.items) == [
        f"{WS}/docs/.keep",
        f"{WS}/docs/a.txt",
        f"{WS}/docs/nested/b.txt",
    ]
    assert store.list(f"{WS}/docs") == []
    assert folder_service.list_files(store, workspace_id=WS) == []


def test_delete_missing_folder_raises_not_found(store: LocalObjectStore):
    with pytest.raises(NotFoundError):
        folder_service.delete_folder(store, workspace_id=WS, name="ghost")


def test_delete_folder_treats_concurrently_removed_objects_as_done(store: LocalObjectStore, monkeypatch):
    folder_service.create_folder(store, workspace_id=WS, name="docs")
    _upload(store, "a.txt", folder="docs")

    original_remove = store.remove

    def remove_after_race(keys):
        # 另一个请求在枚举之后抢先删掉了 a.txt
        store.objects_dir.joinpath(WS, "docs", "a.txt").unlink()
        return original_remove(keys)

    monkeypatch.setattr(store, "remove", remove_after_race)
    result: BatchResult = folder_service.delete_folder(store, workspace_id=WS, name="docs")

    assert result.fail_count == 0
    racing = [o for o in result.items if o.key.endswith("a.txt")][0]
    assert racing.reason == REASON_ALREADY_ABSENT
