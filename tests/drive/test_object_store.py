"""对象存储适配层测试：本地实现与基于伪 S3 客户端的 S3 实现。"""

import io
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from app.packages.drive.core.exceptions import ConflictError, NotFoundError
from app.packages.drive.services.object_store import (
    LocalObjectStore,
    ObjectMetadata,
    S3ObjectStore,
)
from app.packages.drive.services.results import REASON_NOT_FOUND


def _meta(name: str, size: int, mime: str = "text/plain") -> ObjectMetadata:
    return ObjectMetadata(original_name=name, mime_type=mime, size_bytes=size)


# ------------------------------------------
# LOCAL
# ------------------------------------------


def test_local_put_overwrites_and_keeps_latest_metadata(store: LocalObjectStore):
    store.put("ws/a.txt", b"one", content_type="text/plain", metadata=_meta("a v1.txt", 3))
    entry = store.put("ws/a.txt", b"second", content_type="text/plain", metadata=_meta("a v2.txt", 6))

    assert entry.metadata.original_name == "a v2.txt"
    assert store.read("ws/a.txt") == b"second"
    assert [e.name for e in store.list("ws")] == ["a.txt"]


def test_local_put_without_overwrite_conflicts(store: LocalObjectStore):
    store.put("ws/a.txt", b"one")
    with pytest.raises(ConflictError):
        store.put("ws/a.txt", b"two", overwrite=False)


def test_local_list_returns_a_single_level(store: LocalObjectStore):
    store.put("ws/root.txt", b"r")
    store.put("ws/docs/.keep", b"")
    store.put("ws/docs/nested/deep.txt", b"d")

    top = store.list("ws")
    assert [(e.name, e.is_folder) for e in top] == [("docs", True), ("root.txt", False)]
    docs = store.list("ws/docs")
    assert [(e.name, e.is_folder) for e in docs] == [(".keep", False), ("nested", True)]
    assert docs[0].is_marker
    assert store.list("ws/missing") == []


def test_local_missing_metadata_is_tolerated(store: LocalObjectStore):
    target = store.objects_dir / "ws" / "raw.bin"
    target.parent.mkdir(parents=True)
    target.write_bytes(b"xyz")

    entry = store.stat("ws/raw.bin")
    assert entry.metadata is None
    assert entry.size == 3


def test_local_move_refuses_to_overwrite(store: LocalObjectStore):
    store.put("ws/a.txt", b"a")
    store.put("ws/docs/a.txt", b"other")

    with pytest.raises(ConflictError):
        store.move("ws/a.txt", "ws/docs/a.txt")
    assert store.read("ws/a.txt") == b"a"
    assert store.read("ws/docs/a.txt") == b"other"

    with pytest.raises(NotFoundError):
        store.move("ws/nope.txt", "ws/docs/nope.txt")


def test_local_move_carries_metadata_and_prunes_empty_prefix(store: LocalObjectStore):
    store.put("ws/docs/a.txt", b"a", metadata=_meta("A.txt", 1))
    store.move("ws/docs/a.txt", "trash/ws/1_a.txt")

    assert store.stat("trash/ws/1_a.txt").metadata.original_name == "A.txt"
    assert store.list("ws/docs") == []
    assert not store.exists("ws/docs/a.txt")


def test_local_remove_reports_each_path(store: LocalObjectStore):
    store.put("ws/a.txt", b"a")
    store.put("ws/b.txt", b"b")

    result = store.remove(["ws/a.txt", "ws/b.txt", "ws/ghost.txt"])

    assert result.success_count == 2
    assert result.fail_count == 1
    assert result.failures[0].key == "ws/ghost.txt"
    assert result.failures[0].reason == REASON_NOT_FOUND
    assert store.list("ws") == []


def test_local_public_url_is_derived(store: LocalObjectStore):
    assert store.public_url("ws/My File.txt") == "/api/v1/objects/ws/My%20File.txt"


# ------------------------------------------
# S3（伪客户端）
# ------------------------------------------


def _not_found(op: str) -> ClientError:
    return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, op)


class _Paginator:
    def __init__(self, objects: dict):
        self.objects = objects

    def paginate(self, Bucket, Prefix, Delimiter):
        prefixes, contents = set(), []
        for key in sorted(self.objects):
            if not key.startswith(Prefix):
                continue
            rest = key[len(Prefix):]
            if Delimiter in rest:
                prefixes.add(Prefix + rest.split(Delimiter, 1)[0] + Delimiter)
            else:
                contents.append({"Key": key})
        yield {"CommonPrefixes": [{"Prefix": p} for p in sorted(prefixes)], "Contents": contents}


class FakeS3Client:
    """只实现适配层用到的少量 S3 接口。"""

    def __init__(self):
        self.objects: dict[str, dict] = {}

    def put_object(self, Bucket, Key, Body, ContentType, Metadata):
        self.objects[Key] = {
            "Body": Body,
            "ContentType": ContentType,
            "Metadata": dict(Metadata),
            "LastModified": datetime.now(timezone.utc),
        }

    def head_object(self, Bucket, Key):
        obj = self.objects.get(Key)
        if obj is None:
            raise _not_found("HeadObject")
        return {
            "ContentLength": len(obj["Body"]),
            "ContentType": obj["ContentType"],
            "Metadata": obj["Metadata"],
            "LastModified": obj["LastModified"],
        }

    def get_object(self, Bucket, Key):
        obj = self.objects.get(Key)
        if obj is None:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        return {"Body": io.BytesIO(obj["Body"])}

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return _Paginator(self.objects)

    def delete_objects(self, Bucket, Delete):
        for item in Delete["Objects"]:
            self.objects.pop(item["Key"], None)
        return {"Deleted": Delete["Objects"]}

    def copy_object(self, Bucket, Key, CopySource, MetadataDirective):
        self.objects[Key] = dict(self.objects[CopySource["Key"]])

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)


@pytest.fixture()
def s3_store() -> S3ObjectStore:
    return S3ObjectStore(bucket="files", region="eu-west-1", client=FakeS3Client())


def test_s3_metadata_round_trips_non_ascii_names(s3_store: S3ObjectStore):
    s3_store.put("ws/report.pdf", b"%PDF", content_type="application/pdf", metadata=_meta("季度 报告.pdf", 4, "application/pdf"))

    wire = s3_store._client.objects["ws/report.pdf"]["Metadata"]
    assert all(v.isascii() for v in wire.values())
    entry = s3_store.stat("ws/report.pdf")
    assert entry.metadata.original_name == "季度 报告.pdf"
    assert entry.metadata.size_bytes == 4


def test_s3_list_splits_folders_and_files(s3_store: S3ObjectStore):
    s3_store.put("ws/a.txt", b"a")
    s3_store.put("ws/docs/.keep", b"")
    s3_store.put("ws/docs/b.txt", b"b")

    top = s3_store.list("ws")
    assert [(e.name, e.is_folder) for e in top] == [("a.txt", False), ("docs", True)]
    assert top[1].path == "ws/docs"


def test_s3_remove_classifies_missing_keys(s3_store: S3ObjectStore):
    s3_store.put("ws/a.txt", b"a")

    result = s3_store.remove(["ws/a.txt", "ws/ghost.txt"])

    assert [(o.key, o.status) for o in result.items] == [("ws/ghost.txt", "error"), ("ws/a.txt", "success")]
    assert result.failures[0].reason == REASON_NOT_FOUND


def test_s3_move_conflict_and_success(s3_store: S3ObjectStore):
    s3_store.put("ws/a.txt", b"a")
    s3_store.put("ws/docs/a.txt", b"other")

    with pytest.raises(ConflictError):
        s3_store.move("ws/a.txt", "ws/docs/a.txt")

    s3_store.move("ws/a.txt", "ws/archive/a.txt")
    assert not s3_store.exists("ws/a.txt")
    assert s3_store.read("ws/archive/a.txt") == b"a"


def test_s3_public_url_prefers_configured_base():
    store = S3ObjectStore(bucket="files", public_base_url="https://cdn.example.com/", client=FakeS3Client())
    assert store.public_url("ws/a b.txt") == "https://cdn.example.com/ws/a%20b.txt"
    default = S3ObjectStore(bucket="files", region="eu-west-1", client=FakeS3Client())
    assert default.public_url("ws/a.txt") == "https://files.s3.eu-west-1.amazonaws.com/ws/a.txt"
