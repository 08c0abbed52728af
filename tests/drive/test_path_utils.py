"""存储键与文件名工具的单元测试。"""

import pytest

from app.packages.drive.core.exceptions import ValidationError
from app.packages.drive.utils.path_utils import (
    basename,
    is_within,
    join_key,
    norm_key,
    sanitize_file_name,
    trash_prefix,
    validate_segment,
)


def test_sanitize_replaces_unsafe_characters():
    """空格、括号、感叹号都应替换为下划线，扩展名保留。"""
    assert sanitize_file_name("My Report (Final)!.pdf") == "My_Report__Final__.pdf"


def test_sanitize_truncates_base_name_but_keeps_extension():
    long_name = "a" * 80 + ".txt"
    assert sanitize_file_name(long_name) == "a" * 50 + ".txt"


def test_sanitize_handles_names_without_extension_and_unicode():
    assert sanitize_file_name("README") == "README"
    assert sanitize_file_name("报告.docx") == "__.docx"


def test_sanitize_strips_client_directories():
    assert sanitize_file_name("C:\\Users\\me\\photo 1.png") == "photo_1.png"


@pytest.mark.parametrize("bad", ["", "   ", ".keep", "."])
def test_sanitize_rejects_unusable_names(bad):
    with pytest.raises(ValidationError):
        sanitize_file_name(bad)


def test_key_helpers():
    assert join_key("ws", "", "docs/", "/a.txt") == "ws/docs/a.txt"
    assert norm_key("//ws//docs/a.txt/") == "ws/docs/a.txt"
    assert basename("ws/docs/a.txt") == "a.txt"
    assert trash_prefix("ws") == "trash/ws/"


def test_is_within_rejects_other_workspaces_and_traversal():
    assert is_within("ws/docs/a.txt", "ws")
    assert not is_within("ws", "ws")
    assert not is_within("ws2/a.txt", "ws")
    assert not is_within("ws/../other/a.txt", "ws")


@pytest.mark.parametrize("bad", ["", "a/b", "a\\b", "..", ".keep"])
def test_validate_segment_rejects_separators_and_reserved_names(bad):
    with pytest.raises(ValidationError):
        validate_segment(bad, label="文件夹名称")


def test_validate_segment_trims_whitespace():
    assert validate_segment("  docs ") == "docs"
