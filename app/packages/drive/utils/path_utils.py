"""Path utilities for the virtual folder layout.

Rules shared by the folder, file and trash services:
- storage keys are bucket-relative, '/'-separated, never start with '/';
- a workspace owns everything under ``{workspace_id}/``;
- trashed objects live under ``trash/{workspace_id}/``;
- a single segment (workspace id, folder name) never contains a separator.
"""

from __future__ import annotations

import re
from typing import Optional

from app.packages.drive.core.constants import (
    FOLDER_MARKER_NAME,
    MAX_BASE_NAME_LENGTH,
    TRASH_ROOT,
)
from app.packages.drive.core.exceptions import ValidationError

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.\-]")


def join_key(*parts: Optional[str]) -> str:
    segments = [p.strip("/") for p in parts if p and p.strip("/")]
    return "/".join(segments)


def norm_key(p: Optional[str]) -> str:
    s = (p or "").strip()
    s = re.sub(r"/+", "/", s)
    return s.strip("/")


def basename(key: str) -> str:
    return norm_key(key).rsplit("/", 1)[-1]


def validate_segment(name: Optional[str], *, label: str = "名称") -> str:
    value = (name or "").strip()
    if not value:
        raise ValidationError(f"{label}不能为空")
    if "/" in value or "\\" in value:
        raise ValidationError(f"{label}不能包含路径分隔符")
    if value in {".", "..", FOLDER_MARKER_NAME}:
        raise ValidationError(f"{label}不合法: {value}")
    return value


def trash_prefix(workspace_id: Optional[str] = None) -> str:
    if workspace_id is None:
        return f"{TRASH_ROOT}/"
    return f"{TRASH_ROOT}/{workspace_id}/"


def is_within(key: str, prefix: str) -> bool:
    k = norm_key(key)
    p = norm_key(prefix)
    if any(seg in {".", ".."} for seg in k.split("/")):
        return False
    return k.startswith(p + "/")


def sanitize_file_name(name: Optional[str]) -> str:
    """生成存储键使用的文件名。

    非 ``[A-Za-z0-9.-]`` 的字符替换为 ``_``，基名截断至 50 个字符后再拼接扩展名。
    例如 ``My Report (Final)!.pdf`` -> ``My_Report__Final__.pdf``。
    """
    raw = (name or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    if "." in raw:
        base, ext = raw.rsplit(".", 1)
    else:
        base, ext = raw, ""
    safe_base = _UNSAFE_CHARS.sub("_", base)[:MAX_BASE_NAME_LENGTH]
    safe_ext = _UNSAFE_CHARS.sub("_", ext)
    sanitized = f"{safe_base}.{safe_ext}" if ext else safe_base
    if not sanitized or sanitized in {".", "..", FOLDER_MARKER_NAME}:
        raise ValidationError(f"文件名不合法: {name!r}")
    return sanitized
