"""批量操作结果结构。

批量删除/清理不是“全部成功或全部失败”：每个条目独立执行并记录结果，
调用方据此对照实际状态刷新界面，而不是假定全部成功。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

REASON_NOT_FOUND = "not_found"
REASON_ALREADY_ABSENT = "already_absent"
REASON_CONFLICT = "conflict"
REASON_STORAGE = "storage"
REASON_DB = "db"
REASON_ORPHANED = "orphaned"
REASON_INVALID = "invalid"
REASON_UNEXPECTED = "unexpected"


@dataclass
class ItemOutcome:
    key: str
    status: str = STATUS_SUCCESS
    reason: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self, key_name: str = "path") -> dict[str, Any]:
        payload: dict[str, Any] = {key_name: self.key, "status": self.status}
        if self.reason:
            payload["reason"] = self.reason
        if self.message:
            payload["error"] = self.message
        return payload


@dataclass
class BatchResult:
    items: List[ItemOutcome] = field(default_factory=list)

    def add(self, outcome: ItemOutcome) -> ItemOutcome:
        self.items.append(outcome)
        return outcome

    def success(self, key: str, reason: Optional[str] = None) -> ItemOutcome:
        return self.add(ItemOutcome(key=key, status=STATUS_SUCCESS, reason=reason))

    def failure(self, key: str, reason: str, message: Optional[str] = None) -> ItemOutcome:
        return self.add(ItemOutcome(key=key, status=STATUS_ERROR, reason=reason, message=message))

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def fail_count(self) -> int:
        return len(self.items) - self.success_count

    @property
    def failures(self) -> List[ItemOutcome]:
        return [item for item in self.items if not item.ok]

    @property
    def is_partial_failure(self) -> bool:
        return 0 < self.fail_count < len(self.items)

    def to_dict(self, key_name: str = "path") -> dict[str, Any]:
        return {
            "processed": len(self.items),
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "details": [item.to_dict(key_name) for item in self.items],
        }


@dataclass
class AuditReport:
    dangling_records: List[str] = field(default_factory=list)
    untracked_objects: List[str] = field(default_factory=list)
    repaired: BatchResult = field(default_factory=BatchResult)

    @property
    def consistent(self) -> bool:
        return not self.dangling_records and not self.untracked_objects

    def to_dict(self) -> dict[str, Any]:
        return {
            "consistent": self.consistent,
            "danglingRecords": list(self.dangling_records),
            "untrackedObjects": list(self.untracked_objects),
            "repaired": self.repaired.to_dict(),
        }
