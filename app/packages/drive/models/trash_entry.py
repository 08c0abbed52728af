"""回收站记录模型。

每条记录对应对象存储中 ``trash_path`` 处的一个对象：
- 软删除时创建（移动对象 + 插入记录）；
- 还原（移回原路径 + 删除记录）或过期清理（删除对象 + 删除记录）时销毁，二者互斥；
- 时间字段统一以 UTC 写入，``expires_at = deleted_at + 30 天``。
"""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.models.base import Base, TimestampMixin


def _new_id() -> str:
    return str(uuid.uuid4())


class TrashEntry(TimestampMixin, Base):
    __tablename__ = "trash_files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(String(128), index=True)
    original_path: Mapped[str] = mapped_column(String(1024))
    file_name: Mapped[str] = mapped_column(String(255))
    file_size: Mapped[int] = mapped_column(BigInteger, default=0)
    content_type: Mapped[str] = mapped_column(String(255), default="application/octet-stream")
    trash_path: Mapped[str] = mapped_column(String(1024))
    deleted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    __table_args__ = (
        UniqueConstraint("trash_path", name="uq_trash_files_trash_path"),
    )
