"""回收站记录 CRUD。"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.trash_entry import TrashEntry


class CRUDTrashEntry(CRUDBase[TrashEntry]):
    def get_in_workspace(self, db: Session, *, workspace_id: str, id: str) -> TrashEntry | None:
        return (
            self.query(db)
            .filter(TrashEntry.workspace_id == workspace_id)
            .filter(TrashEntry.id == id)
            .first()
        )

    def get_by_trash_path(self, db: Session, *, trash_path: str) -> TrashEntry | None:
        return self.query(db).filter(TrashEntry.trash_path == trash_path).first()

    def list_by_workspace(self, db: Session, *, workspace_id: Optional[str]) -> List[TrashEntry]:
        q = self.query(db)
        if workspace_id is not None:
            q = q.filter(TrashEntry.workspace_id == workspace_id)
        return q.order_by(TrashEntry.deleted_at.desc(), TrashEntry.id.asc()).all()

    def list_expired(self, db: Session, *, now: datetime) -> List[TrashEntry]:
        return (
            self.query(db)
            .filter(TrashEntry.expires_at <= now)
            .order_by(TrashEntry.expires_at.asc())
            .all()
        )


trash_entry_crud = CRUDTrashEntry(TrashEntry)
