"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.drive.models.trash_entry import TrashEntry

__all__ = ["TrashEntry"]
