"""常量定义：集中存放响应状态码与文件存储相关的固定取值。"""

from fastapi import status

HTTP_STATUS_OK = status.HTTP_200_OK

# 文件夹占位对象：使空前缀在对象存储中可被列举为文件夹
FOLDER_MARKER_NAME = ".keep"

# 回收站：对象移动到 trash/{workspace_id}/ 前缀下，保留 30 天
TRASH_ROOT = "trash"
TRASH_RETENTION_DAYS = 30

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# 存储键的基名（扩展名之前）最大长度
MAX_BASE_NAME_LENGTH = 50

# 对象元数据结构版本
OBJECT_METADATA_VERSION = 1
