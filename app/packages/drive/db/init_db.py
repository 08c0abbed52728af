"""Database bootstrapping utilities."""

from __future__ import annotations

import logging

from app.packages.drive.db import session as db_session
from app.packages.drive.models.base import Base
from app.packages.drive.models.trash_entry import TrashEntry  # noqa: F401 - ensure table registration

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all database tables if they do not exist."""
    Base.metadata.create_all(bind=db_session.engine)
    logger.info("Database tables ensured: %s", ", ".join(sorted(Base.metadata.tables)))
