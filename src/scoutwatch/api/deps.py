from __future__ import annotations

from typing import Generator, Optional

from scoutwatch.config import settings
from scoutwatch.data.review import ReviewService
from scoutwatch.data.storage import Database

# Global/Cached instances
_db_instance: Optional[Database] = None


def get_db() -> Database:
    global _db_instance
    if _db_instance is None:
        _db_instance = Database(settings.paths.db_path, timeout=settings.store.connect_timeout_seconds)
    return _db_instance


def get_review_service() -> Generator[ReviewService, None, None]:
    yield ReviewService(get_db())
