from scoutwatch.data.persistence import FormPersister
from scoutwatch.data.review import ReviewService
from scoutwatch.data.storage import Database, StoreSession

__all__ = ["Database", "FormPersister", "ReviewService", "StoreSession"]
