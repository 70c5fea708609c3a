from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from scoutwatch.config import settings
from scoutwatch.data.storage import Database, StoreSession
from scoutwatch.domain.models import Form, PersistOutcome
from scoutwatch.exceptions import StoreOperationFailed

logger = logging.getLogger(__name__)


class FormPersister:
    """
    Writes one form: header insert, then one record insert per record.

    A connection is opened for each form and closed when the form is done,
    whatever the result. Failure policy:
    - header insert fails -> nothing else is attempted, outcome ``header_failed``;
    - a record insert fails -> that record is retried ``record_retries`` times;
      if it still fails the remaining records are skipped, the report row is
      marked ``partial`` and the outcome says which item broke.
    ``StoreUnavailable`` (no connection at all) is not handled here.
    """

    def __init__(
        self,
        db: Database,
        record_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.record_retries = settings.store.record_retries if record_retries is None else record_retries
        self.backoff_seconds = settings.store.retry_backoff_seconds if backoff_seconds is None else backoff_seconds
        self._sleep = sleep

    def store(self, form: Form) -> PersistOutcome:
        total = len(form.records)
        with self.db.session() as session:
            try:
                form_id = session.insert_report(form)
            except StoreOperationFailed as exc:
                logger.error(f"Header insert failed for team {form.team_num}: {exc}")
                return PersistOutcome(status="header_failed", records_total=total, error=str(exc))
            form.assign_id(form_id)

            for written, record in enumerate(form.records):
                try:
                    self._insert_with_retry(session, form_id, record.item_id, record.value)
                except StoreOperationFailed as exc:
                    logger.error(
                        f"Form {form_id} (team {form.team_num}) partially stored: "
                        f"{written}/{total} records, item {record.item_id} failed: {exc}"
                    )
                    self._mark(session, form_id, "partial")
                    return PersistOutcome(
                        status="partial",
                        form_id=form_id,
                        records_written=written,
                        records_total=total,
                        failed_item_id=record.item_id,
                        error=str(exc),
                    )

            self._mark(session, form_id, "complete")
        return PersistOutcome(status="stored", form_id=form_id, records_written=total, records_total=total)

    def _insert_with_retry(self, session: StoreSession, form_id: int, item_id: int, value: str) -> None:
        for attempt in range(self.record_retries + 1):
            try:
                session.insert_record(value, form_id, item_id)
                return
            except StoreOperationFailed as exc:
                if attempt >= self.record_retries:
                    raise
                logger.warning(f"Retrying item {item_id} of form {form_id} ({attempt + 1}/{self.record_retries}): {exc}")
                self._sleep(self.backoff_seconds * (2**attempt))

    @staticmethod
    def _mark(session: StoreSession, form_id: int, status: str) -> None:
        try:
            session.mark_report(form_id, status)
        except StoreOperationFailed as exc:
            logger.error(f"Could not mark form {form_id} as {status}: {exc}")
