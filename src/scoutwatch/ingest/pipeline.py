from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from scoutwatch.config import settings
from scoutwatch.data.persistence import FormPersister
from scoutwatch.domain.models import IngestReport, ProtocolLayout
from scoutwatch.exceptions import IngestIOError, VolumeNotFound
from scoutwatch.ingest.backup import BackupWriter
from scoutwatch.ingest.reader import read_payload
from scoutwatch.ingest.volumes import VolumeLocator, wait_for_volume
from scoutwatch.protocol.codec import decode_payload

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """
    One file through reader -> backup -> decoder -> persister, synchronously.

    Per-file problems (unreadable file, bad forms, failed inserts) end up in
    the returned report and the log. ``StoreUnavailable`` is raised to the
    caller, which decides whether to stop.
    """

    def __init__(
        self,
        persister: FormPersister,
        backup: Optional[BackupWriter] = None,
        default_layout: Optional[ProtocolLayout] = None,
    ):
        self.persister = persister
        self.backup = backup
        self.default_layout = default_layout or ProtocolLayout(settings.protocol.default_layout.upper())

    def ingest(self, path: Path, backup: bool = True) -> IngestReport:
        path = Path(path)
        report = IngestReport(source_file=str(path))
        logger.info(f"Reading {path.name}...")
        try:
            payload = read_payload(path)
        except IngestIOError as exc:
            logger.error(str(exc))
            report.errors.append(str(exc))
            return report

        if backup and self.backup is not None:
            target = self.backup.write(path)
            report.backup_file = str(target) if target else None

        decoded = decode_payload(payload, self.default_layout)
        report.forms_decoded = len(decoded.forms)
        for err in decoded.errors:
            logger.error(f"{path.name}: {err}")
            report.errors.append(str(err))

        for form in decoded.forms:
            outcome = self.persister.store(form)
            report.outcomes.append(outcome)
            if outcome.ok:
                report.forms_stored += 1
                logger.info(
                    f"Stored form {outcome.form_id}: team {form.team_num}, "
                    f"match {form.match_num}, {outcome.records_written} records"
                )
            else:
                report.errors.append(outcome.error or outcome.status)

        logger.info(f"{path.name}: {report.forms_stored}/{report.forms_decoded} forms stored")
        return report

    def import_volume(
        self,
        locator: VolumeLocator,
        timeout: Optional[float] = None,
        pattern: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> list[IngestReport]:
        """Ingest every matching file on a removable volume, in name order."""
        timeout = settings.usb.timeout_seconds if timeout is None else timeout
        pattern = pattern or settings.usb.import_glob
        try:
            volume = wait_for_volume(locator, timeout=timeout, cancel=cancel)
        except VolumeNotFound as exc:
            logger.error(f"USB import: {exc}")
            raise

        files = sorted(p for p in volume.glob(pattern) if p.is_file())
        logger.info(f"USB import: {len(files)} files on {volume}")
        reports = []
        for path in files:
            if cancel is not None and cancel.is_set():
                break
            reports.append(self.ingest(path, backup=False))
        return reports
