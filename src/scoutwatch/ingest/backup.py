from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Optional

from scoutwatch.config import settings
from scoutwatch.exceptions import VolumeNotFound
from scoutwatch.ingest.volumes import VolumeLocator, wait_for_volume

logger = logging.getLogger(__name__)


class BackupWriter:
    """
    Copies each observed input file, byte for byte, onto a removable volume
    as ``<prefix><N>``. Failures are logged and never stop ingestion.
    """

    def __init__(
        self,
        locator: VolumeLocator,
        prefix: Optional[str] = None,
        volume_timeout: Optional[float] = None,
    ):
        self.locator = locator
        self.prefix = prefix or settings.backup.file_prefix
        self.volume_timeout = settings.backup.volume_timeout_seconds if volume_timeout is None else volume_timeout
        self.counter = 0

    def write(self, source: Path) -> Optional[Path]:
        try:
            volume = wait_for_volume(self.locator, timeout=self.volume_timeout)
        except VolumeNotFound as exc:
            logger.warning(f"Backup of {source.name} skipped: {exc}")
            return None

        target = self._next_target(volume)
        try:
            shutil.copyfile(source, target)
        except OSError as exc:
            logger.error(f"Backup of {source.name} to {target} failed: {exc}")
            return None
        self.counter += 1
        logger.info(f"Backed up {source.name} to {target}")
        return target

    def _next_target(self, volume: Path) -> Path:
        # Never overwrite a backup left by an earlier run.
        pattern = re.compile(rf"^{re.escape(self.prefix)}(\d+)$")
        try:
            taken = [int(m.group(1)) for m in (pattern.match(p.name) for p in volume.iterdir()) if m]
        except OSError:
            taken = []
        if taken:
            self.counter = max(self.counter, max(taken) + 1)
        return volume / f"{self.prefix}{self.counter}"
