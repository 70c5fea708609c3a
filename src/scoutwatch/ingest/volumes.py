from __future__ import annotations

import getpass
import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol

from scoutwatch.config import settings
from scoutwatch.exceptions import VolumeNotFound

logger = logging.getLogger(__name__)


class VolumeLocator(Protocol):
    def locate(self) -> Optional[Path]:
        ...


def default_mount_roots() -> list[Path]:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = ""
    roots = [Path("/Volumes")]
    if user:
        roots += [Path("/media") / user, Path("/run/media") / user]
    return roots


class MountRootVolumeLocator:
    """
    Looks one level below each mount root for mounted directories.
    When several are present the last one in (root order, name order) wins,
    so the answer is stable for a given set of mounts.
    """

    def __init__(self, roots: Optional[Iterable[Path]] = None, require_mount: bool = True):
        configured = list(roots) if roots is not None else list(settings.volume.mount_roots)
        self.roots = [Path(r) for r in configured] or default_mount_roots()
        self.require_mount = require_mount

    def candidates(self) -> list[Path]:
        found: list[Path] = []
        for root in self.roots:
            try:
                children = sorted(root.iterdir())
            except OSError:
                continue
            for child in children:
                if child.is_symlink() or not child.is_dir():
                    continue
                if self.require_mount and not os.path.ismount(child):
                    continue
                found.append(child)
        return found

    def locate(self) -> Optional[Path]:
        found = self.candidates()
        if len(found) > 1:
            logger.warning(f"{len(found)} removable volumes present, using {found[-1]}")
        return found[-1] if found else None


def wait_for_volume(
    locator: VolumeLocator,
    timeout: Optional[float] = None,
    backoff_seconds: Optional[float] = None,
    max_backoff_seconds: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Path:
    """
    Poll ``locator`` with exponential backoff until it finds a volume.
    Raises ``VolumeNotFound`` once ``timeout`` seconds have passed or ``cancel`` is set.
    """
    timeout = settings.volume.timeout_seconds if timeout is None else timeout
    delay = settings.volume.backoff_seconds if backoff_seconds is None else backoff_seconds
    ceiling = settings.volume.max_backoff_seconds if max_backoff_seconds is None else max_backoff_seconds
    deadline = clock() + timeout

    attempts = 0
    while True:
        attempts += 1
        path = locator.locate()
        if path is not None:
            return path
        remaining = deadline - clock()
        if remaining <= 0:
            raise VolumeNotFound(f"No removable volume after {attempts} attempts in {timeout:.1f}s")
        pause = min(delay, remaining)
        if cancel is not None:
            if cancel.wait(pause):
                raise VolumeNotFound("Volume wait cancelled")
        else:
            sleep(pause)
        delay = min(delay * 2, ceiling) if ceiling > 0 else delay * 2
