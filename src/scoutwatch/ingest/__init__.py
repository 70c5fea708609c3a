from scoutwatch.ingest.backup import BackupWriter
from scoutwatch.ingest.pipeline import IngestionPipeline
from scoutwatch.ingest.reader import read_payload
from scoutwatch.ingest.volumes import MountRootVolumeLocator, VolumeLocator, wait_for_volume
from scoutwatch.ingest.watcher import DirectoryWatcher, WatchdogEventSource, WatcherState

__all__ = [
    "BackupWriter",
    "DirectoryWatcher",
    "IngestionPipeline",
    "MountRootVolumeLocator",
    "VolumeLocator",
    "WatchdogEventSource",
    "WatcherState",
    "read_payload",
    "wait_for_volume",
]
