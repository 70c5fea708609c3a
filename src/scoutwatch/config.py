from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml

from scoutwatch.exceptions import ConfigError

class AppSettings(BaseSettings):
    name: str = "ScoutWatch"
    version: str = "0.9.0"

class PathSettings(BaseSettings):
    watch_dir: Path = Path.home() / "Desktop"
    db_path: Path = Path("./data/scouting.db")
    items_path: Path = Path("./config/items.yaml")


class WatchSettings(BaseSettings):
    # Two historical exporters disagree on whether rewrites of an existing file
    # should be ingested again; creation-only unless turned on.
    include_modified: bool = False
    poll_timeout_seconds: float = 1.0
    # New files wait for their writer to close them; this long without activity releases them anyway.
    settle_seconds: float = 5.0


class ProtocolSettings(BaseSettings):
    default_layout: str = "A"  # A | B, used when a payload carries no version marker


class StoreSettings(BaseSettings):
    connect_timeout_seconds: float = 5.0
    record_retries: int = 2
    retry_backoff_seconds: float = 0.2


class VolumeSettings(BaseSettings):
    """
    Where removable volumes are mounted on this host.
    Each root is scanned one level deep; the last mounted entry in sorted order wins.
    """
    mount_roots: list[Path] = []
    timeout_seconds: float = 10.0
    backoff_seconds: float = 0.5
    max_backoff_seconds: float = 4.0


class BackupSettings(BaseSettings):
    enabled: bool = True
    file_prefix: str = "scoutingfile"
    volume_timeout_seconds: float = 2.0


class UsbImportSettings(BaseSettings):
    import_glob: str = "*.txt"
    timeout_seconds: float = 60.0


class ReviewSettings(BaseSettings):
    reconstruct_form_type: int = 0  # PRESCOUTING


class LoggingSettings(BaseSettings):
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    operator_log_lines: int = 48

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SCOUTWATCH_", env_nested_delimiter="__", env_file=".env", extra="ignore"
    )
    app: AppSettings = AppSettings()
    paths: PathSettings = PathSettings()
    watch: WatchSettings = WatchSettings()
    protocol: ProtocolSettings = ProtocolSettings()
    store: StoreSettings = StoreSettings()
    volume: VolumeSettings = VolumeSettings()
    backup: BackupSettings = BackupSettings()
    usb: UsbImportSettings = UsbImportSettings()
    review: ReviewSettings = ReviewSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        # Load from default path if exists
        default_path = Path("config/settings.yaml")
        path = config_path or (default_path if default_path.exists() else None)

        if not path:
            return cls()

        try:
            with open(path, "r") as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot load settings from {path}: {exc}") from exc

        return cls(**config_data)

settings = Settings.load()
