"""Daemon settings loaded from defaults, a settings file and the environment."""

import os
import json
import logging
from typing import Dict, Any, Optional
from pathlib import Path
from dataclasses import dataclass, asdict, fields


logger = logging.getLogger(__name__)


@dataclass
class DiskMakerSettings:
    """Runtime settings of the disk maker daemon."""
    config_location: str = "/etc/local-storage/diskMakerConfig"
    symlink_location: str = "/mnt/local-storage"
    check_interval: int = 5  # Seconds
    config_poll_interval: int = 1  # Seconds
    disk_by_id_glob: str = "/dev/disk/by-id/*"
    rootfs_dir: str = "/rootfs"
    log_level: str = "INFO"
    log_json: bool = True
    command_timeout: int = 30
    dry_run: bool = False
    event_webhook_url: str = ""
    event_history_size: int = 500
    status_host: str = "0.0.0.0"
    status_port: int = 0  # 0 disables the status endpoint


class ConfigManager:
    """Manages settings loading and validation."""

    ENV_MAPPINGS = {
        'DISKMAKER_CONFIG_LOCATION': 'config_location',
        'DISKMAKER_SYMLINK_LOCATION': 'symlink_location',
        'DISKMAKER_CHECK_INTERVAL': 'check_interval',
        'DISKMAKER_CONFIG_POLL_INTERVAL': 'config_poll_interval',
        'DISKMAKER_DISK_BY_ID_GLOB': 'disk_by_id_glob',
        'DISKMAKER_ROOTFS_DIR': 'rootfs_dir',
        'DISKMAKER_LOG_LEVEL': 'log_level',
        'DISKMAKER_LOG_JSON': 'log_json',
        'DISKMAKER_COMMAND_TIMEOUT': 'command_timeout',
        'DISKMAKER_DRY_RUN': 'dry_run',
        'DISKMAKER_EVENT_WEBHOOK_URL': 'event_webhook_url',
        'DISKMAKER_EVENT_HISTORY_SIZE': 'event_history_size',
        'DISKMAKER_STATUS_HOST': 'status_host',
        'DISKMAKER_STATUS_PORT': 'status_port',
    }

    INT_FIELDS = {f.name for f in fields(DiskMakerSettings) if f.type in (int, 'int')}
    BOOL_FIELDS = {f.name for f in fields(DiskMakerSettings) if f.type in (bool, 'bool')}

    def __init__(self, settings_file_path: Optional[str] = None):
        """
        Initialize the ConfigManager.

        Args:
            settings_file_path: Optional path to a JSON or env-style settings file
        """
        self.settings_file_path = settings_file_path
        self._settings: Optional[DiskMakerSettings] = None

    def load_config(self) -> DiskMakerSettings:
        """
        Load settings from the settings file and environment variables.

        Returns:
            Validated DiskMakerSettings
        """
        if self._settings:
            return self._settings

        config_dict = asdict(DiskMakerSettings())

        if self.settings_file_path and os.path.exists(self.settings_file_path):
            config_dict.update(self._load_settings_file(self.settings_file_path))

        config_dict.update(self._load_from_environment())

        settings = DiskMakerSettings(**config_dict)
        self._validate_config(settings)

        self._settings = settings
        logger.debug("Settings loaded successfully")
        return settings

    def reload_config(self) -> DiskMakerSettings:
        """Force reload settings from sources."""
        self._settings = None
        return self.load_config()

    def _load_settings_file(self, file_path: str) -> Dict[str, Any]:
        """
        Load settings from file.

        JSON files use the dataclass field names as keys; any other file is
        read as KEY=value lines using the environment variable names.
        """
        try:
            if Path(file_path).suffix.lower() == '.json':
                with open(file_path, 'r') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    logger.error(f"Error loading settings file {file_path}: expected a JSON object")
                    return {}
                known = {f.name for f in fields(DiskMakerSettings)}
                return {key: self._coerce(key, value) for key, value in data.items() if key in known}
            return self._load_env_file(file_path)

        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading settings file {file_path}: {e}")
            return {}

    def _load_env_file(self, file_path: str) -> Dict[str, Any]:
        config = {}
        with open(file_path, 'r') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#') or '=' not in line:
                    continue
                key, value = line.split('=', 1)
                key = key.strip()
                value = value.strip().strip('"\'')
                if key in self.ENV_MAPPINGS:
                    config_key = self.ENV_MAPPINGS[key]
                    config[config_key] = self._coerce(config_key, value)
        return config

    def _load_from_environment(self) -> Dict[str, Any]:
        """Load settings from DISKMAKER_* environment variables."""
        config = {}
        for env_key, config_key in self.ENV_MAPPINGS.items():
            env_value = os.getenv(env_key)
            if env_value is not None:
                config[config_key] = self._coerce(config_key, env_value)
        return config

    def _coerce(self, config_key: str, value: Any) -> Any:
        """Convert a raw value to the type of its settings field."""
        if config_key in self.BOOL_FIELDS:
            if isinstance(value, bool):
                return value
            return str(value).strip().lower() in {'true', '1', 'yes', 'on'}

        if config_key in self.INT_FIELDS:
            try:
                return int(value)
            except (TypeError, ValueError):
                default = getattr(DiskMakerSettings, config_key)
                logger.warning(f"Invalid integer for {config_key}, using default {default}")
                return default

        return value if isinstance(value, str) else str(value)

    def _validate_config(self, settings: DiskMakerSettings) -> None:
        """
        Validate settings values.

        Raises:
            ValueError: If settings are invalid
        """
        if settings.check_interval <= 0:
            raise ValueError("check_interval must be positive")

        if settings.config_poll_interval <= 0:
            raise ValueError("config_poll_interval must be positive")

        if settings.command_timeout <= 0:
            raise ValueError("command_timeout must be positive")

        if settings.event_history_size <= 0:
            raise ValueError("event_history_size must be positive")

        if not 0 <= settings.status_port <= 65535:
            raise ValueError(f"Invalid status port: {settings.status_port}")

        valid_log_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if settings.log_level.upper() not in valid_log_levels:
            raise ValueError(f"Invalid log level: {settings.log_level}")

        for path in (settings.config_location, settings.symlink_location,
                     settings.rootfs_dir, settings.disk_by_id_glob):
            if not os.path.isabs(path):
                raise ValueError(f"Path must be absolute: {path}")

        logger.debug("Settings validation passed")
