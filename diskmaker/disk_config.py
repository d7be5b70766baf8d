"""Loading of the declarative disk configuration file."""

import logging
from typing import Any, Dict, List

import yaml

from .errors import ConfigError
from .models import DiskConfig, OwnerReference, StorageClassDevices

logger = logging.getLogger(__name__)

DISK_BY_ID_PREFIX = '/dev/disk/by-id/'


def _string_list(value: Any, field_name: str, storage_class: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{field_name} for storage class {storage_class} must be a list of strings")
    return [item.strip() for item in value if item.strip()]


def parse_storage_class(storage_class: str, data: Any) -> StorageClassDevices:
    """
    Build the selection policy of one storage class.

    ``devicePaths`` entries under /dev/disk/by-id/ are treated as device IDs,
    everything else as device names. ``deviceNames`` and ``deviceIDs`` may
    also be given explicitly.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"storage class {storage_class} must be a mapping")

    devices = StorageClassDevices()
    for device_path in _string_list(data.get('devicePaths'), 'devicePaths', storage_class):
        if device_path.startswith(DISK_BY_ID_PREFIX):
            devices.device_ids.add(device_path)
        else:
            devices.device_names.add(device_path)
    devices.device_names.update(_string_list(data.get('deviceNames'), 'deviceNames', storage_class))
    devices.device_ids.update(_string_list(data.get('deviceIDs'), 'deviceIDs', storage_class))
    devices.directory_paths = _string_list(data.get('directoryPaths'), 'directoryPaths', storage_class)
    return devices


def parse_disk_config(data: Any) -> DiskConfig:
    """Build a DiskConfig from already decoded YAML data."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("disk configuration must be a mapping")

    owner = OwnerReference(
        name=str(data.get('ownerName') or ''),
        namespace=str(data.get('ownerNamespace') or ''),
        kind=str(data.get('ownerKind') or ''),
        api_version=str(data.get('ownerAPIVersion') or ''),
    )

    disks_data = data.get('disks') or {}
    if not isinstance(disks_data, dict):
        raise ConfigError("disks must be a mapping of storage class to devices")

    disks: Dict[str, StorageClassDevices] = {}
    for storage_class, class_data in disks_data.items():
        storage_class = str(storage_class)
        if not storage_class or '/' in storage_class or storage_class in {'.', '..'}:
            raise ConfigError(f"invalid storage class name: {storage_class!r}")
        disks[storage_class] = parse_storage_class(storage_class, class_data)

    return DiskConfig(disks=disks, owner=owner)


def load_disk_config(path: str) -> DiskConfig:
    """
    Read and parse the disk configuration at ``path``.

    Raises:
        ConfigError: If the file cannot be read or does not describe a disk configuration
    """
    try:
        with open(path, 'r') as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(f"failed to read file {path}: {e}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"error unmarshalling {path}: {e}") from e

    config = parse_disk_config(data)
    logger.debug(f"loaded disk config for {config.owner.key} with {len(config.disks)} storage class(es)")
    return config
