"""Matching of configured devices and directories against host inventory."""

import logging
import os
import stat
from typing import Dict, Iterable, List, Optional, Set

from .errors import DirectoryCreationError, DirectoryVerificationError, ResolutionError
from .events import EventReporter, NullEventReporter
from .models import DiskConfig, DiskLocation, OwnerReference, StorageClassDevices, new_event
from .stable_id import resolve_by_id, resolve_stable_id

logger = logging.getLogger(__name__)

DEFAULT_ROOTFS_DIR = '/rootfs'
SHARED_DIR_MODE = 0o755


def shared_dir_path(rootfs_dir: str, directory: str) -> str:
    """
    Absolute host path of a configured shared directory, kept under ``rootfs_dir``.

    Raises:
        DirectoryVerificationError: If the directory resolves outside ``rootfs_dir``
    """
    root = os.path.normpath(rootfs_dir)
    path = os.path.normpath(os.path.join(root, directory.lstrip('/')))
    if path != root and not path.startswith(root.rstrip(os.sep) + os.sep):
        raise DirectoryVerificationError(f"shared dir {directory} escapes {rootfs_dir}")
    return path


class SelectionMatcher:
    """
    Turns a per-storage-class selection policy into concrete disk locations.

    Each storage class runs three independent passes (device names, device
    IDs, directories). Results are appended without de-duplication, so a
    device selected both by name and by ID is assigned twice.
    """

    def __init__(self,
                 reporter: Optional[EventReporter] = None,
                 rootfs_dir: str = DEFAULT_ROOTFS_DIR,
                 dry_run: bool = False):
        self.reporter = reporter or NullEventReporter()
        self.rootfs_dir = rootfs_dir
        self.dry_run = dry_run

    def match(self,
              config: DiskConfig,
              unmounted_devices: Set[str],
              all_disk_ids: Iterable[str]) -> Dict[str, List[DiskLocation]]:
        """
        Find the disk locations each storage class should get this cycle.

        Args:
            config: Desired storage classes and their selection policies
            unmounted_devices: Base names of devices without a mount point
            all_disk_ids: Stable identifier links on the host

        Returns:
            Mapping of storage class to its matched locations; classes with
            no match are left out
        """
        all_disk_ids = list(all_disk_ids)
        block_device_map: Dict[str, List[DiskLocation]] = {}

        for storage_class, disks in config.disks.items():
            locations: List[DiskLocation] = []
            locations.extend(self._match_device_names(storage_class, disks, unmounted_devices, all_disk_ids))
            locations.extend(self._match_device_ids(storage_class, disks, unmounted_devices, config.owner))
            locations.extend(self._match_directories(storage_class, disks, config.owner))
            if locations:
                block_device_map[storage_class] = locations
                logger.debug(f"storage class {storage_class} matched {len(locations)} location(s)",
                             extra={'storage_class': storage_class})

        return block_device_map

    def _match_device_names(self,
                            storage_class: str,
                            disks: StorageClassDevices,
                            unmounted_devices: Set[str],
                            all_disk_ids: List[str]) -> List[DiskLocation]:
        locations = []
        for disk_name in disks.sorted_device_names():
            base_device_name = os.path.basename(disk_name)
            if base_device_name not in unmounted_devices:
                continue
            try:
                matched_device_id = resolve_stable_id(base_device_name, all_disk_ids)
            except ResolutionError as e:
                # No by-id link exists for the device; link to the raw path instead.
                logger.debug(f"unable to find disk ID for {disk_name}: {e}")
                matched_device_id = ""
            locations.append(DiskLocation(storage_class, device_path=disk_name, stable_id=matched_device_id))
        return locations

    def _match_device_ids(self,
                          storage_class: str,
                          disks: StorageClassDevices,
                          unmounted_devices: Set[str],
                          owner: OwnerReference) -> List[DiskLocation]:
        locations = []
        for device_id in disks.sorted_device_ids():
            try:
                matched_device_id, matched_disk_name = resolve_by_id(device_id)
            except ResolutionError as e:
                msg = f"unable to add disk-id {device_id} to local disk pool: {e}"
                self._report_error(e.reason, msg, owner, device_id)
                continue
            # The device must not already be mounted.
            if os.path.basename(matched_disk_name) in unmounted_devices:
                locations.append(
                    DiskLocation(storage_class, device_path=matched_disk_name, stable_id=matched_device_id)
                )
        return locations

    def _match_directories(self,
                           storage_class: str,
                           disks: StorageClassDevices,
                           owner: OwnerReference) -> List[DiskLocation]:
        locations = []
        for directory in disks.directory_paths:
            try:
                shared_path = shared_dir_path(self.rootfs_dir, directory)
                if os.path.lexists(shared_path):
                    self._verify_shared_dir(shared_path)
                else:
                    self._create_shared_dir(shared_path)
            except (DirectoryVerificationError, DirectoryCreationError) as e:
                self._report_error(e.reason, str(e), owner)
                continue
            locations.append(DiskLocation(storage_class, directory_path=shared_path))
        return locations

    def _verify_shared_dir(self, path: str) -> None:
        try:
            mode = os.stat(path).st_mode
        except OSError as e:
            raise DirectoryVerificationError(f"error checking shared dir {path}: {e}") from e
        if not stat.S_ISDIR(mode):
            raise DirectoryVerificationError(f"error checking shared dir {path}: not a directory")

    def _create_shared_dir(self, path: str) -> None:
        if self.dry_run:
            logger.info(f"DRY RUN: would create shared dir {path}")
            return
        try:
            os.makedirs(path, SHARED_DIR_MODE)
        except OSError as e:
            raise DirectoryCreationError(f"error creating shared dir {path}: {e}") from e
        logger.info(f"created shared dir {path}")

    def _report_error(self, reason: str, msg: str, owner: OwnerReference, device_path: str = "") -> None:
        logger.error(msg)
        self.reporter.report(new_event(reason, msg, device_path), owner)
