"""Creation of per-storage-class symlinks for matched disks."""

import logging
import os
from typing import Dict, List, Optional

from .errors import LinkCreationError
from .events import EventReporter, NullEventReporter
from .models import (
    DiskLocation,
    EventReason,
    LinkState,
    OwnerReference,
    new_event,
    new_success_event,
)

logger = logging.getLogger(__name__)

SYMLINK_DIR_MODE = 0o755
BIND_NAME_PREFIX = 'local-shared-'

FNV32_OFFSET_BASIS = 0x811c9dc5
FNV32_PRIME = 0x01000193


def fnv1a_32(data: bytes) -> int:
    """32-bit FNV-1a hash."""
    h = FNV32_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV32_PRIME) & 0xffffffff
    return h


def generate_bind_name(directory: str, storage_class: str) -> str:
    """Deterministic placeholder name for a shared directory in a storage class."""
    digest = fnv1a_32(directory.encode('utf-8') + storage_class.encode('utf-8'))
    return f"{BIND_NAME_PREFIX}{digest:x}"


class SymlinkMaterializer:
    """
    Makes ``<symlink_location>/<storage class>/<device>`` links for matched disks.

    Every step is guarded by an existence check, so running it again against
    the same host state changes nothing. Shared directories only get their
    placeholder path computed; the bind mount itself is not performed.
    """

    def __init__(self,
                 symlink_location: str,
                 reporter: Optional[EventReporter] = None,
                 dry_run: bool = False):
        self.symlink_location = symlink_location
        self.reporter = reporter or NullEventReporter()
        self.dry_run = dry_run

    def materialize(self,
                    device_map: Dict[str, List[DiskLocation]],
                    owner: OwnerReference) -> List[LinkState]:
        """
        Apply matched locations to the symlink directory.

        Outcomes are reported as events; the returned states are for
        summarizing the cycle.
        """
        states: List[LinkState] = []
        for storage_class, locations in device_map.items():
            sym_link_dir_path = os.path.join(self.symlink_location, storage_class)
            try:
                self._ensure_dir(sym_link_dir_path)
            except OSError as e:
                msg = f"error creating symlink dir {sym_link_dir_path}: {e}"
                logger.error(msg, extra={'storage_class': storage_class})
                self.reporter.report(new_event(EventReason.ERROR_CREATING_SYMLINK_DIR, msg), owner)
                continue

            for location in locations:
                if location.is_directory:
                    state = self._materialize_shared_dir(sym_link_dir_path, location)
                else:
                    state = self._materialize_device(sym_link_dir_path, location, owner)
                states.append(state)
        return states

    def _ensure_dir(self, path: str) -> None:
        if self.dry_run:
            logger.info(f"DRY RUN: would create symlink dir {path}")
            return
        os.makedirs(path, SYMLINK_DIR_MODE, exist_ok=True)

    def _materialize_shared_dir(self, sym_link_dir_path: str, location: DiskLocation) -> LinkState:
        bind_name = generate_bind_name(location.directory_path, location.storage_class)
        bind_path = os.path.join(sym_link_dir_path, bind_name)
        if os.path.lexists(bind_path):
            logger.debug(f"bind path {bind_path} already exists")
            return LinkState.ALREADY_PRESENT

        # TODO: bind mount directory_path onto bind_path once mounting is supported
        logger.info(f"shared dir {location.directory_path} is not bound to {bind_path}",
                    extra={'storage_class': location.storage_class})
        return LinkState.PENDING

    def _materialize_device(self,
                            sym_link_dir_path: str,
                            location: DiskLocation,
                            owner: OwnerReference) -> LinkState:
        base_device_name = location.link_name
        sym_link_path = os.path.join(sym_link_dir_path, base_device_name)
        extra = {'storage_class': location.storage_class, 'device': location.device_path}

        if os.path.lexists(sym_link_path):
            logger.debug(f"symlink {sym_link_path} already exists", extra=extra)
            msg = f"symlink {sym_link_path} already exists for disk {base_device_name}"
            self.reporter.report(
                new_success_event(EventReason.SYMLINK_ALREADY_PRESENT, msg, location.device_path), owner
            )
            return LinkState.ALREADY_PRESENT

        try:
            self._create_symlink(location.link_target, sym_link_path)
        except LinkCreationError as e:
            msg = str(e)
            logger.error(msg, extra=extra)
            self.reporter.report(new_event(e.reason, msg, location.device_path), owner)
            return LinkState.FAILED

        success_msg = f"found matching disk {base_device_name}"
        self.reporter.report(
            new_success_event(EventReason.FOUND_MATCHING_DISK, success_msg, location.device_path), owner
        )
        return LinkState.CREATED

    def _create_symlink(self, target: str, sym_link_path: str) -> None:
        logger.info(f"symlinking {target} to {sym_link_path}")
        if self.dry_run:
            logger.info("DRY RUN: symlink not created")
            return
        try:
            os.symlink(target, sym_link_path)
        except OSError as e:
            raise LinkCreationError(f"error creating symlink {sym_link_path}: {e}") from e
