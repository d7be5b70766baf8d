"""Block device and stable identifier enumeration."""

import glob
import logging
from typing import List, Optional, Set

from .errors import ToolInvocationError
from .models import DeviceInventory, EventReason
from .system_executor import SystemCommandExecutor

logger = logging.getLogger(__name__)

DEFAULT_DISK_BY_ID_GLOB = '/dev/disk/by-id/*'


def parse_block_list(content: str) -> Set[str]:
    """
    Collect device names without a mount point from ``lsblk NAME,MOUNTPOINT`` output.

    A line holding only the device name is unmounted. Partitions are not
    filtered, so a whole disk and its partition can both be returned.
    """
    device_set = set()
    for device_line in content.splitlines():
        device_details = device_line.split()
        if len(device_details) == 1 and device_details[0]:
            device_set.add(device_details[0])
    return device_set


class DeviceEnumerator:
    """Lists unmounted block devices and the by-id links pointing at them."""

    def __init__(self,
                 executor: Optional[SystemCommandExecutor] = None,
                 disk_by_id_glob: str = DEFAULT_DISK_BY_ID_GLOB):
        self.executor = executor or SystemCommandExecutor()
        self.disk_by_id_glob = disk_by_id_glob

    def list_unmounted_devices(self) -> Set[str]:
        """
        Return the base names of block devices that have no mount point.

        Raises:
            ToolInvocationError: If lsblk could not be run or exited non-zero
        """
        success, stdout, stderr = self.executor.execute_lsblk_command('NAME,MOUNTPOINT')
        if not success:
            raise ToolInvocationError(
                f"error running lsblk: {stderr.strip() or 'unknown error'}",
                reason=EventReason.ERROR_RUNNING_BLOCK_LIST
            )

        device_set = parse_block_list(stdout)
        if not device_set:
            logger.info("unable to find any new disks")
        else:
            logger.debug(f"unmounted devices: {', '.join(sorted(device_set))}")
        return device_set

    def list_stable_identifier_paths(self) -> List[str]:
        """
        Return all stable identifier links on the host.

        Raises:
            ToolInvocationError: If the identifier directory could not be listed
        """
        try:
            paths = glob.glob(self.disk_by_id_glob)
        except OSError as e:
            raise ToolInvocationError(
                f"error listing disks in {self.disk_by_id_glob}: {e}",
                reason=EventReason.ERROR_LISTING_DEVICE_ID
            ) from e
        return sorted(paths)

    def inventory(self) -> DeviceInventory:
        """Enumerate unmounted devices and stable identifiers in one go."""
        unmounted = self.list_unmounted_devices()
        identifiers = self.list_stable_identifier_paths()
        return DeviceInventory(unmounted_devices=unmounted, stable_identifiers=identifiers)
