"""Data models for local disk discovery and symlinking."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set, Any


class EventKind(Enum):
    """Outcome kind of a reported event, using cluster event type values."""
    SUCCESS = "Normal"
    ERROR = "Warning"


class EventReason:
    """Reason codes attached to reported events."""
    ERROR_RUNNING_BLOCK_LIST = "ErrorRunningBlockList"
    ERROR_LISTING_DEVICE_ID = "ErrorListingDeviceID"
    ERROR_RESOLVING_DEVICE_ID = "ErrorResolvingDeviceID"
    ERROR_VERIFYING_SHARED_DIR = "ErrorVerifyingSharedDir"
    ERROR_CREATING_SHARED_DIR = "ErrorCreatingSharedDir"
    ERROR_CREATING_SYMLINK_DIR = "ErrorCreatingSymlinkDir"
    ERROR_CREATING_SYMLINK = "ErrorCreatingSymlink"
    ERROR_FINDING_MATCHING_DISK = "ErrorFindingMatchingDisk"
    FOUND_MATCHING_DISK = "FoundMatchingDisk"
    SYMLINK_ALREADY_PRESENT = "SymlinkAlreadyPresent"


class LinkState(Enum):
    """Terminal state of one assignment after a materialize pass."""
    ALREADY_PRESENT = "already_present"
    CREATED = "created"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True)
class OwnerReference:
    """Resource that events of a cycle are attached to."""
    name: str = ""
    namespace: str = ""
    kind: str = ""
    api_version: str = ""

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    def to_dict(self) -> Dict[str, str]:
        return {
            'name': self.name,
            'namespace': self.namespace,
            'kind': self.kind,
            'apiVersion': self.api_version,
        }


@dataclass
class StorageClassDevices:
    """Selection policy for a single storage class."""
    device_names: Set[str] = field(default_factory=set)
    device_ids: Set[str] = field(default_factory=set)
    directory_paths: List[str] = field(default_factory=list)

    def sorted_device_names(self) -> List[str]:
        return sorted(self.device_names)

    def sorted_device_ids(self) -> List[str]:
        return sorted(self.device_ids)

    @property
    def is_empty(self) -> bool:
        return not (self.device_names or self.device_ids or self.directory_paths)


@dataclass
class DiskConfig:
    """Desired configuration for one reconciliation cycle."""
    disks: Dict[str, StorageClassDevices] = field(default_factory=dict)
    owner: OwnerReference = field(default_factory=OwnerReference)


@dataclass
class DeviceInventory:
    """Block devices and stable identifiers visible on the host this cycle."""
    unmounted_devices: Set[str] = field(default_factory=set)
    stable_identifiers: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DiskLocation:
    """
    A matched device or shared directory for a storage class.

    Exactly one of ``device_path`` and ``directory_path`` is set.
    ``stable_id`` may be empty when no by-id link was found for the device.
    """
    storage_class: str
    device_path: str = ""
    stable_id: str = ""
    directory_path: str = ""

    def __post_init__(self):
        if bool(self.device_path) == bool(self.directory_path):
            raise ValueError(
                "exactly one of device_path and directory_path must be set "
                f"(device_path={self.device_path!r}, directory_path={self.directory_path!r})"
            )

    @property
    def is_directory(self) -> bool:
        return bool(self.directory_path)

    @property
    def link_target(self) -> str:
        """Path the symlink should point at: the stable id when known."""
        return self.stable_id or self.device_path

    @property
    def link_name(self) -> str:
        return os.path.basename(self.device_path)


@dataclass(frozen=True)
class Event:
    """Immutable record of one reconciliation outcome."""
    kind: EventKind
    reason: str
    message: str
    device_path: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_error(self) -> bool:
        return self.kind == EventKind.ERROR

    @property
    def key(self) -> str:
        return f"{self.reason}:{self.kind.value}:{self.device_path}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.kind.value,
            'reason': self.reason,
            'message': self.message,
            'device': self.device_path,
            'timestamp': self.timestamp.isoformat(),
        }


def new_event(reason: str, message: str, device_path: str = "") -> Event:
    """Create an error event."""
    return Event(kind=EventKind.ERROR, reason=reason, message=message, device_path=device_path)


def new_success_event(reason: str, message: str, device_path: str = "") -> Event:
    """Create a success event."""
    return Event(kind=EventKind.SUCCESS, reason=reason, message=message, device_path=device_path)


@dataclass
class CycleSummary:
    """Outcome counts of one reconciliation cycle, kept for status reporting."""
    started: datetime
    finished: Optional[datetime] = None
    unmounted_devices: int = 0
    stable_identifiers: int = 0
    assignments: int = 0
    link_states: Dict[str, int] = field(default_factory=dict)
    aborted: bool = False
    abort_reason: str = ""

    def record_link_state(self, state: LinkState) -> None:
        self.link_states[state.value] = self.link_states.get(state.value, 0) + 1

    @property
    def duration_ms(self) -> Optional[float]:
        if self.finished is None:
            return None
        return round((self.finished - self.started).total_seconds() * 1000, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'started': self.started.isoformat(),
            'finished': self.finished.isoformat() if self.finished else None,
            'duration_ms': self.duration_ms,
            'unmounted_devices': self.unmounted_devices,
            'stable_identifiers': self.stable_identifiers,
            'assignments': self.assignments,
            'link_states': dict(self.link_states),
            'aborted': self.aborted,
            'abort_reason': self.abort_reason,
        }
