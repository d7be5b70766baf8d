"""Exceptions raised during disk discovery and symlinking."""

from .models import EventReason


class DiskMakerError(Exception):
    """Base error for the disk maker."""
    reason = ""


class ToolInvocationError(DiskMakerError):
    """Listing block devices or stable identifiers failed; aborts the cycle."""

    def __init__(self, message: str, reason: str = EventReason.ERROR_RUNNING_BLOCK_LIST):
        super().__init__(message)
        self.reason = reason


class ResolutionError(DiskMakerError):
    """A stable identifier could not be resolved to a device, or vice versa."""
    reason = EventReason.ERROR_RESOLVING_DEVICE_ID


class DirectoryVerificationError(DiskMakerError):
    """An existing shared directory could not be verified as a directory."""
    reason = EventReason.ERROR_VERIFYING_SHARED_DIR


class DirectoryCreationError(DiskMakerError):
    """A missing shared directory could not be created."""
    reason = EventReason.ERROR_CREATING_SHARED_DIR


class LinkCreationError(DiskMakerError):
    """A device symlink could not be created."""
    reason = EventReason.ERROR_CREATING_SYMLINK


class NoMatchingDevicesError(DiskMakerError):
    """No device or directory matched any storage class."""
    reason = EventReason.ERROR_FINDING_MATCHING_DISK


class ConfigError(DiskMakerError):
    """The declarative disk configuration could not be loaded."""
    pass
