"""Local disk discovery and symlinking for the local volume provisioner."""

from .diskmaker import DiskMaker
from .models import DiskConfig, DiskLocation, Event, OwnerReference, StorageClassDevices

__all__ = [
    'DiskMaker',
    'DiskConfig',
    'DiskLocation',
    'Event',
    'OwnerReference',
    'StorageClassDevices',
]
