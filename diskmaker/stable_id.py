"""Resolution between raw device names and their stable by-id links."""

import logging
import os
from pathlib import Path
from typing import Iterable, Tuple

from .errors import ResolutionError

logger = logging.getLogger(__name__)


def _evaluate_link(path: str) -> str:
    """Follow every symbolic link in ``path``; broken or looping links raise OSError."""
    try:
        return str(Path(path).resolve(strict=True))
    except RuntimeError as e:
        # Symlink loops raise RuntimeError before Python 3.13
        raise OSError(str(e)) from e


def resolve_stable_id(device_name: str, id_paths: Iterable[str]) -> str:
    """
    Find a stable identifier link that points at ``device_name``.

    Any identifier aliasing the device is a valid answer; when several do,
    the first one in ``id_paths`` is returned.

    Args:
        device_name: Base device name, e.g. 'sdb'
        id_paths: Candidate identifier links, e.g. from /dev/disk/by-id/*

    Returns:
        The matching identifier path

    Raises:
        ResolutionError: If no identifier resolves to the device
    """
    for id_path in id_paths:
        try:
            device_path = _evaluate_link(id_path)
        except OSError:
            continue
        if os.path.basename(device_path) == device_name:
            return id_path
    raise ResolutionError(f"unable to find ID of disk {device_name}")


def resolve_by_id(id_path: str) -> Tuple[str, str]:
    """
    Resolve a stable identifier link to the device it points at.

    Returns:
        Tuple of (id_path, resolved device path)

    Raises:
        ResolutionError: If the link is absent or broken
    """
    try:
        device_path = _evaluate_link(id_path)
    except OSError as e:
        logger.debug(f"failed to evaluate {id_path}: {e}")
        raise ResolutionError(f"unable to find device with id {id_path}") from e
    return id_path, device_path
