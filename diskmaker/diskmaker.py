"""
Disk Maker

Reads the declarative disk configuration and symlinks matching local disks
into a per-storage-class directory from which the local volume provisioner
picks them up. Only stable device names are used where the host provides them.
"""

import logging
import os
import threading
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config_manager import DiskMakerSettings
from .device_enumerator import DeviceEnumerator
from .disk_config import load_disk_config
from .errors import ConfigError, DiskMakerError, NoMatchingDevicesError
from .events import EventReporter, NullEventReporter
from .matcher import SelectionMatcher
from .materializer import SYMLINK_DIR_MODE, SymlinkMaterializer
from .models import CycleSummary, DiskConfig, new_event
from .system_executor import SystemCommandExecutor

logger = logging.getLogger(__name__)

TICK_JOB_ID = 'diskmaker_tick'
CONFIG_WATCH_JOB_ID = 'diskmaker_config_watch'


class DiskMaker:
    """Runs discovery, matching and symlinking once per tick."""

    def __init__(self,
                 settings: DiskMakerSettings,
                 reporter: Optional[EventReporter] = None,
                 executor: Optional[SystemCommandExecutor] = None):
        self.settings = settings
        self.reporter = reporter or NullEventReporter()
        executor = executor or SystemCommandExecutor(
            dry_run=settings.dry_run, timeout=settings.command_timeout
        )
        self.enumerator = DeviceEnumerator(executor, settings.disk_by_id_glob)
        self.matcher = SelectionMatcher(self.reporter, settings.rootfs_dir, dry_run=settings.dry_run)
        self.materializer = SymlinkMaterializer(
            settings.symlink_location, self.reporter, dry_run=settings.dry_run
        )

        self.last_cycle: Optional[CycleSummary] = None
        self._cycle_lock = threading.Lock()
        self._config_mtime: Optional[float] = None
        self._scheduler: Optional[BlockingScheduler] = None

    def prepare(self) -> None:
        """
        Create the symlink root directory.

        Raises:
            DiskMakerError: If the directory cannot be created
        """
        try:
            os.makedirs(self.settings.symlink_location, SYMLINK_DIR_MODE, exist_ok=True)
        except OSError as e:
            raise DiskMakerError(
                f"error creating local-storage directory {self.settings.symlink_location}: {e}"
            ) from e

    def reconcile(self, config: DiskConfig) -> None:
        """
        Run one discovery, match and symlink pass for ``config``.

        Results are only observable through reported events, the log and
        ``last_cycle``.
        """
        owner = config.owner
        summary = CycleSummary(started=datetime.now())

        try:
            inventory = self.enumerator.inventory()
            summary.unmounted_devices = len(inventory.unmounted_devices)
            summary.stable_identifiers = len(inventory.stable_identifiers)

            device_map = self.matcher.match(
                config, inventory.unmounted_devices, inventory.stable_identifiers
            )
            summary.assignments = sum(len(locations) for locations in device_map.values())
            if not device_map:
                raise NoMatchingDevicesError("found empty matching device list")

        except DiskMakerError as e:
            msg = str(e)
            logger.error(msg, extra={'reason': e.reason, 'owner': owner.key})
            self.reporter.report(new_event(e.reason, msg), owner)
            summary.aborted = True
            summary.abort_reason = e.reason
            summary.finished = datetime.now()
            self.last_cycle = summary
            return

        for state in self.materializer.materialize(device_map, owner):
            summary.record_link_state(state)

        summary.finished = datetime.now()
        self.last_cycle = summary
        logger.debug(f"cycle finished in {summary.duration_ms}ms", extra={'owner': owner.key})

    def tick(self) -> bool:
        """
        Load the disk configuration and reconcile it.

        A tick that starts while another is still running is skipped.

        Returns:
            True if a reconciliation ran
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("previous cycle still running, skipping tick")
            return False

        try:
            self._config_mtime = self._read_config_mtime()
            try:
                config = load_disk_config(self.settings.config_location)
            except ConfigError as e:
                logger.error(f"error loading configuration: {e}")
                return False
            self.reconcile(config)
            return True
        finally:
            self._cycle_lock.release()

    def check_config_changed(self) -> bool:
        """Run a tick right away when the configuration file changed since the last one."""
        mtime = self._read_config_mtime()
        if mtime is None or mtime == self._config_mtime:
            return False
        logger.info(f"configuration {self.settings.config_location} changed, reconciling")
        return self.tick()

    def _read_config_mtime(self) -> Optional[float]:
        try:
            return os.stat(self.settings.config_location).st_mtime
        except OSError:
            return None

    def create_scheduler(self) -> BlockingScheduler:
        """Build the scheduler driving periodic and config-change ticks."""
        scheduler = BlockingScheduler()
        scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self.settings.check_interval),
            id=TICK_JOB_ID,
            name='Disk Maker reconcile',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        scheduler.add_job(
            self.check_config_changed,
            IntervalTrigger(seconds=self.settings.config_poll_interval),
            id=CONFIG_WATCH_JOB_ID,
            name='Disk Maker config watch',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        return scheduler

    def run(self) -> None:
        """Block, reconciling on every tick until ``stop`` is called."""
        self._scheduler = self.create_scheduler()
        logger.info(
            f"disk maker started: config {self.settings.config_location}, "
            f"symlinks in {self.settings.symlink_location}, every {self.settings.check_interval}s"
        )
        self._scheduler.start()

    def stop(self) -> None:
        """Stop the scheduler; a running cycle is allowed to finish."""
        if self._scheduler is not None and self._scheduler.running:
            logger.info("exiting, stop requested")
            self._scheduler.shutdown(wait=False)
