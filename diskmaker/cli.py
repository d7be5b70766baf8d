"""Command line entry point for the disk maker daemon."""

import argparse
import logging
import signal
import sys
from dataclasses import replace
from typing import List, Optional

from .config_manager import ConfigManager, DiskMakerSettings
from .diskmaker import DiskMaker
from .errors import DiskMakerError
from .events import RecordingEventReporter, build_event_reporter
from .logging import configure_logging
from .status import create_status_app, start_status_server

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='diskmaker',
        description='Symlink matching local disks into per-storage-class directories.'
    )
    parser.add_argument('--settings', help='JSON or KEY=value settings file')
    parser.add_argument('--config-location', help='Declarative disk configuration file')
    parser.add_argument('--symlink-location', help='Directory receiving per-storage-class symlinks')
    parser.add_argument('--interval', type=int, help='Seconds between reconciliation cycles')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING or ERROR')
    parser.add_argument('--dry-run', action='store_true', default=None,
                        help='Discover and match, but do not create directories or symlinks')
    parser.add_argument('--once', action='store_true',
                        help='Run a single reconciliation cycle and exit')
    return parser


def apply_arguments(settings: DiskMakerSettings, args: argparse.Namespace) -> DiskMakerSettings:
    """Override loaded settings with command line flags that were given."""
    overrides = {
        'config_location': args.config_location,
        'symlink_location': args.symlink_location,
        'check_interval': args.interval,
        'log_level': args.log_level,
        'dry_run': args.dry_run,
    }
    return replace(settings, **{key: value for key, value in overrides.items() if value is not None})


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = apply_arguments(ConfigManager(args.settings).load_config(), args)
    except ValueError as e:
        print(f"invalid settings: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level, settings.log_json)

    recorder = RecordingEventReporter(settings.event_history_size)
    reporter = build_event_reporter(settings.event_webhook_url, recorder)
    diskmaker = DiskMaker(settings, reporter)

    try:
        diskmaker.prepare()
    except DiskMakerError as e:
        logger.error(str(e))
        return 1

    if args.once:
        if not diskmaker.tick() or diskmaker.last_cycle.aborted:
            return 1
        return 0

    if settings.status_port:
        start_status_server(create_status_app(diskmaker, recorder), settings.status_host, settings.status_port)

    def _stop(signum=None, frame=None):
        diskmaker.stop()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)

    diskmaker.run()
    logger.info("disk maker stopped")
    return 0
