"""
Status endpoint

Exposes the last reconciliation cycle and recently reported events over HTTP
so node health checks can see whether disks are being linked.
"""

import logging
import threading
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request

from .events import RecordingEventReporter, summarize_events
from .logging import init_request_logging

logger = logging.getLogger(__name__)

status_bp = Blueprint('status', __name__)

MAX_EVENTS_LIMIT = 500


def _diskmaker():
    return current_app.config['DISKMAKER']


def _recorder() -> Optional[RecordingEventReporter]:
    return current_app.config.get('EVENT_RECORDER')


@status_bp.route('/healthz')
def healthz():
    """Report the last cycle; 503 until a cycle has completed without aborting."""
    cycle = _diskmaker().last_cycle
    if cycle is None:
        return jsonify({'status': 'starting', 'last_cycle': None}), 503
    if cycle.aborted:
        return jsonify({'status': 'degraded', 'last_cycle': cycle.to_dict()}), 503
    return jsonify({'status': 'ok', 'last_cycle': cycle.to_dict()})


@status_bp.route('/events')
def recent_events():
    """Return recently reported events, newest last."""
    recorder = _recorder()
    if recorder is None:
        return jsonify({'error': 'event history is disabled'}), 404

    try:
        limit = int(request.args.get('limit', 100))
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400
    limit = max(1, min(limit, MAX_EVENTS_LIMIT))

    records = recorder.records()[-limit:]
    return jsonify({
        'events': [
            dict(event.to_dict(), owner=owner.key) for event, owner in records
        ],
        'counts': summarize_events(event for event, _ in records),
    })


def create_status_app(diskmaker, recorder: Optional[RecordingEventReporter] = None) -> Flask:
    """Build the Flask app serving the status endpoints."""
    app = Flask(__name__)
    app.config['DISKMAKER'] = diskmaker
    app.config['EVENT_RECORDER'] = recorder
    init_request_logging(app)
    app.register_blueprint(status_bp)
    return app


def start_status_server(app: Flask, host: str, port: int) -> threading.Thread:
    """Serve ``app`` from a daemon thread."""
    thread = threading.Thread(
        target=app.run,
        kwargs={'host': host, 'port': port, 'use_reloader': False, 'threaded': True},
        daemon=True,
        name='DiskMakerStatus'
    )
    thread.start()
    logger.info(f"status endpoint listening on {host}:{port}")
    return thread
