"""Unit tests for JSON log formatting."""

import json
import logging
import unittest

from flask import Flask, g

from diskmaker.logging import JsonLogFormatter, configure_logging, current_request_id, init_request_logging


class TestJsonLogFormatter(unittest.TestCase):
    """Test cases for JsonLogFormatter."""

    def _record(self, msg, level=logging.INFO, **extra):
        record = logging.LogRecord('diskmaker.materializer', level, __file__, 1, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        payload = json.loads(JsonLogFormatter().format(self._record("symlinking /dev/sdb")))

        self.assertEqual(payload['level'], 'INFO')
        self.assertEqual(payload['logger'], 'diskmaker.materializer')
        self.assertEqual(payload['message'], 'symlinking /dev/sdb')
        self.assertIn('timestamp', payload)
        self.assertNotIn('request_id', payload)

    def test_disk_extras_are_included(self):
        """Disk metadata passed via ``extra`` ends up in the JSON line."""
        record = self._record("error creating symlink", logging.ERROR,
                              storage_class='ssd', device='/dev/sdb', reason='ErrorCreatingSymlink',
                              owner='local-storage/local-disks')

        payload = json.loads(JsonLogFormatter().format(record))

        self.assertEqual(payload['storage_class'], 'ssd')
        self.assertEqual(payload['device'], '/dev/sdb')
        self.assertEqual(payload['reason'], 'ErrorCreatingSymlink')
        self.assertEqual(payload['owner'], 'local-storage/local-disks')

    def test_empty_extras_are_skipped(self):
        payload = json.loads(JsonLogFormatter().format(self._record("msg", device='')))

        self.assertNotIn('device', payload)


class TestRequestLogging(unittest.TestCase):
    """Test cases for the status app request hooks."""

    def setUp(self):
        self.app = Flask(__name__)
        self.app.config['TESTING'] = True
        init_request_logging(self.app)

        @self.app.route('/ok')
        def ok():
            return 'ok'

        @self.app.route('/boom')
        def boom():
            raise RuntimeError("boom")

        self.client = self.app.test_client()

    def test_request_id_outside_request(self):
        self.assertIsNone(current_request_id())

    def test_request_id_is_generated(self):
        response = self.client.get('/ok')

        self.assertEqual(len(response.headers['X-Request-ID']), 32)

    def test_request_complete_is_logged(self):
        """Completed requests are logged with method, path and status."""
        with self.assertLogs(self.app.logger, level='DEBUG') as logs:
            self.client.get('/ok', headers={'X-Request-ID': 'req-1'})

        record = logs.records[-1]
        self.assertEqual(record.getMessage(), 'request complete')
        self.assertEqual(record.request_id, 'req-1')
        self.assertEqual(record.path, '/ok')
        self.assertEqual(record.status_code, 200)
        self.assertIsInstance(record.duration_ms, float)

    def test_request_error_is_logged(self):
        self.app.config['TESTING'] = False
        self.app.config['PROPAGATE_EXCEPTIONS'] = False

        with self.assertLogs(self.app.logger, level='ERROR') as logs:
            response = self.client.get('/boom', headers={'X-Request-ID': 'req-2'})

        self.assertEqual(response.status_code, 500)
        errors = [r for r in logs.records if r.getMessage() == 'request error']
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].request_id, 'req-2')
        self.assertEqual(errors[0].method, 'GET')

    def test_formatter_picks_up_request_id(self):
        with self.app.test_request_context('/ok'):
            g.request_id = 'req-3'
            payload = json.loads(JsonLogFormatter().format(
                logging.LogRecord('diskmaker.status', logging.INFO, __file__, 1, 'msg', None, None)
            ))

        self.assertEqual(payload['request_id'], 'req-3')


class TestConfigureLogging(unittest.TestCase):
    """Test cases for configure_logging."""

    def setUp(self):
        self.root_logger = logging.getLogger()
        self.saved_handlers = list(self.root_logger.handlers)
        self.saved_level = self.root_logger.level

    def tearDown(self):
        self.root_logger.handlers[:] = self.saved_handlers
        self.root_logger.setLevel(self.saved_level)

    def test_configure_json_logging(self):
        handler = configure_logging('debug')

        self.assertEqual(self.root_logger.handlers, [handler])
        self.assertIsInstance(handler.formatter, JsonLogFormatter)
        self.assertEqual(self.root_logger.level, logging.DEBUG)
        self.assertEqual(logging.getLogger('apscheduler').level, logging.WARNING)

    def test_configure_plain_logging(self):
        handler = configure_logging('INFO', json_format=False)

        self.assertNotIsInstance(handler.formatter, JsonLogFormatter)


if __name__ == '__main__':
    unittest.main()
