import json
import logging
import os
import unittest
from unittest.mock import patch

from config.logging_config import JsonFormatter, _use_json, configure_logging
from middleware.request_logging import _level_for


class LoggingConfigTests(unittest.TestCase):
    def test_json_formatter_includes_assessment_context(self):
        record = logging.LogRecord("svc", logging.WARNING, __file__, 1, "poll_failed code=%s", ("FETCH_ERROR",), None)
        record.assessment_id = "abc"
        record.error_code = "FETCH_ERROR"

        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload["message"], "poll_failed code=FETCH_ERROR")
        self.assertEqual(payload["level"], "WARNING")
        self.assertEqual(payload["assessment_id"], "abc")
        self.assertEqual(payload["error_code"], "FETCH_ERROR")
        self.assertNotIn("request_id", payload)

    def test_json_enabled_by_env(self):
        with patch.dict(os.environ, {"LOG_JSON": "1"}):
            self.assertTrue(_use_json())
        with patch.dict(os.environ, {"LOG_JSON": "", "RAILWAY_ENVIRONMENT": ""}):
            self.assertFalse(_use_json())

    def test_configure_logging_does_not_stack_handlers(self):
        configure_logging("DEBUG")
        configure_logging("WARNING")

        root = logging.getLogger()
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(root.level, logging.WARNING)
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)
        configure_logging("INFO")

    def test_request_log_level_follows_status(self):
        self.assertEqual(_level_for(200), logging.INFO)
        self.assertEqual(_level_for(404), logging.WARNING)
        self.assertEqual(_level_for(503), logging.ERROR)


if __name__ == "__main__":
    unittest.main()
