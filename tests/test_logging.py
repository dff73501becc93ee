from __future__ import annotations

import unittest

from linecraft.logging_config import _inject_context, bind_request_id, clear_request_id


class RequestContextTests(unittest.TestCase):
    def tearDown(self) -> None:
        clear_request_id()

    def test_bound_request_id_is_injected(self) -> None:
        bind_request_id("req-42")
        event = _inject_context(None, "info", {"event": "attempt_started"})
        self.assertEqual(event["request_id"], "req-42")

    def test_explicit_request_id_wins(self) -> None:
        bind_request_id("req-42")
        event = _inject_context(None, "info", {"event": "x", "request_id": "other"})
        self.assertEqual(event["request_id"], "other")

    def test_cleared_context_adds_nothing(self) -> None:
        bind_request_id("req-42")
        clear_request_id()
        self.assertNotIn("request_id", _inject_context(None, "info", {"event": "x"}))


if __name__ == "__main__":
    unittest.main()
