import json
import logging
import unittest

from tenderhub.db import close_db
from tenderhub.observability import (
    JsonLogFormatter,
    bind_request_id,
    observe_notification_delivery,
    reset_metrics_for_tests,
    set_log_request_id,
)
from tests.helpers.marketplace import MarketplaceClient, build_marketplace_app
from tests.helpers.temp_db import TempDbSandbox


class ObservabilityPrometheusTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="observability_metrics")
        self.app = build_marketplace_app(self._temp_db)
        self.api = MarketplaceClient(self.app)
        self.client = self.api.client

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()
        reset_metrics_for_tests()

    def test_metrics_endpoint_exposes_prometheus_metrics(self) -> None:
        self.client.get("/api/unknown")
        self.api.create_open_tender("buyer", category=["c-furniture"])

        response = self.client.get("/metrics")
        self.assertEqual(response.status_code, 200)
        content_type = response.headers.get("Content-Type") or ""
        self.assertIn("text/plain", content_type)

        payload = response.get_data(as_text=True)
        self.assertIn("http_request_total", payload)
        self.assertIn("http_request_duration_ms_bucket", payload)
        self.assertIn('route="/api/tenders"', payload)
        self.assertIn("domain_event_emitted_total", payload)
        self.assertIn('event_type="TenderCreated"', payload)
        self.assertIn('event_type="TenderStatusChanged"', payload)
        self.assertIn('notification_delivery_total{outcome="delivered"} 3', payload)
        self.assertIn("notification_delivery_ms_bucket", payload)
        self.assertIn("push_delivery_total", payload)

    def test_notification_histogram_counts_every_outcome(self) -> None:
        observe_notification_delivery("delivered", 2.0)
        observe_notification_delivery("failed", 700.0)

        payload = self.client.get("/metrics").get_data(as_text=True)
        self.assertIn('notification_delivery_ms_bucket{le="5"} 1', payload)
        self.assertIn('notification_delivery_ms_bucket{le="+Inf"} 2', payload)
        self.assertIn("notification_delivery_ms_count 2", payload)

    def test_log_formatter_includes_request_id_outside_request_context(self) -> None:
        set_log_request_id("worker-req-123")
        formatter = JsonLogFormatter()
        record = logging.LogRecord(
            name="tenderhub",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="worker_log",
            args=(),
            exc_info=None,
        )
        parsed = json.loads(formatter.format(record))
        self.assertEqual(parsed.get("request_id"), "worker-req-123")
        self.assertEqual(parsed.get("logger"), "tenderhub")
        self.assertEqual(parsed.get("message"), "worker_log")

    def test_log_formatter_carries_extra_fields(self) -> None:
        formatter = JsonLogFormatter()
        record = logging.LogRecord(
            name="tenderhub.tenders",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="tender_bid_count_corrected",
            args=(),
            exc_info=None,
        )
        record.tender_id = 7
        record.actual = 2
        with bind_request_id("sweep-1"):
            parsed = json.loads(formatter.format(record))
        self.assertEqual(parsed.get("request_id"), "sweep-1")
        self.assertEqual(parsed.get("level"), "warning")
        self.assertEqual((parsed.get("tender_id"), parsed.get("actual")), (7, 2))

    def test_health_reports_database_and_dispatch_mode(self) -> None:
        self.client.get("/api/unknown")

        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json() or {}
        self.assertEqual(payload.get("status"), "ok")
        self.assertEqual(payload.get("db"), "sqlite")
        self.assertEqual(payload.get("notifications"), {"dispatch_mode": "inline", "push_enabled": False})
        self.assertGreaterEqual(int((payload.get("metrics") or {}).get("requests_total", 0)), 1)


if __name__ == "__main__":
    unittest.main()
