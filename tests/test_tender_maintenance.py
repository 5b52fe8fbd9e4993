import unittest
from datetime import datetime, timedelta, timezone

from tenderhub.db import close_db, get_db
from tenderhub.domain.contracts import BidSubmitInput, Caller, TenderCreateInput
from tenderhub.errors import UserActionError
from tenderhub.tenders.deadlines import DeadlineSweeper, _should_start_sweeper
from tenderhub.tenders.workflow import TenderWorkflow
from tests.helpers.marketplace import MarketplaceClient, build_marketplace_app
from tests.helpers.temp_db import TempDbSandbox


BUYER = Caller(id="buyer", roles=("client",), username="buyer")
VENDOR_A = Caller(id="vendor-a", roles=("tenant",), tenants=("t-kigali",), username="vendor-a")


class _FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class WorkflowClockTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="workflow_clock")
        self.app = build_marketplace_app(self._temp_db)
        self.clock = _FrozenClock(datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc))
        self.workflow = TenderWorkflow.from_app(self.app, clock=self.clock)

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_deadline_is_evaluated_at_submission_time(self) -> None:
        with self.app.app_context():
            db = get_db()
            tender = self.workflow.create(
                db,
                BUYER,
                TenderCreateInput(title="Office Chairs", type="rfq", response_deadline="2030-05-01T13:00:00.000000Z"),
            )
            self.workflow.update_status(db, BUYER, tender["id"], "open")

            bid = self.workflow.submit_bid(db, VENDOR_A, BidSubmitInput(tender_id=tender["id"], amount=10.0))
            self.assertEqual(bid["status"], "submitted")
            self.assertEqual(bid["created_at"], "2030-05-01T12:00:00.000000Z")

            self.clock.now += timedelta(hours=1)
            late = Caller(id="vendor-b", roles=("tenant",), tenants=("t-acme",))
            with self.assertRaises(UserActionError) as ctx:
                self.workflow.submit_bid(db, late, BidSubmitInput(tender_id=tender["id"]))
            self.assertEqual(ctx.exception.code, "bid_deadline_passed")

            # Still open: nothing closes it until the sweeper or the owner does.
            self.assertEqual(self.workflow.get_by_id(db, BUYER, tender["id"], depth=0)["status"], "open")

    def test_deadline_instant_blocks_bids_and_is_swept(self) -> None:
        with self.app.app_context():
            db = get_db()
            tender = self.workflow.create(
                db,
                BUYER,
                TenderCreateInput(title="Office Chairs", type="rfq", response_deadline="2030-05-01T12:00:00.000000Z"),
            )
            self.workflow.update_status(db, BUYER, tender["id"], "open")

            with self.assertRaises(UserActionError) as ctx:
                self.workflow.submit_bid(db, VENDOR_A, BidSubmitInput(tender_id=tender["id"]))
            self.assertEqual(ctx.exception.code, "bid_deadline_passed")

            closed = self.workflow.close_expired(db)
            self.assertEqual([item["id"] for item in closed], [tender["id"]])
            self.assertEqual(self.workflow.get_by_id(db, BUYER, tender["id"], depth=0)["status"], "closed")


class CloseExpiredTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="close_expired")
        self.app = build_marketplace_app(self._temp_db)
        self.api = MarketplaceClient(self.app)
        self.expired = self.api.create_open_tender("buyer", title="Expired", response_deadline="2020-01-01T00:00:00Z")
        self.future = self.api.create_open_tender("buyer", title="Future", response_deadline="2999-01-01T00:00:00Z")
        self.no_deadline = self.api.create_open_tender("buyer", title="Open ended")
        self.expired_draft = self.api.create_tender("buyer", title="Draft", response_deadline="2020-01-01T00:00:00Z").get_json()["tender"]
        with self.app.app_context():
            db = get_db()
            with db.transaction():
                # A bid placed before the deadline passed.
                db.execute(
                    "INSERT INTO tender_bids (tender_id, submitted_by, status) VALUES (?, 'vendor-a', 'submitted')",
                    (self.expired["id"],),
                )
                db.execute("UPDATE tenders SET bid_count = 1 WHERE id = ?", (self.expired["id"],))

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def _status(self, tender_id: int) -> str:
        return self.api.get_tender("admin", tender_id).get_json()["tender"]["status"]

    def test_close_expired_command(self) -> None:
        result = self.app.test_cli_runner().invoke(args=["tenders", "close-expired"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn(f"closed {self.expired['tender_number']}", result.output)
        self.assertIn("1 tender(s) closed.", result.output)

        self.assertEqual(self._status(self.expired["id"]), "closed")
        self.assertEqual(self._status(self.future["id"]), "open")
        self.assertEqual(self._status(self.no_deadline["id"]), "open")
        self.assertEqual(self._status(self.expired_draft["id"]), "draft")
        self.assertEqual(self.api.notification_titles("vendor-a")[0], "Tender Closed")

    def test_sweeper_run_once_closes_expired_tenders(self) -> None:
        sweeper = DeadlineSweeper(self.app)
        self.assertEqual(sweeper.run_once(), 1)
        self.assertEqual(sweeper.run_once(), 0)
        self.assertEqual(self._status(self.expired["id"]), "closed")

    def test_sweeper_is_opt_in_and_never_starts_under_tests(self) -> None:
        self.assertFalse(_should_start_sweeper(self.app))
        self.app.config["TENDER_AUTO_CLOSE_ENABLED"] = True
        self.assertFalse(_should_start_sweeper(self.app))
        self.app.config["TESTING"] = False
        self.assertTrue(_should_start_sweeper(self.app))
        self.assertNotIn("deadline_sweeper", self.app.extensions)

    def test_started_sweeper_stops_on_request(self) -> None:
        sweeper = DeadlineSweeper(self.app)
        sweeper.start()
        sweeper.stop()
        sweeper._thread.join(timeout=10)
        self.assertFalse(sweeper._thread.is_alive())

    def test_sweeper_interval_is_bounded(self) -> None:
        self.app.config["TENDER_AUTO_CLOSE_INTERVAL_SECONDS"] = 1
        self.assertEqual(DeadlineSweeper(self.app).interval_seconds, 10)
        self.app.config["TENDER_AUTO_CLOSE_INTERVAL_SECONDS"] = "soon"
        self.assertEqual(DeadlineSweeper(self.app).interval_seconds, 300)


class RecountBidsTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="recount_bids")
        self.app = build_marketplace_app(self._temp_db)
        self.api = MarketplaceClient(self.app)
        self.tender = self.api.create_open_tender("buyer")
        self.api.submit_bid("vendor-a", self.tender["id"])
        self.api.submit_bid("vendor-b", self.tender["id"])
        self.clean = self.api.create_open_tender("buyer", title="Untouched")

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_recount_corrects_drifted_counters(self) -> None:
        with self.app.app_context():
            db = get_db()
            with db.transaction():
                db.execute("UPDATE tenders SET bid_count = 7 WHERE id = ?", (self.tender["id"],))

        result = self.app.test_cli_runner().invoke(args=["tenders", "recount-bids"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn(f"{self.tender['tender_number']}: 7 -> 2", result.output)
        self.assertIn("1 tender(s) corrected.", result.output)

        bid_count = self.api.get_tender("buyer", self.tender["id"]).get_json()["tender"]["bid_count"]
        self.assertEqual(bid_count, 2)

    def test_recount_is_a_no_op_when_consistent(self) -> None:
        with self.app.app_context():
            corrections = self.app.extensions["tender_workflow"].recount_bids(get_db())
        self.assertEqual(corrections, [])


if __name__ == "__main__":
    unittest.main()
