import unittest

from tenderhub.tenders.flow_policy import (
    BID_STATUSES,
    BID_TRANSITIONS,
    TENDER_STATUSES,
    TENDER_TRANSITIONS,
    accepts_bids,
    can_transition_bid,
    can_transition_tender,
    flow_meta,
    is_tender_editable,
    is_terminal_tender_status,
)


class TenderFlowPolicyTest(unittest.TestCase):
    def test_transition_table_covers_every_status(self) -> None:
        self.assertEqual(set(TENDER_TRANSITIONS), set(TENDER_STATUSES))
        for status, targets in TENDER_TRANSITIONS.items():
            for target in targets:
                self.assertIn(target, TENDER_STATUSES, f"unknown target {status}->{target}")

    def test_only_listed_transitions_are_allowed(self) -> None:
        allowed = {("draft", "open"), ("draft", "cancelled"), ("open", "closed"), ("open", "cancelled")}
        for current in TENDER_STATUSES:
            for requested in TENDER_STATUSES:
                self.assertEqual(
                    can_transition_tender(current, requested),
                    (current, requested) in allowed,
                    f"{current}->{requested}",
                )

    def test_no_transition_is_reversible(self) -> None:
        for current, targets in TENDER_TRANSITIONS.items():
            for target in targets:
                self.assertFalse(can_transition_tender(target, current))

    def test_terminal_and_editable_statuses(self) -> None:
        self.assertTrue(is_terminal_tender_status("closed"))
        self.assertTrue(is_terminal_tender_status("cancelled"))
        self.assertFalse(is_terminal_tender_status("open"))
        self.assertFalse(is_terminal_tender_status("unknown"))
        self.assertTrue(is_tender_editable("draft"))
        self.assertTrue(is_tender_editable("open"))
        self.assertFalse(is_tender_editable("closed"))
        self.assertTrue(accepts_bids("open"))
        self.assertFalse(accepts_bids("draft"))

    def test_flow_meta_describes_the_status(self) -> None:
        meta = flow_meta("draft")
        self.assertEqual(meta["allowed_transitions"], ["open", "cancelled"])
        self.assertTrue(meta["editable"])
        self.assertFalse(meta["accepts_bids"])
        self.assertFalse(meta["terminal"])
        self.assertEqual(flow_meta("closed")["allowed_transitions"], [])
        self.assertTrue(flow_meta("closed")["terminal"])


class BidFlowPolicyTest(unittest.TestCase):
    def test_transition_table_covers_every_status(self) -> None:
        self.assertEqual(set(BID_TRANSITIONS), set(BID_STATUSES))

    def test_rejected_and_withdrawn_are_terminal(self) -> None:
        for requested in BID_STATUSES:
            self.assertFalse(can_transition_bid("rejected", requested))
            self.assertFalse(can_transition_bid("withdrawn", requested))

    def test_active_bids_can_move_forward(self) -> None:
        self.assertTrue(can_transition_bid("submitted", "shortlisted"))
        self.assertTrue(can_transition_bid("submitted", "rejected"))
        self.assertTrue(can_transition_bid("submitted", "withdrawn"))
        self.assertTrue(can_transition_bid("shortlisted", "rejected"))
        self.assertTrue(can_transition_bid("shortlisted", "withdrawn"))
        self.assertFalse(can_transition_bid("shortlisted", "submitted"))
        self.assertFalse(can_transition_bid("submitted", None))


if __name__ == "__main__":
    unittest.main()
