import unittest
from unittest.mock import patch

from tenderhub.db import close_db, get_db
from tenderhub.infrastructure.repositories import TenderRepository
from tenderhub.ui_strings import error_message
from tests.helpers.marketplace import MarketplaceClient, as_user, build_marketplace_app
from tests.helpers.temp_db import TempDbSandbox


class TenderLifecycleApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="tender_lifecycle")
        self.app = build_marketplace_app(self._temp_db)
        self.api = MarketplaceClient(self.app)
        self.client = self.api.client

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def _notification_count(self) -> int:
        with self.app.app_context():
            row = get_db().execute("SELECT COUNT(*) AS total FROM notifications").fetchone()
            return int(row["total"])

    def test_create_starts_in_draft_with_generated_number(self) -> None:
        response = self.api.create_tender("buyer", category=["c-furniture"])
        self.assertEqual(response.status_code, 201)

        tender = response.get_json()["tender"]
        self.assertEqual(tender["title"], "Office Chairs")
        self.assertEqual(tender["status"], "draft")
        self.assertEqual(tender["bid_count"], 0)
        self.assertRegex(tender["tender_number"], r"^TND-\d{8}-[A-Z0-9]{4}$")
        self.assertEqual(tender["category"], ["c-furniture"])
        self.assertEqual(tender["created_by"], "buyer")
        self.assertIsNone(tender["tenant"])
        self.assertEqual(tender["description"], {"text": "Forty chairs"})
        self.assertEqual(tender["contact_preference"], "email")
        self.assertEqual(self._notification_count(), 0)

    def test_tenant_defaults_to_first_membership(self) -> None:
        tender = self.api.create_tender("vendor-d").get_json()["tender"]
        self.assertEqual(tender["tenant"], "t-acme")

        explicit = self.api.create_tender("vendor-d", tenant="t-kigali")
        self.assertEqual(explicit.status_code, 201)
        self.assertEqual(explicit.get_json()["tender"]["tenant"], "t-kigali")

    def test_tenant_must_be_a_membership_and_exist(self) -> None:
        foreign = self.api.create_tender("vendor-b", tenant="t-kigali")
        self.assertEqual(foreign.status_code, 403)
        self.assertEqual(foreign.get_json()["error"], "tenant_membership_required")

        missing = self.api.create_tender("admin", tenant="t-missing")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.get_json()["kind"], "not_found")

    def test_create_validation_errors(self) -> None:
        short = self.api.create_tender("buyer", title="ab")
        self.assertEqual(short.status_code, 400)
        payload = short.get_json()
        self.assertEqual(payload["error"], "title_invalid")
        self.assertEqual(payload["kind"], "bad_request")
        self.assertEqual(payload["message"], "Title must be between 3 and 200 characters.")

        bad_type = self.api.create_tender("buyer", type="auction")
        self.assertEqual(bad_type.get_json()["error"], "type_invalid")

        too_many = self.api.create_tender("buyer", documents=[{"file": n} for n in range(11)])
        self.assertEqual(too_many.get_json()["error"], "documents_limit_exceeded")

    def test_tender_numbers_are_unique(self) -> None:
        numbers = {self.api.create_tender("buyer").get_json()["tender"]["tender_number"] for _ in range(5)}
        self.assertEqual(len(numbers), 5)

    def test_tender_number_collision_at_insert_is_retried(self) -> None:
        taken = self.api.create_tender("buyer").get_json()["tender"]["tender_number"]
        lifecycle = self.app.extensions["tender_workflow"].lifecycle
        numbers = iter([taken, "TND-00000000-FRSH"])

        with patch.object(TenderRepository, "tender_number_exists", return_value=False), patch.object(
            lifecycle, "number_factory", lambda: next(numbers)
        ):
            response = self.api.create_tender("buyer")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.get_json()["tender"]["tender_number"], "TND-00000000-FRSH")

    def test_tender_number_exhausted_when_every_insert_collides(self) -> None:
        taken = self.api.create_tender("buyer").get_json()["tender"]["tender_number"]
        lifecycle = self.app.extensions["tender_workflow"].lifecycle

        with patch.object(TenderRepository, "tender_number_exists", return_value=False), patch.object(
            lifecycle, "number_factory", lambda: taken
        ):
            response = self.api.create_tender("buyer")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()["error"], "tender_number_exhausted")
        self.assertEqual(response.get_json()["kind"], "system_error")
        self.assertEqual(response.get_json()["message"], error_message("tender_number_exhausted"))
        with self.app.app_context():
            self.assertEqual(get_db().execute("SELECT COUNT(*) AS total FROM tenders").fetchone()["total"], 1)

    def test_publish_notifies_vendors_owning_products_in_category(self) -> None:
        tender = self.api.create_open_tender("buyer", category=["c-furniture"])
        self.assertEqual(tender["status"], "open")

        for vendor in ("vendor-a", "vendor-b", "vendor-d"):
            notifications = self.api.notifications(vendor)
            self.assertEqual(len(notifications), 1, vendor)
            self.assertEqual(notifications[0]["title"], "New Tender Published")
            self.assertEqual(notifications[0]["message"], '"Office Chairs" is now open for bids.')
            self.assertEqual(notifications[0]["url"], f"/tenders/{tender['id']}")
            self.assertEqual(notifications[0]["type"], "tender")
            self.assertEqual(notifications[0]["data"], {"tender_id": tender["id"], "status": "open"})
        self.assertEqual(self.api.notifications("vendor-c"), [])
        self.assertEqual(self.api.notifications("buyer"), [])

    def test_publish_excludes_the_acting_vendor(self) -> None:
        self.api.create_open_tender("vendor-b", category=["c-furniture"])
        self.assertEqual(self.api.notifications("vendor-b"), [])
        self.assertEqual(self.api.notification_titles("vendor-a"), ["New Tender Published"])
        self.assertEqual(self.api.notification_titles("vendor-d"), ["New Tender Published"])

    def test_publish_without_category_notifies_every_vendor(self) -> None:
        self.api.create_open_tender("buyer")
        for vendor in ("vendor-a", "vendor-b", "vendor-c", "vendor-d"):
            self.assertEqual(self.api.notification_titles(vendor), ["New Tender Published"], vendor)
        self.assertEqual(self.api.notifications("buyer-2"), [])
        self.assertEqual(self.api.notifications("admin"), [])

    def test_publish_with_unmatched_category_notifies_nobody(self) -> None:
        with self.app.app_context():
            db = get_db()
            with db.transaction():
                db.execute("INSERT INTO categories (id, name, slug) VALUES ('c-empty', 'Empty', 'empty')")
        self.api.create_open_tender("buyer", category=["c-empty"])
        self.assertEqual(self._notification_count(), 0)

    def test_bad_transition_names_both_states_and_keeps_status(self) -> None:
        tender = self.api.create_tender("buyer").get_json()["tender"]

        response = self.api.set_tender_status("buyer", tender["id"], "closed")
        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertEqual(payload["error"], "bad_transition")
        self.assertEqual(payload["kind"], "bad_request")
        self.assertEqual(payload["message"], 'Cannot transition from "draft" to "closed".')
        self.assertEqual(payload["current_status"], "draft")
        self.assertEqual(payload["requested_status"], "closed")

        current = self.api.get_tender("buyer", tender["id"]).get_json()["tender"]
        self.assertEqual(current["status"], "draft")

    def test_terminal_statuses_cannot_move(self) -> None:
        tender = self.api.create_open_tender("buyer")
        self.assertEqual(self.api.set_tender_status("buyer", tender["id"], "cancelled").status_code, 200)
        for status in ("open", "closed", "cancelled"):
            response = self.api.set_tender_status("buyer", tender["id"], status)
            self.assertEqual(response.status_code, 400, status)
            self.assertEqual(response.get_json()["error"], "bad_transition")

    def test_unknown_or_initial_status_is_rejected(self) -> None:
        tender = self.api.create_tender("buyer").get_json()["tender"]
        for status in ("archived", "draft", None):
            response = self.api.set_tender_status("buyer", tender["id"], status)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.get_json()["error"], "status_invalid")

    def test_only_owner_or_admin_changes_status(self) -> None:
        tender = self.api.create_tender("buyer").get_json()["tender"]

        forbidden = self.api.set_tender_status("vendor-a", tender["id"], "open")
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.get_json()["kind"], "forbidden")
        self.assertEqual(forbidden.get_json()["message"], error_message("permission_denied"))

        allowed = self.api.set_tender_status("admin", tender["id"], "open")
        self.assertEqual(allowed.status_code, 200)
        self.assertEqual(allowed.get_json()["tender"]["status"], "open")

    def test_status_change_on_missing_tender(self) -> None:
        response = self.api.set_tender_status("buyer", 9999, "open")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "tender_not_found")

    def test_update_changes_fields_but_not_status_or_bid_count(self) -> None:
        tender = self.api.create_tender("buyer").get_json()["tender"]
        response = self.client.patch(
            f"/api/tenders/{tender['id']}",
            json={
                "title": "Office Chairs (ergonomic)",
                "category": ["c-stationery"],
                "contact_preference": "chat",
                "status": "closed",
                "bid_count": 12,
                "tender_number": "TND-00000000-AAAA",
            },
            headers=as_user("buyer"),
        )
        self.assertEqual(response.status_code, 200)
        updated = response.get_json()["tender"]
        self.assertEqual(updated["title"], "Office Chairs (ergonomic)")
        self.assertEqual(updated["category"], ["c-stationery"])
        self.assertEqual(updated["contact_preference"], "chat")
        self.assertEqual(updated["status"], "draft")
        self.assertEqual(updated["bid_count"], 0)
        self.assertEqual(updated["tender_number"], tender["tender_number"])
        self.assertEqual(updated["created_by"], "buyer")

    def test_update_is_refused_once_frozen(self) -> None:
        tender = self.api.create_open_tender("buyer")
        patch_ok = self.client.patch(f"/api/tenders/{tender['id']}", json={"title": "Still open"}, headers=as_user("buyer"))
        self.assertEqual(patch_ok.status_code, 200)

        self.api.set_tender_status("buyer", tender["id"], "closed")
        frozen = self.client.patch(f"/api/tenders/{tender['id']}", json={"title": "Too late"}, headers=as_user("buyer"))
        self.assertEqual(frozen.status_code, 400)
        self.assertEqual(frozen.get_json()["error"], "tender_not_editable")

    def test_update_by_non_owner_is_forbidden(self) -> None:
        tender = self.api.create_open_tender("buyer")
        response = self.client.patch(
            f"/api/tenders/{tender['id']}",
            json={"title": "Hijacked"},
            headers=as_user("vendor-a"),
        )
        self.assertEqual(response.status_code, 403)

        by_admin = self.client.patch(f"/api/tenders/{tender['id']}", json={"title": "Moderated"}, headers=as_user("admin"))
        self.assertEqual(by_admin.status_code, 200)
        self.assertEqual(by_admin.get_json()["tender"]["title"], "Moderated")


class TenderReadApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="tender_read")
        self.app = build_marketplace_app(self._temp_db)
        self.api = MarketplaceClient(self.app)
        self.client = self.api.client

        self.draft = self.api.create_tender("buyer", title="Draft tender", type="rfp").get_json()["tender"]
        self.open = self.api.create_open_tender("buyer", title="Open tender", category=["c-furniture"])
        self.vendor_draft = self.api.create_tender("vendor-b", title="Store tender").get_json()["tender"]

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def _list(self, user_id: str, **params) -> dict:
        response = self.client.get("/api/tenders", query_string=params, headers=as_user(user_id))
        self.assertEqual(response.status_code, 200, response.get_json())
        return response.get_json()

    def _titles(self, payload: dict) -> set:
        return {tender["title"] for tender in payload["tenders"]}

    def test_hidden_single_read_is_forbidden(self) -> None:
        response = self.api.get_tender("vendor-a", self.draft["id"])
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["kind"], "forbidden")

        self.assertEqual(self.api.get_tender("vendor-a", self.open["id"]).status_code, 200)
        self.assertEqual(self.api.get_tender("buyer", self.draft["id"]).status_code, 200)
        self.assertEqual(self.api.get_tender("admin", self.vendor_draft["id"]).status_code, 200)

    def test_missing_tender_is_not_found(self) -> None:
        response = self.api.get_tender("buyer", 4242)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "tender_not_found")

    def test_single_read_carries_flow_metadata(self) -> None:
        payload = self.api.get_tender("buyer", self.draft["id"]).get_json()
        self.assertEqual(payload["flow"]["allowed_transitions"], ["open", "cancelled"])
        self.assertTrue(payload["flow"]["editable"])
        self.assertFalse(payload["flow"]["terminal"])

    def test_single_read_expands_references(self) -> None:
        shallow = self.api.get_tender("vendor-a", self.open["id"], depth=0).get_json()["tender"]
        self.assertEqual(shallow["created_by"], "buyer")
        self.assertEqual(shallow["category"], ["c-furniture"])

        expanded = self.api.get_tender("vendor-a", self.open["id"], depth=1).get_json()["tender"]
        self.assertEqual(expanded["created_by"]["id"], "buyer")
        self.assertEqual(expanded["created_by"]["email"], "buyer@tenderhub.test")
        self.assertEqual(expanded["category"][0]["name"], "Office Furniture")

        store = self.api.get_tender("vendor-b", self.vendor_draft["id"], depth=1).get_json()["tender"]
        self.assertEqual(store["tenant"]["name"], "Acme Office Supply")

    def test_list_scopes_by_caller(self) -> None:
        self.assertEqual(self._titles(self._list("vendor-a")), {"Open tender"})
        self.assertEqual(self._titles(self._list("buyer")), {"Draft tender", "Open tender"})
        self.assertEqual(self._titles(self._list("vendor-b")), {"Open tender", "Store tender"})
        self.assertEqual(self._titles(self._list("admin")), {"Draft tender", "Open tender", "Store tender"})

    def test_list_mine_and_filters(self) -> None:
        self.assertEqual(self._titles(self._list("vendor-b", mine="true")), {"Store tender"})
        self.assertEqual(self._titles(self._list("buyer", type="rfp")), {"Draft tender"})
        self.assertEqual(self._titles(self._list("buyer", status="open")), {"Open tender"})
        self.assertEqual(self._titles(self._list("admin", tenant_id="t-acme")), {"Store tender"})
        self.assertEqual(self._titles(self._list("vendor-a", status="draft")), set())

    def test_list_rejects_unknown_filter_values(self) -> None:
        response = self.client.get("/api/tenders?status=archived", headers=as_user("buyer"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "status_invalid")

    def test_list_pagination(self) -> None:
        first = self._list("admin", limit=2, page=1)
        second = self._list("admin", limit=2, page=2)
        self.assertEqual(first["total_docs"], 3)
        self.assertEqual(first["total_pages"], 2)
        self.assertEqual(first["limit"], 2)
        self.assertEqual(len(first["tenders"]), 2)
        self.assertEqual(len(second["tenders"]), 1)
        ids = [tender["id"] for tender in first["tenders"] + second["tenders"]]
        self.assertEqual(len(set(ids)), 3)
        # newest first
        self.assertEqual(first["tenders"][0]["id"], self.vendor_draft["id"])

    def test_list_default_depth_expands_owner(self) -> None:
        payload = self._list("vendor-a")
        self.assertEqual(payload["tenders"][0]["created_by"]["id"], "buyer")
        flat = self._list("vendor-a", depth=0)
        self.assertEqual(flat["tenders"][0]["created_by"], "buyer")


if __name__ == "__main__":
    unittest.main()
