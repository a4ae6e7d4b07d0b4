import unittest

from payflow import create_app
from payflow.application import build_request_service
from payflow.config import Config
from payflow.core.event_bus import EventBus
from payflow.db import close_db, get_db
from tests.helpers.fixtures import FakeClock, request_payload, seed_directory
from tests.helpers.temp_db import TempDbSandbox


def _as_json(payload: dict) -> dict:
    data = dict(payload)
    data["total_amount"] = "R$ 1.500,00"
    return data


class RequestRoutesTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="routes")
        self.app = create_app(self._temp_db.make_config(Config))
        self.clock = FakeClock()
        build_request_service(self.app, clock=self.clock, event_bus=EventBus())
        with self.app.app_context():
            seed_directory(get_db())
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def _as(self, user_id: str) -> dict:
        return {"X-User-Id": user_id}

    def _create(self, **overrides) -> dict:
        response = self.client.post(
            "/api/requests",
            json=_as_json(request_payload(**overrides)),
            headers=self._as("u-req"),
        )
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()["request"]

    def _transition(self, user_id: str, request_id: str, **body):
        return self.client.post(
            f"/api/requests/{request_id}/transitions",
            json=body,
            headers=self._as(user_id),
        )

    def test_create_returns_request_with_flow(self) -> None:
        created = self._create()
        self.assertEqual(created["status"], "submitted")
        self.assertEqual(created["total_amount"], "1500.00")
        self.assertEqual(created["supplier_tax_id"], "11.222.333/0001-81")
        self.assertEqual(created["flow"]["allowed_actions"], [])

        detail = self.client.get(f"/api/requests/{created['id']}", headers=self._as("u-mgr-a"))
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.get_json()["request"]["flow"]["allowed_actions"], ["approve", "reject"])

    def test_validation_errors_list_fields(self) -> None:
        response = self.client.post(
            "/api/requests",
            json=_as_json(request_payload(supplier_tax_id="00000000000000", due_date="2026-03-05")),
            headers=self._as("u-req"),
        )
        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertEqual(payload["error"], "tax_id_invalid")
        self.assertEqual(
            {item["field"] for item in payload["fields"]},
            {"supplier_tax_id", "early_due_justification"},
        )
        self.assertTrue(payload["request_id"])

    def test_transition_flow_and_history(self) -> None:
        created = self._create()

        self.clock.advance(hours=3)
        response = self._transition("u-mgr-a", created["id"], action="approve", comment="Conferido")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["request"]["status"], "finance_review")
        self.assertEqual(payload["previous_status"], "submitted")
        self.assertEqual(payload["acting_role"], "manager")

        history = self.client.get(f"/api/requests/{created['id']}/history", headers=self._as("u-req"))
        self.assertEqual(history.status_code, 200)
        body = history.get_json()
        self.assertEqual([item["new_status"] for item in body["items"]], ["submitted", "finance_review"])
        self.assertEqual(body["items"][1]["time_in_previous_status_label"], "3h")
        self.assertEqual(body["days_to_due"], 20)
        self.assertEqual(body["payment_term"], "short")

    def test_transition_error_statuses(self) -> None:
        created = self._create()

        forbidden = self._transition("u-mgr-b", created["id"], action="approve")
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.get_json()["error"], "unauthorized")

        no_comment = self._transition("u-mgr-a", created["id"], action="reject")
        self.assertEqual(no_comment.status_code, 400)
        self.assertEqual(no_comment.get_json()["error"], "comment_required")

        wrong_step = self._transition("u-fin", created["id"], action="mark_paid")
        self.assertEqual(wrong_step.status_code, 409)
        self.assertEqual(wrong_step.get_json()["error"], "invalid_transition")

        missing = self._transition("u-fin", "nao-existe", action="approve")
        self.assertEqual(missing.status_code, 404)

    def test_out_of_scope_detail_is_not_found(self) -> None:
        created = self._create()
        response = self.client.get(f"/api/requests/{created['id']}", headers=self._as("u-mgr-b"))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "request_not_found")

    def test_list_and_counts_are_scoped(self) -> None:
        created = self._create()
        self._create(company_id="emp-b", invoice_number="NF-2")

        mine = self.client.get("/api/requests", headers=self._as("u-mgr-a")).get_json()
        self.assertEqual([item["id"] for item in mine["items"]], [created["id"]])
        self.assertEqual(mine["items"][0]["status_label"], "Aguardando aprovacao do gestor")

        counts = self.client.get("/api/requests/status-counts", headers=self._as("u-fin")).get_json()["counts"]
        self.assertEqual(counts["submitted"], 2)
        self.assertEqual(counts["total"], 2)

        search = self.client.get("/api/requests?search=nf-2", headers=self._as("u-fin")).get_json()
        self.assertEqual(search["total"], 1)

    def test_edit_and_delete(self) -> None:
        created = self._create()
        edited = self.client.put(
            f"/api/requests/{created['id']}",
            json={"description": "Outro servico"},
            headers=self._as("u-req"),
        )
        self.assertEqual(edited.status_code, 200)
        self.assertEqual(edited.get_json()["request"]["description"], "Outro servico")

        not_owner = self.client.delete(f"/api/requests/{created['id']}", headers=self._as("u-req-2"))
        self.assertEqual(not_owner.status_code, 403)

        deleted = self.client.delete(f"/api/requests/{created['id']}", headers=self._as("u-req"))
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(deleted.get_json()["deleted"], created["id"])
        gone = self.client.get(f"/api/requests/{created['id']}", headers=self._as("u-req"))
        self.assertEqual(gone.status_code, 404)

    def test_batch_transition_partition(self) -> None:
        ids = []
        for number in ("NF-10", "NF-11"):
            created = self._create(invoice_number=number)
            self._transition("u-mgr-a", created["id"], action="approve")
            ids.append(created["id"])
        self._transition("u-fin", ids[1], action="reject", comment="Duplicada")

        response = self.client.post(
            "/api/requests/batch-transitions",
            json={"ids": ids, "action": "approve"},
            headers=self._as("u-fin"),
        )
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["succeeded"], [ids[0]])
        self.assertEqual(payload["failed"], [{"id": ids[1], "error": "invalid_transition"}])
        self.assertEqual(payload["total"], 2)

        bad = self.client.post(
            "/api/requests/batch-transitions",
            json={"ids": "x", "action": "approve"},
            headers=self._as("u-fin"),
        )
        self.assertEqual(bad.status_code, 400)
        self.assertEqual(bad.get_json()["error"], "ids_required")

    def test_directory_lists_companies_and_sectors(self) -> None:
        payload = self.client.get("/api/directory", headers=self._as("u-req")).get_json()
        self.assertEqual([item["id"] for item in payload["companies"]], ["emp-a", "emp-b"])
        self.assertEqual(payload["sectors"], [{"id": "set-1", "name": "Administrativo"}])

    def test_meta_is_public(self) -> None:
        response = self.client.get("/api/meta")
        self.assertEqual(response.status_code, 200)
        flow = response.get_json()["flow"]
        self.assertEqual(flow["initial_status"], "submitted")

    def test_missing_identity_is_401(self) -> None:
        response = self.client.get("/api/requests")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"], "auth_required")


if __name__ == "__main__":
    unittest.main()
