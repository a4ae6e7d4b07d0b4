import unittest
from datetime import date, timedelta
from decimal import Decimal

from payflow.approvals.history import (
    build_creation_record,
    build_transition_record,
    classify_payment_term,
    format_duration,
    resolve_display_name,
)
from payflow.domain.contracts import Actor, PaymentRequest
from tests.helpers.fixtures import START, VALID_TAX_ID


def _request(**overrides) -> PaymentRequest:
    values = {
        "id": "req-1",
        "company_id": "emp-a",
        "requester_id": "u-req",
        "sector_id": "set-1",
        "supplier_name": "Fornecedor Alfa Ltda",
        "supplier_tax_id": VALID_TAX_ID,
        "invoice_number": "NF-1",
        "issue_date": date(2026, 2, 25),
        "due_date": date(2026, 3, 22),
        "description": "Servico",
        "total_amount": Decimal("10.00"),
        "status": "submitted",
        "submitted_at": START,
    }
    values.update(overrides)
    return PaymentRequest(**values)


class CreationRecordTest(unittest.TestCase):
    def test_creation_record_starts_the_trail(self) -> None:
        record = build_creation_record(_request(), actor_id="u-req", actor_name="Ana", now=START)
        self.assertIsNone(record.previous_status)
        self.assertEqual(record.new_status, "submitted")
        self.assertEqual(record.days_to_due, 20)
        self.assertIsNone(record.time_in_previous_status)
        self.assertEqual(record.created_at, START)


class TransitionRecordTest(unittest.TestCase):
    def _first(self):
        return build_creation_record(_request(), actor_id="u-req", actor_name="Ana", now=START)

    def test_elapsed_time_since_previous_record(self) -> None:
        record = build_transition_record(
            request_id="req-1",
            previous_status="submitted",
            new_status="finance_review",
            actor_id="u-mgr-a",
            actor_name="Marcos",
            now=START + timedelta(hours=5),
            last_record=self._first(),
        )
        self.assertEqual(record.time_in_previous_status, timedelta(hours=5))
        self.assertIsNone(record.rejection_reason)

    def test_same_instant_is_pushed_after_previous_record(self) -> None:
        record = build_transition_record(
            request_id="req-1",
            previous_status="submitted",
            new_status="finance_review",
            actor_id="u-mgr-a",
            actor_name="Marcos",
            now=START,
            last_record=self._first(),
        )
        self.assertEqual(record.created_at, START + timedelta(microseconds=1))
        self.assertGreater(record.time_in_previous_status, timedelta(0))

    def test_rejection_reason_defaults_to_comment(self) -> None:
        record = build_transition_record(
            request_id="req-1",
            previous_status="submitted",
            new_status="manager_rejected",
            actor_id="u-mgr-a",
            actor_name="Marcos",
            now=START + timedelta(minutes=3),
            last_record=self._first(),
            comment="  Nota ilegivel ",
        )
        self.assertEqual(record.rejection_reason, "Nota ilegivel")

    def test_first_transition_without_previous_record(self) -> None:
        record = build_transition_record(
            request_id="req-1",
            previous_status="approved",
            new_status="paid",
            actor_id="u-fin",
            actor_name="Fernanda",
            now=START,
            last_record=None,
        )
        self.assertIsNone(record.time_in_previous_status)
        self.assertEqual(record.to_dict()["time_in_previous_status_seconds"], None)


class DisplayHelpersTest(unittest.TestCase):
    def test_classify_payment_term(self) -> None:
        self.assertEqual(classify_payment_term(10), "short")
        self.assertEqual(classify_payment_term(25), "ideal")
        self.assertEqual(classify_payment_term(30), "ideal")
        self.assertEqual(classify_payment_term(31), "comfortable")
        self.assertIsNone(classify_payment_term(None))

    def test_format_duration(self) -> None:
        self.assertEqual(format_duration(None), "")
        self.assertEqual(format_duration(timedelta(seconds=20)), "< 1min")
        self.assertEqual(format_duration(timedelta(minutes=45)), "45min")
        self.assertEqual(format_duration(timedelta(hours=2, minutes=5)), "2h 5min")
        self.assertEqual(format_duration(timedelta(days=3, hours=4, minutes=9)), "3d 4h")

    def test_resolve_display_name_prefers_lookup(self) -> None:
        actor = Actor(user_id="u-1", display_name="Cache")
        self.assertEqual(resolve_display_name(actor, lambda _uid: "Diretorio"), "Diretorio")
        self.assertEqual(resolve_display_name(actor, lambda _uid: None), "Cache")
        self.assertEqual(resolve_display_name(Actor(user_id="u-2")), "u-2")


if __name__ == "__main__":
    unittest.main()
