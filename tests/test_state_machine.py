import unittest
from datetime import date

from payflow.approvals import state_machine as sm
from tests.helpers.fixtures import START


class TransitionTableTest(unittest.TestCase):
    def _evaluate(self, status, action, role, **kwargs):
        return sm.evaluate(status, action, role, now=START, **kwargs)

    def test_manager_approve_moves_to_finance_review(self) -> None:
        decision = self._evaluate(sm.SUBMITTED, "approve", "manager")
        self.assertTrue(decision.accepted)
        self.assertEqual(decision.next_status, sm.FINANCE_REVIEW)
        self.assertEqual(decision.writes, {"manager_comment": None, "manager_decided_at": START})

    def test_manager_approve_needs_valid_tax_id(self) -> None:
        decision = self._evaluate(sm.SUBMITTED, "approve", "manager", tax_id_valid=False)
        self.assertFalse(decision.accepted)
        self.assertEqual(decision.reason, "tax_id_invalid")

    def test_rejections_need_a_comment(self) -> None:
        for status, role in ((sm.SUBMITTED, "manager"), (sm.FINANCE_REVIEW, "finance")):
            decision = self._evaluate(status, "reject", role, comment="   ")
            self.assertFalse(decision.accepted)
            self.assertEqual(decision.reason, "comment_required")

    def test_finance_reject_writes_finance_fields(self) -> None:
        decision = self._evaluate(sm.FINANCE_REVIEW, "reject", "admin", comment="Duplicada")
        self.assertEqual(decision.next_status, sm.FINANCE_REJECTED)
        self.assertEqual(decision.writes, {"finance_comment": "Duplicada", "finance_decided_at": START})

    def test_schedule_needs_planned_date(self) -> None:
        missing = self._evaluate(sm.APPROVED, "schedule", "finance")
        self.assertEqual(missing.reason, "planned_payment_date_required")

        decision = self._evaluate(sm.APPROVED, "schedule", "finance", planned_payment_date="2026-03-20")
        self.assertEqual(decision.next_status, sm.PAYMENT_SCHEDULED)
        self.assertEqual(decision.writes, {"planned_payment_date": date(2026, 3, 20)})

    def test_mark_paid_keeps_comment_unless_given(self) -> None:
        for status in (sm.APPROVED, sm.PAYMENT_SCHEDULED):
            plain = self._evaluate(status, "mark_paid", "finance")
            self.assertEqual(plain.next_status, sm.PAID)
            self.assertEqual(plain.writes, {})

        commented = self._evaluate(sm.PAYMENT_SCHEDULED, "mark_paid", "finance", comment="TED 123")
        self.assertEqual(commented.writes, {"finance_comment": "TED 123"})

    def test_resubmit_clears_manager_decision(self) -> None:
        decision = self._evaluate(sm.MANAGER_REJECTED, "resubmit", "requester")
        self.assertEqual(decision.next_status, sm.SUBMITTED)
        self.assertEqual(decision.writes, {"manager_comment": None, "manager_decided_at": None})

    def test_wrong_role_for_status_is_rejected(self) -> None:
        self.assertEqual(self._evaluate(sm.FINANCE_REVIEW, "approve", "manager").reason, "role_not_allowed")
        self.assertEqual(self._evaluate(sm.SUBMITTED, "approve", "finance").reason, "role_not_allowed")
        self.assertEqual(self._evaluate(sm.MANAGER_REJECTED, "resubmit", "manager").reason, "role_not_allowed")

    def test_terminal_statuses_accept_nothing(self) -> None:
        for status in (sm.PAID, sm.FINANCE_REJECTED):
            self.assertTrue(sm.is_terminal(status))
            for action in sm.TRANSITION_ACTIONS:
                decision = self._evaluate(status, action, "admin", comment="x")
                self.assertFalse(decision.accepted)
                self.assertEqual(decision.reason, "action_not_in_table")

    def test_unknown_status(self) -> None:
        self.assertEqual(self._evaluate("draft", "approve", "admin").reason, "unknown_status")
        self.assertFalse(sm.is_terminal("draft"))


class FlowHelpersTest(unittest.TestCase):
    def test_allowed_actions_by_role(self) -> None:
        self.assertEqual(sm.allowed_actions(sm.APPROVED, "finance"), ["schedule", "mark_paid"])
        self.assertEqual(sm.allowed_actions(sm.APPROVED, "manager"), [])
        self.assertEqual(sm.allowed_actions(sm.SUBMITTED), ["approve", "reject"])

    def test_comment_and_planned_date_requirements(self) -> None:
        self.assertTrue(sm.requires_comment("reject"))
        self.assertFalse(sm.requires_comment("approve"))
        self.assertTrue(sm.requires_planned_date("schedule"))
        self.assertFalse(sm.requires_planned_date("mark_paid"))

    def test_flow_meta_carries_labels(self) -> None:
        meta = sm.flow_meta(sm.SUBMITTED, "manager")
        self.assertEqual(meta["allowed_actions"], ["approve", "reject"])
        self.assertFalse(meta["terminal"])
        self.assertTrue(meta["label"])
        self.assertEqual(set(meta["action_labels"]), {"approve", "reject"})

    def test_frontend_bundle_mirrors_table(self) -> None:
        bundle = sm.frontend_bundle()
        self.assertEqual(bundle["initial_status"], sm.SUBMITTED)
        self.assertEqual(bundle["transitions"][sm.SUBMITTED]["approve"]["to"], sm.FINANCE_REVIEW)


if __name__ == "__main__":
    unittest.main()
