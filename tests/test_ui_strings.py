import unittest

from payflow.approvals import state_machine
from payflow.errors import AppError
from payflow.ui_strings import ACTION_LABELS, MESSAGES, ROLE_LABELS, STATUS_ITEMS, error_message, status_label


class UiStringsTest(unittest.TestCase):
    def test_every_status_has_label_and_description(self) -> None:
        keys = [item["key"] for item in STATUS_ITEMS]
        self.assertEqual(sorted(keys), sorted(state_machine.STATUSES))
        for item in STATUS_ITEMS:
            self.assertTrue((item.get("label") or "").strip(), f"label vazio: {item['key']}")
            self.assertTrue((item.get("description") or "").strip(), f"descricao vazia: {item['key']}")

    def test_every_action_and_role_has_label(self) -> None:
        for action in state_machine.REQUEST_ACTIONS:
            self.assertIn(action, ACTION_LABELS)
        self.assertEqual(set(ROLE_LABELS), {"requester", "manager", "finance", "admin"})

    def test_error_classes_point_to_existing_messages(self) -> None:
        pending = list(AppError.__subclasses__())
        seen = [AppError]
        while pending:
            cls = pending.pop()
            seen.append(cls)
            pending.extend(cls.__subclasses__())
        for cls in seen:
            self.assertIn(cls.default_message_key, MESSAGES["error"], cls.__name__)

    def test_validation_keys_have_messages(self) -> None:
        keys = (
            "company_required",
            "sector_required",
            "supplier_name_required",
            "invoice_number_required",
            "description_required",
            "tax_id_invalid",
            "issue_date_required",
            "due_date_required",
            "date_invalid",
            "amount_invalid",
            "early_due_justification_required",
            "payment_method_invalid",
            "bank_account_required",
            "holder_required",
            "titular_divergence_justification_required",
            "slip_document_required",
            "invoice_document_required",
            "comment_required",
            "planned_payment_date_required",
        )
        for key in keys:
            self.assertNotEqual(error_message(key), key, key)

    def test_unknown_status_falls_back_to_key(self) -> None:
        self.assertEqual(status_label("draft"), "draft")
        self.assertEqual(status_label(None, "-"), "-")


if __name__ == "__main__":
    unittest.main()
