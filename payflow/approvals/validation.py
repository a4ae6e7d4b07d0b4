"""Field validation for payment requests.

Every function here is total: bad input gives ``False``, ``None`` or a list of
problems, never an exception. Turning problems into user-facing errors is the
caller's job (see ``payflow.errors.ValidationError.for_fields``).
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Tuple

from payflow.domain.contracts import PaymentRequestInput


EARLY_DUE_DAYS = 10
TAX_ID_LENGTH = 14

PAYMENT_METHODS = {"bank_transfer", "bank_slip"}
PAYMENT_METHOD_ALIASES = {
    "deposito_bancario": "bank_transfer",
    "deposito": "bank_transfer",
    "transferencia": "bank_transfer",
    "boleto": "bank_slip",
}

_NON_DIGITS = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")
_CENTS = Decimal("0.01")

Problem = Tuple[str, str]


def normalize_digits(value: Any) -> str:
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def _check_digit(digits: str) -> int:
    total = 0
    for index, char in enumerate(reversed(digits)):
        weight = 2 + (index % 8)
        total += int(char) * weight
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_tax_id(value: Any) -> bool:
    digits = normalize_digits(value)
    if len(digits) != TAX_ID_LENGTH:
        return False
    if len(set(digits)) == 1:
        return False
    first = _check_digit(digits[:12])
    second = _check_digit(digits[:12] + str(first))
    return digits[12:] == f"{first}{second}"


def format_tax_id(raw: Any) -> str:
    """Punctuate a (possibly partial) tax id as ``NN.NNN.NNN/NNNN-NN``."""
    digits = normalize_digits(raw)[:TAX_ID_LENGTH]
    formatted = re.sub(r"^(\d{2})(\d)", r"\1.\2", digits, count=1)
    formatted = re.sub(r"^(\d{2})\.(\d{3})(\d)", r"\1.\2.\3", formatted, count=1)
    formatted = re.sub(r"\.(\d{3})(\d)", r".\1/\2", formatted, count=1)
    formatted = re.sub(r"(\d{4})(\d)", r"\1-\2", formatted, count=1)
    return formatted


def parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def is_early_due_date(submission_instant: Any, due_date: Any, threshold_days: int = EARLY_DUE_DAYS) -> bool:
    submitted_on = parse_date(submission_instant)
    due_on = parse_date(due_date)
    if submitted_on is None or due_on is None:
        return False
    return due_on < submitted_on + timedelta(days=threshold_days)


def days_until_due(submission_instant: Any, due_date: Any) -> int | None:
    submitted_on = parse_date(submission_instant)
    due_on = parse_date(due_date)
    if submitted_on is None or due_on is None:
        return None
    return (due_on - submitted_on).days


def _normalize_name(value: Any) -> str:
    return _WHITESPACE.sub(" ", str(value or "")).strip().casefold()


def has_titular_divergence(
    supplier_tax_id: Any,
    supplier_name: Any,
    holder_tax_id: Any,
    holder_name: Any,
) -> bool:
    # Only decidable once both identities are filled in.
    if not all(str(item or "").strip() for item in (supplier_tax_id, supplier_name, holder_tax_id, holder_name)):
        return False
    if normalize_digits(supplier_tax_id) != normalize_digits(holder_tax_id):
        return True
    return _normalize_name(supplier_name) != _normalize_name(holder_name)


def parse_currency(raw: Any) -> Decimal | None:
    """Parse an amount; ``None`` means invalid.

    Strings are read the way the amount input mask produces them: every digit
    counts and the value is taken as integer cents (``"R$ 1.500,00"`` is
    ``1500.00``). ``Decimal``, ``int`` and ``float`` values are amounts already.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        if isinstance(raw, str):
            if "-" in raw:
                return None
            digits = normalize_digits(raw)
            if not digits:
                return None
            amount = Decimal(int(digits)) / 100
        else:
            amount = Decimal(str(raw)) if isinstance(raw, float) else Decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount.quantize(_CENTS)


def normalize_payment_method(value: Any) -> str | None:
    text = str(value or "").strip().lower()
    if not text:
        return None
    return PAYMENT_METHOD_ALIASES.get(text, text)


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_request_fields(
    data: PaymentRequestInput,
    *,
    submitted_at: datetime,
    require_invoice_document: bool = True,
    early_due_days: int = EARLY_DUE_DAYS,
) -> Tuple[Dict[str, Any], List[Problem]]:
    problems: List[Problem] = []
    fields: Dict[str, Any] = {
        "company_id": _clean(data.company_id),
        "sector_id": _clean(data.sector_id),
        "cost_center_id": _clean(data.cost_center_id),
        "requester_name": _clean(data.requester_name),
        "supplier_name": _clean(data.supplier_name),
        "invoice_number": _clean(data.invoice_number),
        "description": _clean(data.description),
        "bank": _clean(data.bank),
        "branch": _clean(data.branch),
        "account_number": _clean(data.account_number),
        "pix_key": _clean(data.pix_key),
        "holder_name": _clean(data.holder_name),
        "holder_tax_id": _clean(data.holder_tax_id),
        "invoice_document_ref": _clean(data.invoice_document_ref),
        "slip_document_ref": _clean(data.slip_document_ref),
        "early_due_justification": _clean(data.early_due_justification),
        "titular_divergence_justification": _clean(data.titular_divergence_justification),
    }

    for name, key in (
        ("company_id", "company_required"),
        ("sector_id", "sector_required"),
        ("supplier_name", "supplier_name_required"),
        ("invoice_number", "invoice_number_required"),
        ("description", "description_required"),
    ):
        if not fields[name]:
            problems.append((name, key))

    raw_tax_id = _clean(data.supplier_tax_id)
    if not validate_tax_id(raw_tax_id):
        problems.append(("supplier_tax_id", "tax_id_invalid"))
        fields["supplier_tax_id"] = raw_tax_id
    else:
        fields["supplier_tax_id"] = format_tax_id(raw_tax_id)

    issue_date = parse_date(data.issue_date)
    due_date = parse_date(data.due_date)
    fields["issue_date"] = issue_date
    fields["due_date"] = due_date
    if issue_date is None:
        problems.append(("issue_date", "issue_date_required" if data.issue_date in (None, "") else "date_invalid"))
    if due_date is None:
        problems.append(("due_date", "due_date_required" if data.due_date in (None, "") else "date_invalid"))

    amount = parse_currency(data.total_amount)
    fields["total_amount"] = amount
    if amount is None or amount <= 0:
        problems.append(("total_amount", "amount_invalid"))

    if due_date is not None and is_early_due_date(submitted_at, due_date, early_due_days):
        if not fields["early_due_justification"]:
            problems.append(("early_due_justification", "early_due_justification_required"))

    method = normalize_payment_method(data.payment_method)
    fields["payment_method"] = method
    if method is not None and method not in PAYMENT_METHODS:
        problems.append(("payment_method", "payment_method_invalid"))
    elif method == "bank_transfer":
        if not (fields["bank"] and fields["branch"] and fields["account_number"]):
            problems.append(("account_number", "bank_account_required"))
        if not (fields["holder_name"] and fields["holder_tax_id"]):
            problems.append(("holder_name", "holder_required"))
        divergent = has_titular_divergence(
            fields["supplier_tax_id"],
            fields["supplier_name"],
            fields["holder_tax_id"],
            fields["holder_name"],
        )
        if divergent and not fields["titular_divergence_justification"]:
            problems.append(("titular_divergence_justification", "titular_divergence_justification_required"))
    elif method == "bank_slip":
        if not fields["slip_document_ref"]:
            problems.append(("slip_document_ref", "slip_document_required"))

    if require_invoice_document and not fields["invoice_document_ref"]:
        problems.append(("invoice_document_ref", "invoice_document_required"))

    return fields, problems
