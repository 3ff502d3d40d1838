"""Field rules shared by the single-lead form and the CSV importer."""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"^[\d\s+\-()]{10,15}$")

MIN_LOAN_AMOUNT = Decimal("1000")
MAX_LOAN_AMOUNT = Decimal("1000000")

ALLOWED_DOCUMENT_TYPES = {"application/pdf", "image/jpeg", "image/jpg", "image/png"}

REQUIRED_FIELDS = (
    ("name", "Name"),
    ("email", "Email"),
    ("phone", "Phone"),
    ("loan_amount", "Loan amount"),
)


def _clean(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_loan_amount(raw) -> Decimal:
    """Parse a loan amount such as ``"$25,000"``; raises ``ValueError`` with a user-facing message."""
    text = _clean(raw).replace("$", "").replace(",", "").replace(" ", "")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError("Loan amount must be a number")
    if not amount.is_finite():
        raise ValueError("Loan amount must be a number")
    if amount <= 0:
        raise ValueError("Loan amount must be a positive number")
    if amount < MIN_LOAN_AMOUNT or amount > MAX_LOAN_AMOUNT:
        raise ValueError("Loan amount must be between 1000 and 1000000")
    return amount.quantize(Decimal("0.01"))


def format_amount(amount) -> str:
    """Render an amount as a plain number: ``25000``, ``1500.5``."""
    if amount is None:
        return ""
    value = Decimal(str(amount)).quantize(Decimal("0.01")).normalize()
    return format(value, "f")


def validate_lead_fields(data: dict) -> tuple[dict, list[str]]:
    """Validate raw lead input.

    Returns the cleaned values and a list of error messages, one per
    failing field, in field order. ``data`` uses snake_case keys.
    """
    errors: list[str] = []
    cleaned: dict = {
        "name": _clean(data.get("name")),
        "email": _clean(data.get("email")),
        "phone": _clean(data.get("phone")),
        "address": _clean(data.get("address")) or None,
        "notes": _clean(data.get("notes")) or None,
        "loan_amount": None,
    }
    raw_amount = _clean(data.get("loan_amount"))

    for key, label in REQUIRED_FIELDS:
        value = raw_amount if key == "loan_amount" else cleaned[key]
        if not value:
            errors.append(f"{label} is required")

    if cleaned["email"] and not EMAIL_PATTERN.match(cleaned["email"]):
        errors.append("Invalid email format")
    if cleaned["phone"] and not PHONE_PATTERN.match(cleaned["phone"]):
        errors.append("Invalid phone format")
    if raw_amount:
        try:
            cleaned["loan_amount"] = parse_loan_amount(raw_amount)
        except ValueError as exc:
            errors.append(str(exc))

    return cleaned, errors


def validate_document(content_type: Optional[str], size: int, max_size: int) -> Optional[str]:
    if size > max_size:
        return f"File size must be less than {max_size // (1024 * 1024)}MB"
    if (content_type or "").lower() not in ALLOWED_DOCUMENT_TYPES:
        return "Only PDF, JPG, and PNG files are allowed"
    return None
