"""CSV bulk import and export of leads.

Imports are partial-success: each row is validated and committed on its
own, and failing rows are reported with their 1-based data row number
(the header is not counted).
"""
import csv
import io
import logging
import os
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leadportal.core.config import settings
from leadportal.core.errors import ValidationError
from leadportal.core.metrics import import_rows
from leadportal.core.validators import format_amount, validate_lead_fields
from leadportal.schemas.lead import ImportResult, ImportRowError
from leadportal.services.leads import LeadFilters, all_filtered_leads, create_lead

logger = logging.getLogger(__name__)

TEMPLATE_COLUMNS = ["name", "email", "phone", "address", "loanAmount", "notes"]
REQUIRED_COLUMNS = ["name", "email", "phone", "loanAmount"]
EXPORT_COLUMNS = TEMPLATE_COLUMNS + ["status", "id", "affiliateId", "createdAt", "updatedAt"]

# CSV header -> lead field
FIELD_BY_COLUMN = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "address": "address",
    "loanamount": "loan_amount",
    "loan_amount": "loan_amount",
    "notes": "notes",
}


def _write_csv(fieldnames: list, rows: list) -> bytes:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fieldnames, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return output.getvalue().encode("utf-8")


def template_csv() -> bytes:
    return _write_csv(TEMPLATE_COLUMNS, [])


def check_import_file(filename: Optional[str], size: int) -> None:
    if not filename or os.path.splitext(filename)[1].lower() != ".csv":
        raise ValidationError("Please upload a CSV file")
    if size > settings.MAX_IMPORT_SIZE:
        raise ValidationError(f"File size must be less than {settings.MAX_IMPORT_SIZE // (1024 * 1024)}MB")


def _header_map(fieldnames) -> dict:
    mapping = {}
    for column in fieldnames or []:
        if column is None:
            continue
        field = FIELD_BY_COLUMN.get(column.strip().lower())
        if field and field not in mapping.values():
            mapping[column] = field
    return mapping


def parse_rows(content: bytes):
    """Yield ``(row_number, fields)`` for every non-blank data row."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("CSV file must be UTF-8 encoded")

    reader = csv.DictReader(io.StringIO(text))
    mapping = _header_map(reader.fieldnames)
    missing = [column for column in REQUIRED_COLUMNS if FIELD_BY_COLUMN[column.lower()] not in mapping.values()]
    if missing:
        raise ValidationError(f"Missing required columns: {', '.join(missing)}")

    for row_number, raw_row in enumerate(reader, start=1):
        fields = {field: raw_row.get(column) for column, field in mapping.items()}
        if not any((value or "").strip() for value in fields.values()):
            continue
        yield row_number, fields


async def import_csv(
    db: AsyncSession,
    current_user,
    filename: Optional[str],
    content: bytes,
    affiliate_id: Optional[int] = None,
) -> ImportResult:
    check_import_file(filename, len(content))

    success_count = 0
    errors: list = []
    last_row = 0

    try:
        for row_number, fields in parse_rows(content):
            last_row = row_number
            cleaned, problems = validate_lead_fields(fields)
            if problems:
                errors.append(ImportRowError(row=row_number, message="; ".join(problems)))
                continue

            try:
                await create_lead(db, current_user, cleaned, affiliate_id=affiliate_id)
                await db.commit()
                success_count += 1
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Bulk import failed to save row {row_number}: {e}")
                errors.append(ImportRowError(row=row_number, message="Failed to save lead"))
    except csv.Error as e:
        # the reader cannot resume after a malformed record
        errors.append(ImportRowError(row=last_row + 1, message=f"Malformed CSV: {e}"))

    import_rows.labels(result="success").inc(success_count)
    import_rows.labels(result="failure").inc(len(errors))
    logger.info(f"Bulk import by user {current_user.id}: {success_count} created, {len(errors)} failed")

    return ImportResult(success_count=success_count, failure_count=len(errors), errors=errors)


def _timestamp(value) -> str:
    return value.isoformat() if value else ""


def lead_to_row(lead) -> dict:
    return {
        "name": lead.name,
        "email": lead.email,
        "phone": lead.phone,
        "address": lead.address or "",
        "loanAmount": format_amount(lead.loan_amount),
        "notes": lead.notes or "",
        "status": str(lead.status),
        "id": lead.id,
        "affiliateId": lead.affiliate_id if lead.affiliate_id is not None else "",
        "createdAt": _timestamp(lead.created_at),
        "updatedAt": _timestamp(lead.updated_at),
    }


async def export_csv(db: AsyncSession, current_user, filters: LeadFilters) -> bytes:
    leads = await all_filtered_leads(db, current_user, filters)
    return _write_csv(EXPORT_COLUMNS, [lead_to_row(lead) for lead in leads])
