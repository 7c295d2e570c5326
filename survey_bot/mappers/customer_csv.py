import csv
import io
import logging
import re

from survey_bot.schemas.responses import CustomerRow

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")


def is_valid_phone(phone: str) -> bool:
    """Loose E.164 check; whitespace inside the number is ignored."""
    return bool(PHONE_RE.match(re.sub(r"\s", "", phone)))


def parse_csv(content: str) -> list[dict[str, str]]:
    """Parse CSV text into dicts keyed by lower-cased header.

    Blank lines are ignored. Rows whose column count differs from the
    header are skipped.
    """
    rows = [row for row in csv.reader(io.StringIO(content)) if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        return []

    headers = [h.strip().lower() for h in rows[0]]
    records: list[dict[str, str]] = []

    for line_no, values in enumerate(rows[1:], start=2):
        if len(values) != len(headers):
            logger.warning(
                "Row %d has %d columns, expected %d. Skipping.",
                line_no,
                len(values),
                len(headers),
            )
            continue
        records.append({h: v.strip() for h, v in zip(headers, values)})

    return records


def _first(record: dict[str, str], *keys: str) -> str | None:
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


def validate_customers(records: list[dict[str, str]]) -> list[CustomerRow]:
    rows: list[CustomerRow] = []
    for record in records:
        errors: list[str] = []

        first_name = _first(record, "first_name", "firstname")
        phone = _first(record, "phone", "phone_number")

        if not first_name:
            errors.append("First name is required")
        if not phone:
            errors.append("Phone number is required")
        elif not is_valid_phone(phone):
            errors.append("Invalid phone number format")

        rows.append(
            CustomerRow(
                first_name=first_name,
                last_name=_first(record, "last_name", "lastname"),
                phone_number=phone,
                company_name=_first(record, "company", "company_name"),
                campaign_id=_first(record, "campaign_id"),
                error=", ".join(errors) if errors else None,
            )
        )
    return rows
