"""Parsers for payer return files.

Two layouts come back from the payer:

- Daily return files echo the submitted header (10) and trailer (90)
  and list rejected service records (50, 57), comments (60) and
  reciprocal billing records (89).
- Biweekly return files carry paid (P), total (T) and message (M)
  lines, identified by column 14, plus rejected or pended service
  records whose status is in column 99.

Columns are 1-indexed and inclusive, as in the payer's documentation.
Amount fields have two implied decimal places. Unknown record types and
blank lines are skipped.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal

logger = logging.getLogger(__name__)

FieldType = Literal["str", "int", "amount"]


@dataclass(frozen=True)
class ColumnSpec:
    """A field at 1-indexed inclusive columns."""

    name: str
    start: int
    end: int
    type: FieldType = "str"


@dataclass
class ReturnRecord:
    """One parsed line of a return file."""

    record_type: str
    fields: dict[str, Any] = field(default_factory=dict)
    status: str | None = None

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]


def extract(line: str, start: int, end: int) -> str:
    """Substring at 1-indexed inclusive columns, trimmed."""
    return line[start - 1 : end].strip()


def parse_amount(value: str, decimal_places: int = 2) -> Decimal:
    """Parse an amount with implied decimals; blank or invalid values are 0."""
    text = value.strip()
    negative = text.startswith("-")
    digits = text.replace("-", "").strip()
    if not digits.isdigit():
        return Decimal(0)
    amount = Decimal(int(digits)).scaleb(-decimal_places)
    return -amount if negative else amount


def parse_int_field(value: str) -> int:
    """Parse an integer field; blank or invalid values are 0."""
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        return 0


def _parse_columns(line: str, columns: Iterable[ColumnSpec]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for column in columns:
        raw = extract(line, column.start, column.end)
        if column.type == "int":
            values[column.name] = parse_int_field(raw)
        elif column.type == "amount":
            values[column.name] = parse_amount(raw)
        else:
            values[column.name] = raw
    return values


# ============================================================================
# Column layouts
# ============================================================================

_RUN_TRAILER = (
    ColumnSpec("original_run_code", 244, 245),
    ColumnSpec("cps_claim_number", 246, 255),
)

PAID_LINE_COLUMNS = (
    ColumnSpec("mode", 1, 1),
    ColumnSpec("practitioner_number", 2, 5),
    ColumnSpec("clinic_number", 6, 8),
    ColumnSpec("claim_number", 9, 13, "int"),
    ColumnSpec("name", 16, 34),
    ColumnSpec("health_services_number", 36, 44),
    ColumnSpec("claim_sequence_number", 51, 51, "int"),
    ColumnSpec("day_of_service", 53, 54),
    ColumnSpec("month_of_service", 56, 57),
    ColumnSpec("year_of_service", 59, 60),
    ColumnSpec("submitted_number_of_units", 61, 62, "int"),
    ColumnSpec("fee_code_submitted", 64, 67),
    ColumnSpec("fee_submitted", 69, 75, "amount"),
    ColumnSpec("fee_code_approved", 77, 80),
    ColumnSpec("fee_approved", 82, 88, "amount"),
    ColumnSpec("explanatory_code", 90, 91),
    ColumnSpec("corporation_indicator", 95, 95),
    ColumnSpec("payment_run_code", 96, 97),
    ColumnSpec("form_type", 98, 98),
    ColumnSpec("total_premium_amount", 99, 105, "amount"),
    ColumnSpec("program_payment", 106, 112, "amount"),
    ColumnSpec("total_paid_amount", 113, 123, "amount"),
    ColumnSpec("explanatory_code_2", 124, 125),
    ColumnSpec("explanatory_code_3", 126, 127),
    ColumnSpec("paid_number_of_units", 128, 130, "int"),
    ColumnSpec("paid_location_of_service", 131, 131),
    ColumnSpec("oop_province_code", 132, 133),
    ColumnSpec("oop_hsn", 134, 145),
    *_RUN_TRAILER,
)

TOTAL_LINE_COLUMNS = (
    ColumnSpec("mode", 1, 1),
    ColumnSpec("practitioner_number", 2, 5),
    ColumnSpec("clinic_number", 6, 8),
    ColumnSpec("total_line_type", 54, 63),
    ColumnSpec("fee_submitted", 65, 75, "amount"),
    ColumnSpec("fee_approved", 78, 88, "amount"),
    ColumnSpec("corporation_indicator", 95, 95),
    ColumnSpec("total_premium_amount", 99, 109, "amount"),
    ColumnSpec("total_program_payment", 110, 120, "amount"),
    ColumnSpec("total_paid_amount", 121, 131, "amount"),
    ColumnSpec("run_code", 254, 255),
)

MESSAGE_LINE_COLUMNS = (
    ColumnSpec("mode", 1, 1),
    ColumnSpec("practitioner_number", 2, 5),
    ColumnSpec("clinic_number", 6, 8),
    ColumnSpec("message", 15, 94),
    ColumnSpec("run_code", 254, 255),
)

_SERVICE_PREFIX = (
    ColumnSpec("practitioner_number", 3, 6),
    ColumnSpec("claim_number", 7, 11, "int"),
    ColumnSpec("claim_sequence_number", 12, 12, "int"),
    ColumnSpec("health_services_number", 13, 21),
    ColumnSpec("date_of_birth", 22, 25),
    ColumnSpec("sex", 26, 26),
    ColumnSpec("name", 27, 51),
    ColumnSpec("diagnostic_code", 52, 54),
    ColumnSpec("referring_practitioner_number", 55, 58),
)

VISIT_PROCEDURE_COLUMNS = (
    *_SERVICE_PREFIX,
    ColumnSpec("date_of_service", 59, 64),
    ColumnSpec("number_of_units", 65, 66, "int"),
    ColumnSpec("location_of_service", 67, 67),
    ColumnSpec("fee_code_submitted", 68, 71),
    ColumnSpec("fee_submitted", 72, 77, "amount"),
    ColumnSpec("mode", 78, 78),
    ColumnSpec("form_type", 79, 79),
    ColumnSpec("corporation_indicator", 89, 89),
    ColumnSpec("explanatory_code", 90, 91),
    ColumnSpec("payment_run_code", 92, 93),
    ColumnSpec("clinic_number", 96, 98),
    ColumnSpec("explanatory_code_2", 100, 101),
    ColumnSpec("explanatory_code_3", 102, 103),
    *_RUN_TRAILER,
)

HOSPITAL_CARE_COLUMNS = (
    *_SERVICE_PREFIX,
    ColumnSpec("first_date_of_service", 59, 64),
    ColumnSpec("last_date_of_service", 65, 70),
    ColumnSpec("number_of_visits", 71, 72, "int"),
    ColumnSpec("fee_code_submitted", 73, 76),
    ColumnSpec("fee_submitted", 77, 82, "amount"),
    ColumnSpec("mode", 83, 83),
    ColumnSpec("form_type", 84, 84),
    ColumnSpec("corporation_indicator", 89, 89),
    ColumnSpec("payment_run_code", 92, 93),
    ColumnSpec("explanatory_code", 94, 95),
    ColumnSpec("clinic_number", 96, 98),
    ColumnSpec("explanatory_code_2", 100, 101),
    ColumnSpec("explanatory_code_3", 102, 103),
    *_RUN_TRAILER,
)

COMMENT_COLUMNS = (
    ColumnSpec("practitioner_number", 3, 6),
    ColumnSpec("claim_number", 7, 11, "int"),
    ColumnSpec("line_number", 12, 12, "int"),
    ColumnSpec("health_services_number", 13, 21),
    ColumnSpec("comments", 22, 95),
    ColumnSpec("clinic_number", 96, 98),
    *_RUN_TRAILER,
)

RECIPROCAL_BILLING_COLUMNS = (
    ColumnSpec("practitioner_number", 3, 6),
    ColumnSpec("claim_number", 7, 11, "int"),
    ColumnSpec("claim_sequence_number", 12, 12, "int"),
    ColumnSpec("province", 22, 23),
    ColumnSpec("beneficiary_surname", 24, 41),
    ColumnSpec("beneficiary_first_name", 42, 50),
    ColumnSpec("beneficiary_second_initial", 51, 51),
    ColumnSpec("out_of_province_hsn", 52, 63),
    ColumnSpec("clinic_number", 96, 98),
    *_RUN_TRAILER,
)

DAILY_HEADER_COLUMNS = (
    ColumnSpec("practitioner_number", 3, 6),
    ColumnSpec("group_number", 7, 9),
    ColumnSpec("clinic_number", 13, 15),
    ColumnSpec("submission_type", 97, 97),
    ColumnSpec("corporation_indicator", 98, 98),
)

DAILY_TRAILER_COLUMNS = (
    ColumnSpec("practitioner_number", 3, 6),
    ColumnSpec("number_of_records_submitted", 13, 17, "int"),
    ColumnSpec("number_of_service_records_submitted", 18, 22, "int"),
    ColumnSpec("total_amount_submitted", 23, 29, "amount"),
    ColumnSpec("run_code", 97, 98),
)

SERVICE_RECORD_COLUMNS = {
    "50": VISIT_PROCEDURE_COLUMNS,
    "57": HOSPITAL_CARE_COLUMNS,
    "60": COMMENT_COLUMNS,
    "89": RECIPROCAL_BILLING_COLUMNS,
}

BIWEEKLY_LINE_COLUMNS = {
    "P": PAID_LINE_COLUMNS,
    "T": TOTAL_LINE_COLUMNS,
    "M": MESSAGE_LINE_COLUMNS,
}

DAILY_COLUMNS = {
    "10": DAILY_HEADER_COLUMNS,
    **SERVICE_RECORD_COLUMNS,
    "90": DAILY_TRAILER_COLUMNS,
}


# ============================================================================
# Line and file parsers
# ============================================================================


def _lines(content: str) -> list[str]:
    return [line.rstrip("\r") for line in content.split("\n") if line.strip()]


def parse_biweekly_line(line: str) -> ReturnRecord | None:
    """Parse one biweekly line; None for short lines and unknown types."""
    if len(line) < 14:
        return None

    line_type = extract(line, 14, 14)
    if line_type in BIWEEKLY_LINE_COLUMNS:
        return ReturnRecord(
            record_type=line_type,
            fields=_parse_columns(line, BIWEEKLY_LINE_COLUMNS[line_type]),
        )

    record_type = extract(line, 1, 2)
    columns = SERVICE_RECORD_COLUMNS.get(record_type)
    if columns is None:
        return None
    status = extract(line, 99, 99) if record_type in ("50", "57") else None
    return ReturnRecord(
        record_type=record_type,
        fields=_parse_columns(line, columns),
        status=status or ("R" if record_type in ("60", "89") else None),
    )


def parse_daily_line(line: str) -> ReturnRecord | None:
    """Parse one daily line; None for unknown record types."""
    if len(line) < 2:
        return None

    record_type = extract(line, 1, 2)
    columns = DAILY_COLUMNS.get(record_type)
    if columns is None:
        return None
    status = "R" if record_type in SERVICE_RECORD_COLUMNS else None
    return ReturnRecord(
        record_type=record_type,
        fields=_parse_columns(line, columns),
        status=status,
    )


def parse_biweekly_return_file(content: str) -> list[ReturnRecord]:
    """Parse a biweekly return file into records, skipping unknown lines."""
    records = []
    for line in _lines(content):
        record = parse_biweekly_line(line)
        if record is None:
            logger.debug(f"Skipping unrecognized biweekly line: {line[:20]!r}")
            continue
        records.append(record)
    return records


def parse_daily_return_file(content: str) -> list[ReturnRecord]:
    """Parse a daily return file into records, skipping unknown lines."""
    records = []
    for line in _lines(content):
        record = parse_daily_line(line)
        if record is None:
            logger.debug(f"Skipping unrecognized daily line: {line[:20]!r}")
            continue
        records.append(record)
    return records


@dataclass
class ReturnFileSummary:
    """Counts over parsed return records."""

    paid_count: int = 0
    rejected_count: int = 0
    pended_count: int = 0
    total_count: int = 0
    message_count: int = 0
    total_paid_amount: Decimal = Decimal(0)
    messages: list[str] = field(default_factory=list)


def summarize_return_records(records: Iterable[ReturnRecord]) -> ReturnFileSummary:
    """Count paid, rejected and pended records, total lines and messages."""
    summary = ReturnFileSummary()
    for record in records:
        if record.record_type == "P":
            summary.paid_count += 1
            summary.total_paid_amount += record["total_paid_amount"]
        elif record.record_type == "T":
            summary.total_count += 1
        elif record.record_type == "M":
            summary.message_count += 1
            summary.messages.append(record["message"])
        elif record.status == "P":
            summary.pended_count += 1
        elif record.status == "R":
            summary.rejected_count += 1
    return summary
