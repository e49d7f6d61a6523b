"""Claim batch file formatter (Saskatchewan MSB layout).

A batch is a practitioner header (record 10), service records (50 for
visits and procedures, 57 for per-diem hospital care) and a trailer
(record 90), each a fixed-width line terminated by CRLF. The layouts
below are the payer's byte positions; the encoding itself is driven by
fixed_width.RecordLayout.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Literal

from billing_engine.services.fixed_width import FieldSpec, RecordLayout, constant, numeric, text

logger = logging.getLogger(__name__)

LINE_TERMINATOR = "\r\n"


# ============================================================================
# Record types
# ============================================================================


@dataclass
class PractitionerHeader:
    """Practitioner identity written in the header record."""

    practitioner_number: str
    group_number: str
    clinic_number: str
    name: str
    address: str
    city_province: str
    postal_code: str
    corporation_indicator: str = ""
    submission_type: str = "8"


@dataclass
class _ServiceRecordBase:
    claim_number: int
    sequence: int
    hsn: str
    dob: str  # MMYY
    sex: str
    name: str  # LAST,FIRST
    diagnostic_code: str
    date_of_service: str  # DDMMYY
    units: int
    fee_code: str
    fee_cents: int
    mode: str = "1"
    form_type: Literal["8", "E"] = "8"
    ref_practitioner: str = ""
    special_circumstances: str = ""
    facility_number: str = ""
    claim_type: str = ""
    service_location: str = ""


@dataclass
class ServiceRecord50(_ServiceRecordBase):
    """Visit or procedure service record."""

    location_of_service: str = ""
    bilateral: str = ""
    start_time: str = ""  # HHMM
    stop_time: str = ""  # HHMM
    record_type: Literal["50"] = "50"


@dataclass
class ServiceRecord57(_ServiceRecordBase):
    """Per-diem (hospital care) service record."""

    last_service_date: str = ""  # DDMMYY
    record_type: Literal["57"] = "57"


ServiceRecord = ServiceRecord50 | ServiceRecord57


# ============================================================================
# Layouts
# ============================================================================

HEADER_LAYOUT = RecordLayout(
    name="header",
    fields=(
        constant("record_type", "10"),
        numeric("practitioner_number", 4),
        numeric("group_number", 3),
        constant("filler", "000"),
        numeric("clinic_number", 3),
        text("name", 25, upper=True),
        text("address", 25, upper=True),
        text("city_province", 25, upper=True),
        FieldSpec(name="postal_code", width=6, upper=True, strip_spaces=True),
        text("submission_type", 1),
        text("corporation_indicator", 1),
    ),
)

# Fields shared by both service record types, through the date of service
_SERVICE_PREFIX = (
    text("record_type", 2),
    numeric("practitioner_number", 4),
    numeric("claim_number", 5),
    numeric("sequence", 1),
    numeric("hsn", 9),
    text("dob", 4),
    text("sex", 1),
    text("name", 25, upper=True),
    numeric("diagnostic_code", 3),
    numeric("ref_practitioner", 4),
    text("date_of_service", 6),
)

SERVICE_50_LAYOUT = RecordLayout(
    name="service_50",
    fields=(
        *_SERVICE_PREFIX,
        numeric("units", 2),
        text("location_of_service", 1),
        numeric("fee_code", 4),
        numeric("fee_cents", 6),
        text("mode", 1),
        text("form_type", 1),
        numeric("special_circumstances", 2),
        text("bilateral", 1),
        text("start_time", 4),
        text("stop_time", 4),
        numeric("facility_number", 5),
        text("claim_type", 1),
        text("service_location", 1),
        text("trailing", 1),
    ),
)

SERVICE_57_LAYOUT = RecordLayout(
    name="service_57",
    fields=(
        *_SERVICE_PREFIX,
        text("last_service_date", 6),
        numeric("units", 2),
        numeric("fee_code", 4),
        numeric("fee_cents", 6),
        text("mode", 1),
        text("form_type", 1),
        numeric("special_circumstances", 2),
        numeric("facility_number", 5),
        text("claim_type", 1),
        text("service_location", 1),
        text("trailing", 1),
    ),
)

TRAILER_LAYOUT = RecordLayout(
    name="trailer",
    fields=(
        constant("record_type", "90"),
        numeric("practitioner_number", 4),
        constant("filler", "999999"),
        numeric("total_records", 5),
        numeric("total_service_records", 5),
        numeric("total_fee_cents", 7),
        constant("padding", " " * 69),
    ),
)

SERVICE_LAYOUTS: dict[str, RecordLayout] = {
    "50": SERVICE_50_LAYOUT,
    "57": SERVICE_57_LAYOUT,
}


# ============================================================================
# Generation
# ============================================================================


def format_header(header: PractitionerHeader) -> str:
    return HEADER_LAYOUT.encode(asdict(header))


def format_service_record(practitioner_number: str, record: ServiceRecord) -> str:
    """Render one service line with the layout of its record type."""
    layout = SERVICE_LAYOUTS.get(record.record_type)
    if layout is None:
        raise ValueError(f"Unknown service record type {record.record_type!r}")
    values = asdict(record)
    values["practitioner_number"] = practitioner_number
    return layout.encode(values)


def format_trailer(
    practitioner_number: str,
    total_records: int,
    total_service_records: int,
    total_fee_cents: int,
) -> str:
    return TRAILER_LAYOUT.encode(
        {
            "practitioner_number": practitioner_number,
            "total_records": total_records,
            "total_service_records": total_service_records,
            "total_fee_cents": total_fee_cents,
        }
    )


def _validate_records(practitioner_number: str, records: list[ServiceRecord]) -> None:
    for index, record in enumerate(records):
        layout = SERVICE_LAYOUTS.get(record.record_type)
        if layout is None:
            raise ValueError(f"Service record {index}: unknown record type {record.record_type!r}")
        values = asdict(record)
        values["practitioner_number"] = practitioner_number
        try:
            layout.validate(values)
        except ValueError as e:
            raise ValueError(f"Service record {index}: {e}") from e


def generate_claim_batch(header: PractitionerHeader, records: list[ServiceRecord]) -> str:
    """Render a complete claim batch.

    Service lines keep the given order. Every line, including the last,
    ends with CRLF.

    Raises:
        ValueError: If any numeric field is negative or not an integer.
            Nothing is rendered in that case.
    """
    HEADER_LAYOUT.validate(asdict(header))
    _validate_records(header.practitioner_number, records)

    total_fee_cents = sum(record.fee_cents for record in records)
    lines = [
        format_header(header),
        *(format_service_record(header.practitioner_number, r) for r in records),
        format_trailer(
            header.practitioner_number,
            total_records=2 + len(records),
            total_service_records=len(records),
            total_fee_cents=total_fee_cents,
        ),
    ]
    logger.debug(
        f"Generated claim batch for {header.practitioner_number}: "
        f"{len(records)} service records, {total_fee_cents} cents"
    )
    return "".join(line + LINE_TERMINATOR for line in lines)


# ============================================================================
# Parsing and verification
# ============================================================================


@dataclass
class ParsedClaimBatch:
    """Raw field strings of each line of a batch."""

    header: dict[str, str]
    services: list[dict[str, str]]
    trailer: dict[str, str]


def parse_claim_batch(batch: str) -> ParsedClaimBatch:
    """Slice a batch back into fields using the same layouts.

    Raises:
        ValueError: If a line has an unknown record type or wrong width,
            or the batch lacks a header or trailer.
    """
    lines = [line for line in batch.split(LINE_TERMINATOR) if line]
    if len(lines) < 2:
        raise ValueError("Claim batch needs at least a header and a trailer")
    if not lines[0].startswith("10"):
        raise ValueError("Claim batch does not start with a header record")
    if not lines[-1].startswith("90"):
        raise ValueError("Claim batch does not end with a trailer record")

    services = []
    for line in lines[1:-1]:
        layout = SERVICE_LAYOUTS.get(line[:2])
        if layout is None:
            raise ValueError(f"Unknown service record type {line[:2]!r}")
        services.append(layout.decode(line))

    return ParsedClaimBatch(
        header=HEADER_LAYOUT.decode(lines[0]),
        services=services,
        trailer=TRAILER_LAYOUT.decode(lines[-1]),
    )


def verify_claim_batch(batch: str) -> list[str]:
    """Check trailer totals against the service lines.

    Returns:
        Problems found; empty when the batch is consistent.
    """
    parsed = parse_claim_batch(batch)
    problems = []

    expected_records = len(parsed.services) + 2
    if int(parsed.trailer["total_records"]) != expected_records:
        problems.append(
            f"total_records is {int(parsed.trailer['total_records'])}, expected {expected_records}"
        )
    if int(parsed.trailer["total_service_records"]) != len(parsed.services):
        problems.append(
            f"total_service_records is {int(parsed.trailer['total_service_records'])}, "
            f"expected {len(parsed.services)}"
        )

    fee_total = sum(int(s["fee_cents"]) for s in parsed.services)
    if int(parsed.trailer["total_fee_cents"]) != fee_total:
        problems.append(
            f"total_fee_cents is {int(parsed.trailer['total_fee_cents'])}, expected {fee_total}"
        )

    practitioner = parsed.header["practitioner_number"]
    for index, service in enumerate(parsed.services):
        if service["practitioner_number"] != practitioner:
            problems.append(f"service {index} practitioner {service['practitioner_number']!r}")
    if parsed.trailer["practitioner_number"] != practitioner:
        problems.append(f"trailer practitioner {parsed.trailer['practitioner_number']!r}")

    return problems
