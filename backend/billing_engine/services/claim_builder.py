"""Assemble claim batch records from services and their billing codes.

Maps practitioner, patient and service code data onto the header and
service record types of the claim batch formatter: one claim number per
service, one sequence number per service code.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Protocol

from billing_engine.core.config import settings
from billing_engine.schemas.base import BillingRecordType, FormType
from billing_engine.services.claim_batch import (
    PractitionerHeader,
    ServiceRecord,
    ServiceRecord50,
    ServiceRecord57,
)
from billing_engine.services.date_utils import add_days, format_ddmmyy, format_hhmm, format_mmyy

logger = logging.getLogger(__name__)

MAX_CLAIM_NUMBER = 99999


class PractitionerSource(Protocol):
    """Anything carrying a physician's billing identity (e.g. the Physician model)."""

    billing_number: str
    group_number: str | None
    clinic_number: str | None
    first_name: str
    last_name: str
    street_address: str | None
    city: str | None
    province: str | None
    postal_code: str | None
    corporation_indicator: str | None


@dataclass
class ClaimServiceCode:
    """A billing code on a service, ready for submission."""

    fee_code: str
    billing_record_type: int
    unit_fee_cents: int
    number_of_units: int = 1
    service_date: date | None = None
    service_end_date: date | None = None
    location_of_service: str | None = None
    special_circumstances: str | None = None
    bilateral_indicator: str | None = None
    start_time: datetime | None = None
    stop_time: datetime | None = None
    claim_type: str | None = None


@dataclass
class ClaimService:
    """A patient service with its billing codes."""

    hsn: str
    date_of_birth: date | None
    sex: str
    last_name: str
    first_name: str
    service_date: date
    diagnostic_code: str = ""
    referring_practitioner: str = ""
    facility_number: str = ""
    service_location: str | None = None
    codes: list[ClaimServiceCode] = field(default_factory=list)


def build_practitioner_header(physician: PractitionerSource) -> PractitionerHeader:
    """Build the batch header for a physician."""
    return PractitionerHeader(
        practitioner_number=physician.billing_number,
        group_number=physician.group_number or "000",
        clinic_number=physician.clinic_number or "000",
        name=f"{physician.last_name},{physician.first_name}",
        address=physician.street_address or "",
        city_province=f"{physician.city or ''},{physician.province or ''}",
        postal_code=physician.postal_code or "",
        corporation_indicator=physician.corporation_indicator or "",
        submission_type=settings.claim_submission_type,
    )


def next_claim_number(most_recent_claim_number: int | None) -> int:
    """First claim number of a new batch for a physician."""
    if most_recent_claim_number is None:
        return settings.claim_number_floor
    return most_recent_claim_number + 1


def last_service_date(code: ClaimServiceCode, fallback: date) -> date:
    """End date of a per-diem code, or the last day its units cover."""
    if code.service_end_date is not None:
        return code.service_end_date
    start = code.service_date or fallback
    return add_days(start, max(code.number_of_units, 1) - 1)


def build_service_records(
    services: list[ClaimService],
    base_claim_number: int,
    tz_name: str | None = None,
) -> list[ServiceRecord]:
    """Build service records for a batch.

    Each service gets claim number ``base_claim_number + index``; its
    codes are ordered by record type and numbered from 0.

    Raises:
        ValueError: If a claim number does not fit the 5-digit field.
    """
    last_claim = base_claim_number + len(services) - 1
    if base_claim_number < 0 or last_claim > MAX_CLAIM_NUMBER:
        raise ValueError(
            f"Claim numbers {base_claim_number}..{last_claim} exceed {MAX_CLAIM_NUMBER}"
        )

    records: list[ServiceRecord] = []
    for index, service in enumerate(services):
        claim_number = base_claim_number + index
        ordered = sorted(service.codes, key=lambda c: c.billing_record_type)

        for sequence, code in enumerate(ordered):
            fee_cents = code.unit_fee_cents * code.number_of_units
            code_date = code.service_date or service.service_date
            common = dict(
                claim_number=claim_number,
                sequence=sequence,
                hsn=service.hsn,
                dob=format_mmyy(service.date_of_birth),
                sex=service.sex,
                name=f"{service.last_name},{service.first_name}",
                diagnostic_code=service.diagnostic_code,
                ref_practitioner=service.referring_practitioner,
                date_of_service=format_ddmmyy(code_date),
                units=code.number_of_units,
                fee_code=code.fee_code,
                fee_cents=fee_cents,
                mode="1",
                form_type=FormType.PAPER.value,
                special_circumstances=code.special_circumstances or "",
                facility_number=service.facility_number,
                claim_type=code.claim_type or "",
                service_location=service.service_location or "",
            )

            if code.billing_record_type == BillingRecordType.PER_DIEM:
                records.append(
                    ServiceRecord57(
                        **common,
                        last_service_date=format_ddmmyy(last_service_date(code, code_date)),
                    )
                )
            else:
                records.append(
                    ServiceRecord50(
                        **common,
                        location_of_service=code.location_of_service or "0",
                        bilateral=code.bilateral_indicator or "",
                        start_time=format_hhmm(code.start_time, tz_name),
                        stop_time=format_hhmm(code.stop_time, tz_name),
                    )
                )

    logger.debug(
        f"Built {len(records)} service records for {len(services)} services "
        f"starting at claim {base_claim_number}"
    )
    return records
