"""Claim batch and return file schemas."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class Practitioner(BaseModel):
    """Practitioner identity for the batch header."""

    billing_number: str = Field(..., description="Practitioner number (4 digits)")
    group_number: str | None = Field(None, description="Group number (3 digits)")
    clinic_number: str | None = Field(None, description="Clinic number (3 digits)")
    first_name: str
    last_name: str
    street_address: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    corporation_indicator: str | None = None
    timezone: str | None = Field(None, description="IANA timezone for start/stop times")


class ClaimServiceCode(BaseModel):
    """A billing code on a service."""

    fee_code: str = Field(..., description="Fee schedule code")
    billing_record_type: int = Field(50, description="50 visit/procedure, 57 hospital care")
    unit_fee_cents: int = Field(..., ge=0, description="Fee per unit in cents")
    number_of_units: int = Field(1, ge=0)
    service_date: date | None = None
    service_end_date: date | None = None
    location_of_service: str | None = None
    special_circumstances: str | None = None
    bilateral_indicator: str | None = None
    start_time: datetime | None = None
    stop_time: datetime | None = None
    claim_type: str | None = None


class ClaimService(BaseModel):
    """A patient service to submit."""

    hsn: str = Field(..., description="Health services number")
    date_of_birth: date | None = None
    sex: str = Field("M", max_length=1)
    last_name: str
    first_name: str
    service_date: date
    diagnostic_code: str = ""
    referring_practitioner: str = ""
    facility_number: str = ""
    service_location: str | None = None
    codes: list[ClaimServiceCode] = Field(default_factory=list)


class ClaimBatchRequest(BaseModel):
    """Request to generate a claim batch."""

    practitioner: Practitioner | None = Field(
        None,
        description="Practitioner identity; required unless physician_id is given",
    )
    physician_id: int | None = Field(
        None,
        description="Stored physician; claim numbering continues from its last claim",
    )
    services: list[ClaimService] = Field(..., min_length=1)
    most_recent_claim_number: int | None = Field(
        None,
        description="Last claim number used; numbering continues after it",
    )

    @model_validator(mode="after")
    def check_practitioner_source(self) -> "ClaimBatchRequest":
        if (self.practitioner is None) == (self.physician_id is None):
            raise ValueError("Provide exactly one of practitioner or physician_id")
        return self


class ClaimBatchResponse(BaseModel):
    """Generated claim batch."""

    batch_text: str = Field(..., description="CRLF-terminated batch file")
    service_record_count: int
    total_fee_cents: int
    first_claim_number: int
    last_claim_number: int


class ReturnFileKind(str, Enum):
    """Return file layouts."""

    DAILY = "daily"
    BIWEEKLY = "biweekly"


class ReturnFileParseRequest(BaseModel):
    """Return file contents to parse."""

    kind: ReturnFileKind
    content: str


class ReturnRecord(BaseModel):
    """One parsed return file record."""

    record_type: str
    status: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class ReturnFileParseResponse(BaseModel):
    """Parsed return file with counts."""

    records: list[ReturnRecord]
    paid_count: int = 0
    rejected_count: int = 0
    pended_count: int = 0
    total_count: int = 0
    message_count: int = 0
    total_paid_amount: Decimal = Field(Decimal(0), description="Sum of paid amounts in dollars")
    messages: list[str] = Field(default_factory=list)
