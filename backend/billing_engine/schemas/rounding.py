"""Rounding and discharge schemas."""

from datetime import date

from pydantic import BaseModel, Field


class RoundRequest(BaseModel):
    """Request to round a service."""

    service_date: date | None = Field(
        None,
        description="Rounding date; defaults to today in the physician's timezone",
    )


class DischargeRequest(BaseModel):
    """Request to discharge a service."""

    discharge_date: date | None = Field(
        None,
        description="Discharge date; defaults to the last rounding date",
    )


class ServiceCodeInstance(BaseModel):
    """A billing code applied to a service."""

    id: int | None = None
    service_id: int
    code_id: int
    number_of_units: int
    service_date: date | None = None
    service_end_date: date | None = None
    service_location: str | None = None
    location_of_service: str | None = None
    last_rounded_date: date | None = None

    model_config = {"from_attributes": True}


class RoundingResponse(BaseModel):
    """Outcome of a rounding or discharge request."""

    outcome: str = Field(..., description="Rounding outcome")
    message: str = Field(..., description="Human-readable result")
    new_service_codes: list[ServiceCodeInstance] = Field(default_factory=list)
    updated_service_codes: list[ServiceCodeInstance] = Field(default_factory=list)
    days_since_start: int | None = None
    selected_code_id: int | None = None
