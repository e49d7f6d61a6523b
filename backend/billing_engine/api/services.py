"""Service rounding and discharge API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from billing_engine.core.database import get_db
from billing_engine.core.exceptions import ConcurrentRoundingError, ServiceNotFound
from billing_engine.schemas.rounding import (
    DischargeRequest,
    RoundingResponse,
    RoundRequest,
    ServiceCodeInstance,
)
from billing_engine.services.rounding import RoundingDecision, RoundingOutcome
from billing_engine.services.rounding_db import DatabaseRoundingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])

DbSession = Annotated[Session, Depends(get_db)]
UserId = Annotated[str | None, Header(alias="X-User-Id")]

# Outcomes reported as errors; everything else is 200
_ERROR_STATUS = {
    RoundingOutcome.MISSING_CONFIGURATION: status.HTTP_400_BAD_REQUEST,
    RoundingOutcome.INVALID_DATE: status.HTTP_400_BAD_REQUEST,
    RoundingOutcome.NO_APPLICABLE_CODE: status.HTTP_404_NOT_FOUND,
}


def _to_response(decision: RoundingDecision) -> RoundingResponse:
    if decision.outcome in _ERROR_STATUS:
        raise HTTPException(
            status_code=_ERROR_STATUS[decision.outcome],
            detail={"outcome": decision.outcome.value, "message": decision.message},
        )
    return RoundingResponse(
        outcome=decision.outcome.value,
        message=decision.message,
        new_service_codes=(
            [ServiceCodeInstance.model_validate(decision.created)] if decision.created else []
        ),
        updated_service_codes=[ServiceCodeInstance.model_validate(u) for u in decision.updated],
        days_since_start=decision.days_since_start,
        selected_code_id=decision.selected_code_id,
    )


@router.post(
    "/{service_id}/round",
    response_model=RoundingResponse,
    summary="Round a service",
    description=(
        "Apply one day of per-diem rounding: create the initial code, add a unit, "
        "or roll over to the next code in the chain."
    ),
)
def round_service(
    service_id: int,
    request: RoundRequest,
    db: DbSession,
    user_id: UserId = None,
) -> RoundingResponse:
    """Round a service for a date.

    Raises:
        HTTPException: 404 if the service is not found or no code applies,
            400 on missing configuration or an invalid date,
            409 if another request changed the service first.
    """
    try:
        decision = DatabaseRoundingService(db).round_service(
            service_id, request.service_date, user_id=user_id
        )
    except ServiceNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ConcurrentRoundingError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return _to_response(decision)


@router.post(
    "/{service_id}/discharge",
    response_model=RoundingResponse,
    summary="Discharge a service",
    description="Close the current per-diem code and mark the service pending submission.",
)
def discharge_service(
    service_id: int,
    request: DischargeRequest,
    db: DbSession,
    user_id: UserId = None,
) -> RoundingResponse:
    try:
        decision = DatabaseRoundingService(db).discharge_service(
            service_id, request.discharge_date, user_id=user_id
        )
    except ServiceNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ConcurrentRoundingError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return _to_response(decision)
