"""Claim batch and return file API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from billing_engine.core.audit import AuditAction, log_audit, log_batch_generation
from billing_engine.core.database import get_db
from billing_engine.models import Physician
from billing_engine.schemas.claim import (
    ClaimBatchRequest,
    ClaimBatchResponse,
    ReturnFileKind,
    ReturnFileParseRequest,
    ReturnFileParseResponse,
    ReturnRecord,
)
from billing_engine.services.claim_batch import generate_claim_batch
from billing_engine.services.claim_builder import (
    ClaimService,
    ClaimServiceCode,
    build_practitioner_header,
    build_service_records,
    next_claim_number,
)
from billing_engine.services.return_file import (
    parse_biweekly_return_file,
    parse_daily_return_file,
    summarize_return_records,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing-claims", tags=["Billing Claims"])

DbSession = Annotated[Session, Depends(get_db)]
UserId = Annotated[str | None, Header(alias="X-User-Id")]


def _to_claim_services(request: ClaimBatchRequest) -> list[ClaimService]:
    return [
        ClaimService(
            **service.model_dump(exclude={"codes"}),
            codes=[ClaimServiceCode(**code.model_dump()) for code in service.codes],
        )
        for service in request.services
    ]


@router.post(
    "/batch",
    response_model=ClaimBatchResponse,
    summary="Generate a claim batch",
    description=(
        "Render a fixed-width claim batch (header, one line per service code, trailer) "
        "for one practitioner. Each service gets its own claim number."
    ),
)
def generate_batch(
    request: ClaimBatchRequest,
    db: DbSession,
    user_id: UserId = None,
) -> ClaimBatchResponse:
    """Generate a claim batch file.

    With ``physician_id`` the stored physician supplies the header and the
    claim numbering, and its most recent claim number is advanced.

    Raises:
        HTTPException: 404 if the physician is not found,
            422 if a record cannot be formatted.
    """
    physician: Physician | None = None
    if request.physician_id is not None:
        physician = db.get(Physician, request.physician_id)
        if physician is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Physician {request.physician_id} not found",
            )
        practitioner = physician
        most_recent = physician.most_recent_claim_number
    else:
        practitioner = request.practitioner
        most_recent = request.most_recent_claim_number

    header = build_practitioner_header(practitioner)
    base_claim_number = next_claim_number(most_recent)
    services = _to_claim_services(request)

    try:
        records = build_service_records(services, base_claim_number, practitioner.timezone)
        batch_text = generate_claim_batch(header, records)
    except ValueError as e:
        log_audit(
            action=AuditAction.GENERATE_BATCH,
            resource_type="claim_batch",
            resource_id=header.practitioner_number,
            user_id=user_id,
            details={"error": str(e)},
            success=False,
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e

    last_claim_number = base_claim_number + len(services) - 1
    if physician is not None:
        physician.most_recent_claim_number = last_claim_number
        db.flush()

    total_fee_cents = sum(record.fee_cents for record in records)
    log_batch_generation(header.practitioner_number, len(records), total_fee_cents, user_id=user_id)

    return ClaimBatchResponse(
        batch_text=batch_text,
        service_record_count=len(records),
        total_fee_cents=total_fee_cents,
        first_claim_number=base_claim_number,
        last_claim_number=last_claim_number,
    )


@router.post(
    "/return-files/parse",
    response_model=ReturnFileParseResponse,
    summary="Parse a return file",
    description="Parse a daily or bi-weekly payer return file into records with paid, rejected and pended counts.",
)
def parse_return_file(
    request: ReturnFileParseRequest,
    user_id: UserId = None,
) -> ReturnFileParseResponse:
    if request.kind == ReturnFileKind.DAILY:
        records = parse_daily_return_file(request.content)
    else:
        records = parse_biweekly_return_file(request.content)

    summary = summarize_return_records(records)
    log_audit(
        action=AuditAction.PARSE_RETURN_FILE,
        resource_type="return_file",
        resource_id=request.kind.value,
        user_id=user_id,
        details={"records": len(records), "rejected": summary.rejected_count},
    )
    logger.info(f"Parsed {request.kind.value} return file: {len(records)} records")

    return ReturnFileParseResponse(
        records=[ReturnRecord.model_validate(r) for r in records],
        paid_count=summary.paid_count,
        rejected_count=summary.rejected_count,
        pended_count=summary.pended_count,
        total_count=summary.total_count,
        message_count=summary.message_count,
        total_paid_amount=summary.total_paid_amount,
        messages=summary.messages,
    )
