"""Audit logging for billing operations.

Provides logging for:
- Rounding and discharge of patient services
- Chain table rebuilds from the billing code catalog
- Claim batch generation

This audit log should be persisted to a secure, append-only store
in production since claim batches are submitted to the payer.
"""

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# Separate audit logger for billing events
audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Service codes
    ROUND = "round"
    DISCHARGE = "discharge"

    # Reference data
    REBUILD_CHAINS = "rebuild_chains"

    # Claims
    GENERATE_BATCH = "generate_batch"
    PARSE_RETURN_FILE = "parse_return_file"

    # System
    ERROR = "error"


class AuditEvent(BaseModel):
    """Audit event record.

    Contains all relevant context for an auditable action.
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: AuditAction = Field(..., description="Type of action performed")
    resource_type: str = Field(..., description="Type of resource affected")
    resource_id: str | None = Field(None, description="ID of specific resource")
    user_id: str | None = Field(None, description="User who performed action")
    details: dict | None = Field(None, description="Additional context")
    success: bool = Field(True, description="Whether action succeeded")


def log_audit(
    action: AuditAction,
    resource_type: str,
    resource_id: str | None = None,
    user_id: str | None = None,
    details: dict | None = None,
    success: bool = True,
) -> AuditEvent:
    """Log an audit event.

    Args:
        action: Type of action being audited
        resource_type: The type of resource affected
        resource_id: Specific resource identifier
        user_id: User performing the action
        details: Additional context
        success: Whether the action succeeded

    Returns:
        The created AuditEvent
    """
    event = AuditEvent(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=user_id,
        details=details,
        success=success,
    )

    log_level = logging.INFO if success else logging.WARNING
    audit_logger.log(
        log_level,
        f"AUDIT: {action.value} {resource_type}"
        f"{f'/{resource_id}' if resource_id else ''}"
        f"{f' user={user_id}' if user_id else ''}"
        f" success={success}",
        extra={"audit_event": event.model_dump()},
    )

    return event


def log_rounding(
    service_id: int,
    outcome: str,
    user_id: str | None = None,
    details: dict | None = None,
    success: bool = True,
    discharge: bool = False,
) -> AuditEvent:
    """Log a rounding or discharge event for a service.

    Args:
        service_id: Service that was rounded
        outcome: Rounding outcome value
        user_id: User performing the rounding
        details: Additional context (selected code, dates)
        success: Whether the service codes were changed
        discharge: Log as a discharge instead of a rounding

    Returns:
        The created AuditEvent
    """
    action = AuditAction.DISCHARGE if discharge else AuditAction.ROUND
    return log_audit(
        action=action,
        resource_type="service",
        resource_id=str(service_id),
        user_id=user_id,
        details={"outcome": outcome, **(details or {})},
        success=success,
    )


def log_batch_generation(
    practitioner_number: str,
    service_record_count: int,
    total_fee_cents: int,
    user_id: str | None = None,
) -> AuditEvent:
    """Log generation of a claim batch file.

    Args:
        practitioner_number: Practitioner the batch was generated for
        service_record_count: Number of service lines in the batch
        total_fee_cents: Sum of submitted fees
        user_id: User generating the batch

    Returns:
        The created AuditEvent
    """
    return log_audit(
        action=AuditAction.GENERATE_BATCH,
        resource_type="claim_batch",
        resource_id=practitioner_number,
        user_id=user_id,
        details={
            "service_record_count": service_record_count,
            "total_fee_cents": total_fee_cents,
        },
    )
