"""Core application configuration and utilities."""

from billing_engine.core.audit import AuditAction, AuditEvent, log_audit, log_batch_generation, log_rounding
from billing_engine.core.config import settings
from billing_engine.core.database import Base, get_db, get_sync_engine
from billing_engine.core.exceptions import (
    BillingEngineError,
    ConcurrentRoundingError,
    FormatFieldOverflow,
    MalformedChainData,
    MaxUnitsReached,
    MissingConfiguration,
    NoApplicableCode,
    ServiceNotFound,
)
from billing_engine.core.locks import service_lock

__all__ = [
    # Config
    "settings",
    # Database
    "Base",
    "get_db",
    "get_sync_engine",
    # Audit
    "AuditAction",
    "AuditEvent",
    "log_audit",
    "log_batch_generation",
    "log_rounding",
    # Errors
    "BillingEngineError",
    "ConcurrentRoundingError",
    "FormatFieldOverflow",
    "MalformedChainData",
    "MaxUnitsReached",
    "MissingConfiguration",
    "NoApplicableCode",
    "ServiceNotFound",
    # Concurrency
    "service_lock",
]
