"""Pydantic schemas for the Billing Chain Engine."""

from billing_engine.schemas.base import (
    BillingRecordType,
    ChangeType,
    FormType,
    ServiceStatus,
)
from billing_engine.schemas.chain import (
    BillingCodeChainRecord,
    ChainAnalysis,
    ChainRebuildResponse,
    ChainStatistics,
    ChainSummary,
)
from billing_engine.schemas.claim import (
    ClaimBatchRequest,
    ClaimBatchResponse,
    ClaimService,
    ClaimServiceCode,
    Practitioner,
    ReturnFileKind,
    ReturnFileParseRequest,
    ReturnFileParseResponse,
    ReturnRecord,
)
from billing_engine.schemas.rounding import (
    DischargeRequest,
    RoundingResponse,
    RoundRequest,
    ServiceCodeInstance,
)

__all__ = [
    # Enums
    "BillingRecordType",
    "ChangeType",
    "FormType",
    "ServiceStatus",
    # Chains
    "BillingCodeChainRecord",
    "ChainAnalysis",
    "ChainRebuildResponse",
    "ChainStatistics",
    "ChainSummary",
    # Rounding
    "DischargeRequest",
    "RoundRequest",
    "RoundingResponse",
    "ServiceCodeInstance",
    # Claims
    "ClaimBatchRequest",
    "ClaimBatchResponse",
    "ClaimService",
    "ClaimServiceCode",
    "Practitioner",
    "ReturnFileKind",
    "ReturnFileParseRequest",
    "ReturnFileParseResponse",
    "ReturnRecord",
]
