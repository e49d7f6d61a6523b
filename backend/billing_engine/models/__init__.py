"""SQLAlchemy ORM models for the billing engine.

All models inherit from Base which provides:
- id: integer primary key
- created_at: Timestamp

Models:
- Section, BillingCode, BillingCodeChainEdge, BillingCodeChain (catalog)
- Physician, PhysicianPreferredSection (rounding configuration)
- Service, ServiceCode, ServiceCodeChangeLog (applied codes)
"""

from billing_engine.core.database import Base
from billing_engine.models.billing_code import BillingCode, BillingCodeChain, BillingCodeChainEdge, Section
from billing_engine.models.service import (
    Physician,
    PhysicianPreferredSection,
    Service,
    ServiceCode,
    ServiceCodeChangeLog,
)

__all__ = [
    "Base",
    "Section",
    "BillingCode",
    "BillingCodeChainEdge",
    "BillingCodeChain",
    "Physician",
    "PhysicianPreferredSection",
    "Service",
    "ServiceCode",
    "ServiceCodeChangeLog",
]
