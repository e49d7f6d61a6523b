"""Base schemas and enums for the billing engine."""

from enum import Enum


class BillingRecordType(int, Enum):
    """Payer service record type of a billing code."""

    STANDARD = 50  # Visit and procedure codes
    PER_DIEM = 57  # Hospital care / rounding codes


class ChangeType(str, Enum):
    """Kind of change recorded against a service code."""

    ROUND = "ROUND"
    DISCHARGE = "DISCHARGE"


class ServiceStatus(str, Enum):
    """Lifecycle status of a patient service."""

    OPEN = "OPEN"
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    PAID = "PAID"
    REJECTED = "REJECTED"


class FormType(str, Enum):
    """Claim form type on service records."""

    PAPER = "8"
    ELECTRONIC = "E"
