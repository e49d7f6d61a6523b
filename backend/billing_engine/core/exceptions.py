"""Error kinds raised by the billing engine.

Chain construction errors are fatal for a single root only. Scheduler
errors are converted into rounding outcomes before they reach callers.
"""


class BillingEngineError(Exception):
    """Base class for billing engine errors."""


class MalformedChainData(BillingEngineError):
    """A cycle, orphaned predecessor or ambiguous path in chain reference data."""

    def __init__(self, root_id: int | None, message: str) -> None:
        self.root_id = root_id
        self.message = message
        prefix = f"root {root_id}: " if root_id is not None else ""
        super().__init__(f"{prefix}{message}")


class NoApplicableCode(BillingEngineError):
    """No billing code window applies to the rounding date."""


class MaxUnitsReached(BillingEngineError):
    """The current service code already holds its maximum number of units."""


class MissingConfiguration(BillingEngineError):
    """The physician has no preferred sections or no type 57 codes in them."""


class ConcurrentRoundingError(BillingEngineError):
    """Another rounding operation changed the service code first."""


class ServiceNotFound(BillingEngineError):
    """The requested service does not exist."""

    def __init__(self, service_id: int) -> None:
        self.service_id = service_id
        super().__init__(f"Service {service_id} not found")


class FormatFieldOverflow(BillingEngineError):
    """A value did not fit its fixed-width field and was truncated.

    Never raised by the formatter; used to describe the logged warning.
    """

    def __init__(self, record: str, field: str, value: str, width: int) -> None:
        self.record = record
        self.field = field
        self.value = value
        self.width = width
        super().__init__(
            f"{record}.{field} value {value!r} exceeds width {width}; truncated"
        )
