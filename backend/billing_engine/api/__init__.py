"""API routers for the Billing Chain Engine."""

from billing_engine.api.chains import router as chains_router
from billing_engine.api.claims import router as claims_router
from billing_engine.api.services import router as services_router

__all__ = [
    "chains_router",
    "claims_router",
    "services_router",
]
