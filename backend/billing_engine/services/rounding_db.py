"""Database-backed rounding and discharge.

Each call is one read-modify-write on a service's service codes, guarded
by a process-local per-service lock, a row lock on the service, and the
optimistic version column on service_codes. The caller owns the
transaction; changes are flushed, not committed. After a
ConcurrentRoundingError the caller must roll the session back.
"""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from billing_engine.core.audit import log_rounding
from billing_engine.core.exceptions import ConcurrentRoundingError, ServiceNotFound
from billing_engine.core.locks import service_lock
from billing_engine.models import Physician, Service, ServiceCode, ServiceCodeChangeLog
from billing_engine.schemas.base import ChangeType, ServiceStatus
from billing_engine.services.chain_analysis_db import load_catalog, load_chain_records
from billing_engine.services.date_utils import today_in_timezone
from billing_engine.services.rounding import (
    RoundingDecision,
    RoundingDefaults,
    RoundingOutcome,
    RoundingScheduler,
    ServiceCodeInstance,
)

logger = logging.getLogger(__name__)


def to_instance(row: ServiceCode) -> ServiceCodeInstance:
    """Convert a ServiceCode row to a ServiceCodeInstance."""
    return ServiceCodeInstance(
        id=row.id,
        service_id=row.service_id,
        code_id=row.code_id,
        number_of_units=row.number_of_units,
        service_date=row.service_date,
        service_end_date=row.service_end_date,
        service_location=row.service_location,
        location_of_service=row.location_of_service,
        last_rounded_date=row.last_rounded_date,
    )


def _snapshot(instance: ServiceCodeInstance | ServiceCode) -> dict:
    """JSON-safe copy of the mutable fields of a service code."""
    return {
        "codeId": instance.code_id,
        "numberOfUnits": instance.number_of_units,
        "serviceDate": instance.service_date.isoformat() if instance.service_date else None,
        "serviceEndDate": (
            instance.service_end_date.isoformat() if instance.service_end_date else None
        ),
        "serviceLocation": instance.service_location,
        "locationOfService": instance.location_of_service,
    }


class DatabaseRoundingService:
    """Rounding scheduler over persisted services and service codes.

    Example usage:
        service = DatabaseRoundingService(session)
        decision = service.round_service(service_id, date(2024, 1, 5), user_id="42")
        session.commit()
    """

    def __init__(self, session: Session, defaults: RoundingDefaults | None = None) -> None:
        self.session = session
        self.defaults = defaults or RoundingDefaults()

    def _load_service(self, service_id: int) -> Service:
        """Load and row-lock a service with its codes and physician configuration."""
        stmt = (
            select(Service)
            .where(Service.id == service_id)
            .options(
                selectinload(Service.service_codes),
                selectinload(Service.physician).selectinload(Physician.preferred_sections),
            )
            .with_for_update()
        )
        service = self.session.execute(stmt).scalar_one_or_none()
        if service is None:
            raise ServiceNotFound(service_id)
        return service

    def _scheduler(self, service: Service) -> RoundingScheduler:
        section_ids = [ps.section_id for ps in service.physician.preferred_sections]
        return RoundingScheduler(
            chain_records=load_chain_records(self.session),
            codes=load_catalog(self.session),
            preferred_section_ids=section_ids,
        )

    def _apply(
        self,
        service: Service,
        decision: RoundingDecision,
        change_type: ChangeType,
        user_id: str | None,
        rounding_date: date | None,
    ) -> None:
        """Write the decision's instances and change logs to the session."""
        rows = {row.id: row for row in service.service_codes}

        for instance in decision.updated:
            row = rows[instance.id]
            previous = _snapshot(row)
            row.number_of_units = instance.number_of_units
            row.service_end_date = instance.service_end_date
            row.last_rounded_date = instance.last_rounded_date
            row.change_logs.append(
                ServiceCodeChangeLog(
                    change_type=change_type.value,
                    previous_data=previous,
                    new_data=_snapshot(instance),
                    changed_by=user_id,
                    notes=decision.message,
                    rounding_date=rounding_date,
                )
            )

        if decision.created is not None:
            created = decision.created
            row = ServiceCode(
                code_id=created.code_id,
                number_of_units=created.number_of_units,
                service_date=created.service_date,
                service_end_date=created.service_end_date,
                service_location=created.service_location,
                location_of_service=created.location_of_service,
                last_rounded_date=created.last_rounded_date,
            )
            row.change_logs.append(
                ServiceCodeChangeLog(
                    change_type=change_type.value,
                    new_data=_snapshot(created),
                    changed_by=user_id,
                    notes=decision.message,
                    rounding_date=rounding_date,
                )
            )
            service.service_codes.append(row)

    def _flush(self, service_id: int) -> None:
        try:
            self.session.flush()
        except StaleDataError as e:
            logger.warning(f"Concurrent rounding detected for service {service_id}")
            raise ConcurrentRoundingError(
                f"Service {service_id} was modified by another request; retry rounding"
            ) from e

    def round_service(
        self,
        service_id: int,
        rounding_date: date | None = None,
        user_id: str | None = None,
    ) -> RoundingDecision:
        """Round a service for a date (defaults to today in the physician's timezone).

        Raises:
            ServiceNotFound: If the service does not exist.
            ConcurrentRoundingError: If another request changed its codes first.
        """
        with service_lock(service_id):
            service = self._load_service(service_id)
            today = rounding_date or today_in_timezone(service.physician.timezone)
            instances = [to_instance(row) for row in service.service_codes]

            decision = self._scheduler(service).plan_rounding(
                admission_date=service.service_date,
                today=today,
                instances=instances,
                defaults=self.defaults,
                service_id=service.id,
            )
            self._apply(service, decision, ChangeType.ROUND, user_id, today)
            self._flush(service_id)

        logger.info(f"Rounded service {service_id} for {today}: {decision.outcome.value}")
        log_rounding(
            service_id,
            decision.outcome.value,
            user_id=user_id,
            details={
                "rounding_date": today.isoformat(),
                "days_since_start": decision.days_since_start,
                "selected_code_id": decision.selected_code_id,
            },
            success=decision.changed,
        )
        return decision

    def discharge_service(
        self,
        service_id: int,
        discharge_date: date | None = None,
        user_id: str | None = None,
    ) -> RoundingDecision:
        """Close the current per-diem code and mark the service PENDING.

        Raises:
            ServiceNotFound: If the service does not exist.
            ConcurrentRoundingError: If another request changed its codes first.
        """
        with service_lock(service_id):
            service = self._load_service(service_id)
            instances = [to_instance(row) for row in service.service_codes]

            decision = self._scheduler(service).discharge(instances, discharge_date)
            self._apply(service, decision, ChangeType.DISCHARGE, user_id, discharge_date)
            if decision.outcome in (
                RoundingOutcome.DISCHARGED,
                RoundingOutcome.NOTHING_TO_DISCHARGE,
            ):
                service.status = ServiceStatus.PENDING.value
            self._flush(service_id)

        log_rounding(
            service_id,
            decision.outcome.value,
            user_id=user_id,
            details={
                "discharge_date": discharge_date.isoformat() if discharge_date else None,
                "selected_code_id": decision.selected_code_id,
            },
            success=decision.outcome != RoundingOutcome.INVALID_DATE,
            discharge=True,
        )
        return decision
