"""Rounding scheduler for per-diem (type 57) billing codes.

Given a service's admission date, its existing service codes and the
rounding date, decides whether to create the first per-diem code,
add a unit to the current one, or roll over to the next code in the
chain. Discharge closes the current per-diem code without extending it
past its day-range window.

The scheduler is pure: inputs are never mutated, and every change is
returned as a new ServiceCodeInstance in the RoundingDecision.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum

from billing_engine.core.config import settings
from billing_engine.core.exceptions import MaxUnitsReached, MissingConfiguration, NoApplicableCode
from billing_engine.services.chain_builder import ChainRecord, CodeInfo
from billing_engine.services.date_utils import add_days, days_between, window_end

logger = logging.getLogger(__name__)


class RoundingOutcome(str, Enum):
    """Result of a rounding or discharge request."""

    CREATED = "created"
    INCREMENTED = "incremented"
    MAX_UNITS_REACHED = "max_units_reached"
    ALREADY_ROUNDED = "already_rounded"
    NO_APPLICABLE_CODE = "no_applicable_code"
    MISSING_CONFIGURATION = "missing_configuration"
    INVALID_DATE = "invalid_date"
    SERVICE_CLOSED = "service_closed"
    DISCHARGED = "discharged"
    NOTHING_TO_DISCHARGE = "nothing_to_discharge"

    @property
    def changed(self) -> bool:
        """Whether this outcome carries service code changes."""
        return self in (
            RoundingOutcome.CREATED,
            RoundingOutcome.INCREMENTED,
            RoundingOutcome.DISCHARGED,
        )


@dataclass(frozen=True)
class ServiceCodeInstance:
    """A billing code applied to a patient service."""

    service_id: int
    code_id: int
    number_of_units: int = 1
    service_date: date | None = None
    service_end_date: date | None = None
    service_location: str | None = None
    location_of_service: str | None = None
    last_rounded_date: date | None = None
    id: int | None = None


@dataclass(frozen=True)
class RoundingDefaults:
    """Locations used when a service has no service code to copy from."""

    service_location: str = field(default_factory=lambda: settings.default_service_location)
    location_of_service: str = field(default_factory=lambda: settings.default_location_of_service)


@dataclass
class RoundingDecision:
    """What a rounding or discharge request did (or would do)."""

    outcome: RoundingOutcome
    message: str
    created: ServiceCodeInstance | None = None
    updated: list[ServiceCodeInstance] = field(default_factory=list)
    days_since_start: int | None = None
    selected_code_id: int | None = None

    @property
    def changed(self) -> bool:
        return self.outcome.changed and (self.created is not None or bool(self.updated))


def _most_recent(instances: Iterable[ServiceCodeInstance]) -> ServiceCodeInstance | None:
    return max(
        instances,
        key=lambda i: (i.service_date or date.min, i.id or 0),
        default=None,
    )


class RoundingScheduler:
    """Decides the per-diem billing code for a rounding date.

    Args:
        chain_records: Chain table records (any roots).
        codes: Billing code catalog keyed by id; must include the codes
            of the service's existing instances.
        preferred_section_ids: Sections the physician bills rounding
            codes from. None disables the section filter; an empty
            collection means nothing is configured.
    """

    def __init__(
        self,
        chain_records: Iterable[ChainRecord],
        codes: Mapping[int, CodeInfo],
        preferred_section_ids: Iterable[int] | None = None,
    ) -> None:
        self.codes = dict(codes)
        self.preferred_section_ids = (
            None if preferred_section_ids is None else set(preferred_section_ids)
        )
        self.candidate_ids = {
            code_id
            for code_id, info in self.codes.items()
            if info.is_per_diem
            and (self.preferred_section_ids is None or info.section_id in self.preferred_section_ids)
        }

        self._by_root: dict[int, list[ChainRecord]] = defaultdict(list)
        for record in sorted(
            chain_records,
            key=lambda r: (r.root_id, r.cumulative_day_range, r.previous_day_range, r.code_id),
        ):
            self._by_root[record.root_id].append(record)

    # ------------------------------------------------------------------
    # Chain helpers
    # ------------------------------------------------------------------

    def _code_string(self, code_id: int) -> str:
        info = self.codes.get(code_id)
        return info.code if info else ""

    def _candidate_chains(self) -> list[list[ChainRecord]]:
        """Chains holding at least one candidate code, ordered by root code."""
        chains = []
        for root_id, records in self._by_root.items():
            candidates = [r for r in records if r.code_id in self.candidate_ids]
            if candidates:
                chains.append((self._code_string(root_id), root_id, candidates))
        chains.sort(key=lambda item: (item[0], item[1]))
        return [candidates for _, _, candidates in chains]

    def _record_for(self, code_id: int) -> ChainRecord | None:
        """Chain record of a code, preferring the first candidate chain."""
        for chain in self._candidate_chains():
            for record in chain:
                if record.code_id == code_id:
                    return record
        return None

    def _successor(self, record: ChainRecord) -> ChainRecord | None:
        successors = [
            r
            for r in self._by_root[record.root_id]
            if r.previous_code_id == record.code_id and r.code_id in self.candidate_ids
        ]
        successors.sort(key=lambda r: (self._code_string(r.code_id), r.code_id))
        return successors[0] if successors else None

    def _day_range(self, code_id: int, record: ChainRecord | None = None) -> int | None:
        info = self.codes.get(code_id)
        if info is not None and info.day_range is not None:
            return info.day_range
        return record.day_range if record is not None else None

    def unit_ceiling(self, code_id: int) -> int:
        """Maximum units for a code. Codes without max_units cannot be incremented."""
        info = self.codes.get(code_id)
        if info is None or info.max_units is None:
            return 0
        return info.max_units

    def instance_window_end(self, instance: ServiceCodeInstance) -> date | None:
        """Inclusive last day of an instance's day-range window (None if open)."""
        day_range = self._day_range(instance.code_id, self._record_for(instance.code_id))
        if instance.service_date is None or not day_range:
            return None
        return window_end(instance.service_date, day_range)

    def per_diem_instances(
        self, instances: Iterable[ServiceCodeInstance]
    ) -> list[ServiceCodeInstance]:
        return [
            i for i in instances if i.code_id in self.codes and self.codes[i.code_id].is_per_diem
        ]

    def _check_configuration(self) -> None:
        if self.preferred_section_ids is not None and not self.preferred_section_ids:
            raise MissingConfiguration(
                "No preferred sections found for this physician. "
                "Please set up preferred sections before performing rounding."
            )
        if not self.candidate_ids:
            raise MissingConfiguration(
                "No type 57 billing codes found in the physician's preferred sections"
            )

    def select_initial_code(self, days_since_start: int) -> ChainRecord:
        """Pick the code whose [previous, cumulative) window holds the day offset.

        Falls back to the last code of the first candidate chain when the
        offset lies beyond every window.

        Raises:
            NoApplicableCode: If no candidate code belongs to a chain.
        """
        chains = self._candidate_chains()
        if not chains:
            raise NoApplicableCode(
                f"No appropriate billing code found for {days_since_start} days since service start"
            )

        for chain in chains:
            for record in chain:
                if record.previous_day_range <= days_since_start < record.cumulative_day_range:
                    return record

        fallback = chains[0][-1]
        logger.info(
            f"Day {days_since_start} is beyond every chain window; "
            f"using last code {fallback.code}"
        )
        return fallback

    def _increment(self, instance: ServiceCodeInstance, today: date) -> ServiceCodeInstance:
        """Add one unit, respecting the unit ceiling.

        Raises:
            MaxUnitsReached: If the instance already holds the ceiling.
        """
        ceiling = self.unit_ceiling(instance.code_id)
        if instance.number_of_units >= ceiling:
            raise MaxUnitsReached(
                f"Service code already at maximum units ({instance.number_of_units}/{ceiling})"
            )
        return replace(
            instance,
            number_of_units=instance.number_of_units + 1,
            last_rounded_date=today,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def plan_rounding(
        self,
        admission_date: date,
        today: date,
        instances: Iterable[ServiceCodeInstance],
        defaults: RoundingDefaults | None = None,
        service_id: int | None = None,
    ) -> RoundingDecision:
        """Decide the per-diem change for a rounding date.

        Args:
            admission_date: Service start (admission) date.
            today: Rounding date in the physician's timezone.
            instances: Existing service codes of the service (any type).
            defaults: Locations used when no instance exists to copy from.
            service_id: Service the new instance belongs to.

        Returns:
            The decision; failures are reported as outcomes, never raised.
        """
        instances = list(instances)
        defaults = defaults or RoundingDefaults()
        days_since_start = days_between(admission_date, today)

        if days_since_start < 0:
            return RoundingDecision(
                outcome=RoundingOutcome.INVALID_DATE,
                message="Service date cannot be before the service start date",
                days_since_start=days_since_start,
            )

        try:
            self._check_configuration()
        except MissingConfiguration as e:
            return RoundingDecision(
                outcome=RoundingOutcome.MISSING_CONFIGURATION,
                message=str(e),
                days_since_start=days_since_start,
            )

        current = _most_recent(self.per_diem_instances(instances))
        try:
            if current is None:
                return self._create_initial(
                    admission_date, today, instances, defaults, service_id, days_since_start
                )
            return self._advance(current, today, days_since_start)
        except NoApplicableCode as e:
            return RoundingDecision(
                outcome=RoundingOutcome.NO_APPLICABLE_CODE,
                message=str(e),
                days_since_start=days_since_start,
            )

    def _create_initial(
        self,
        admission_date: date,
        today: date,
        instances: list[ServiceCodeInstance],
        defaults: RoundingDefaults,
        service_id: int | None,
        days_since_start: int,
    ) -> RoundingDecision:
        record = self.select_initial_code(days_since_start)
        source = _most_recent(instances)
        created = ServiceCodeInstance(
            service_id=service_id if service_id is not None else (source.service_id if source else 0),
            code_id=record.code_id,
            number_of_units=1,
            service_date=add_days(admission_date, record.previous_day_range),
            service_end_date=None,
            service_location=(source and source.service_location) or defaults.service_location,
            location_of_service=(source and source.location_of_service)
            or defaults.location_of_service,
            last_rounded_date=today,
        )
        return RoundingDecision(
            outcome=RoundingOutcome.CREATED,
            message=(
                f"Created {record.code} ({days_since_start} days since service start)"
            ),
            created=created,
            days_since_start=days_since_start,
            selected_code_id=record.code_id,
        )

    def _advance(
        self,
        current: ServiceCodeInstance,
        today: date,
        days_since_start: int,
    ) -> RoundingDecision:
        if current.service_end_date is not None:
            return RoundingDecision(
                outcome=RoundingOutcome.SERVICE_CLOSED,
                message=f"Service code was closed on {current.service_end_date.isoformat()}",
                days_since_start=days_since_start,
                selected_code_id=current.code_id,
            )
        if current.service_date is not None and today < current.service_date:
            return RoundingDecision(
                outcome=RoundingOutcome.INVALID_DATE,
                message="Rounding date is before the current service code start date",
                days_since_start=days_since_start,
                selected_code_id=current.code_id,
            )

        record = self._record_for(current.code_id)
        end = self.instance_window_end(current)
        within_window = end is None or today <= end

        if within_window or record is None or self._successor(record) is None:
            return self._increment_decision(current, today, days_since_start)
        return self._roll_over(current, record, end, today, days_since_start)

    def _increment_decision(
        self,
        current: ServiceCodeInstance,
        today: date,
        days_since_start: int,
    ) -> RoundingDecision:
        if current.last_rounded_date == today:
            return RoundingDecision(
                outcome=RoundingOutcome.ALREADY_ROUNDED,
                message=f"Service code already rounded on {today.isoformat()}",
                days_since_start=days_since_start,
                selected_code_id=current.code_id,
            )
        try:
            updated = self._increment(current, today)
        except MaxUnitsReached as e:
            return RoundingDecision(
                outcome=RoundingOutcome.MAX_UNITS_REACHED,
                message=str(e),
                days_since_start=days_since_start,
                selected_code_id=current.code_id,
            )
        return RoundingDecision(
            outcome=RoundingOutcome.INCREMENTED,
            message=f"Units increased to {updated.number_of_units}",
            updated=[updated],
            days_since_start=days_since_start,
            selected_code_id=current.code_id,
        )

    def _roll_over(
        self,
        current: ServiceCodeInstance,
        record: ChainRecord,
        current_end: date,
        today: date,
        days_since_start: int,
    ) -> RoundingDecision:
        """Walk successor windows from the day after current_end to today."""
        start = add_days(current_end, 1)
        selected = self._successor(record)
        steps = 0
        while selected is not None:
            steps += 1
            if steps > len(self._by_root[record.root_id]):
                raise NoApplicableCode(
                    f"Chain of root {record.root_id} does not terminate after {selected.code}"
                )
            day_range = self._day_range(selected.code_id, selected)
            if not day_range:
                break
            end = window_end(start, day_range)
            following = self._successor(selected)
            if today <= end or following is None:
                break
            start = add_days(end, 1)
            selected = following

        created = ServiceCodeInstance(
            service_id=current.service_id,
            code_id=selected.code_id,
            number_of_units=1,
            service_date=start,
            service_end_date=None,
            service_location=current.service_location,
            location_of_service=current.location_of_service,
            last_rounded_date=today,
        )
        closed = replace(current, service_end_date=current_end)
        return RoundingDecision(
            outcome=RoundingOutcome.CREATED,
            message=(
                f"Rolled over from {self._code_string(current.code_id)} to {selected.code} "
                f"starting {start.isoformat()}"
            ),
            created=created,
            updated=[closed],
            days_since_start=days_since_start,
            selected_code_id=selected.code_id,
        )

    def discharge(
        self,
        instances: Iterable[ServiceCodeInstance],
        requested_date: date | None = None,
    ) -> RoundingDecision:
        """Set the end date of the current per-diem code.

        The end date is the earlier of the requested date and the code's
        window end; it is never extended. Without a requested date the
        last rounding date of the instance is used.
        """
        current = _most_recent(self.per_diem_instances(instances))
        if current is None:
            return RoundingDecision(
                outcome=RoundingOutcome.NOTHING_TO_DISCHARGE,
                message="Service has no type 57 service code to discharge",
            )

        discharge_date = requested_date or current.last_rounded_date
        if discharge_date is None:
            return RoundingDecision(
                outcome=RoundingOutcome.DISCHARGED,
                message="No rounding date recorded; end date left open",
                selected_code_id=current.code_id,
            )
        if current.service_date is not None and discharge_date < current.service_date:
            return RoundingDecision(
                outcome=RoundingOutcome.INVALID_DATE,
                message="Discharge date cannot be before the service code start date",
                selected_code_id=current.code_id,
            )

        end = self.instance_window_end(current)
        if end is not None and discharge_date > end:
            logger.info(
                f"Discharge date {discharge_date} is past window end {end}; clamping"
            )
            discharge_date = end

        updated = replace(current, service_end_date=discharge_date)
        return RoundingDecision(
            outcome=RoundingOutcome.DISCHARGED,
            message=f"Discharged on {discharge_date.isoformat()}",
            updated=[updated],
            selected_code_id=current.code_id,
        )
