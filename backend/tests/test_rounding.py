"""Tests for the per-diem rounding scheduler."""

from datetime import date

import pytest

from billing_engine.core.exceptions import MaxUnitsReached, NoApplicableCode
from billing_engine.services.chain_builder import build_all_chains
from billing_engine.services.rounding import (
    RoundingDefaults,
    RoundingOutcome,
    RoundingScheduler,
)
from factories import ADMISSION, HOSPITAL_SECTION_ID, code, edges, instance


def make_scheduler(catalog, section_ids=(HOSPITAL_SECTION_ID,)) -> RoundingScheduler:
    codes, chain_edges = catalog
    result = build_all_chains(codes, chain_edges)
    return RoundingScheduler(result.records, codes, preferred_section_ids=section_ids)


class TestInitialCodeSelection:
    """Tests for creating the first per-diem code."""

    def test_day_offset_selects_second_code(self, two_code_catalog) -> None:
        """Test admission Jan 1 rounded Jan 5 starts B on Jan 4."""
        scheduler = make_scheduler(two_code_catalog)
        decision = scheduler.plan_rounding(ADMISSION, date(2024, 1, 5), [], service_id=1)

        assert decision.outcome == RoundingOutcome.CREATED
        assert decision.days_since_start == 4
        assert decision.created.code_id == 2
        assert decision.created.service_date == date(2024, 1, 4)
        assert decision.created.number_of_units == 1
        assert decision.created.last_rounded_date == date(2024, 1, 5)
        assert decision.updated == []

    def test_admission_day_selects_first_code(self, two_code_catalog) -> None:
        """Test rounding on the admission date."""
        decision = make_scheduler(two_code_catalog).plan_rounding(ADMISSION, ADMISSION, [])
        assert decision.created.code_id == 1
        assert decision.created.service_date == ADMISSION

    def test_window_boundaries(self, three_window_catalog) -> None:
        """Test D+7 falls in [5,10) and starts the second code at D+5."""
        scheduler = make_scheduler(three_window_catalog)
        decision = scheduler.plan_rounding(ADMISSION, date(2024, 1, 8), [])

        assert decision.created.code_id == 11
        assert decision.created.service_date == date(2024, 1, 6)

    def test_beyond_all_windows_uses_last_code(self, two_code_catalog) -> None:
        """Test a long stay falls back to the last code of the chain."""
        decision = make_scheduler(two_code_catalog).plan_rounding(ADMISSION, date(2024, 3, 1), [])
        assert decision.outcome == RoundingOutcome.CREATED
        assert decision.created.code_id == 2

    def test_defaults_used_without_existing_codes(self, two_code_catalog) -> None:
        """Test location defaults for a service with no codes."""
        defaults = RoundingDefaults(service_location="R", location_of_service="3")
        decision = make_scheduler(two_code_catalog).plan_rounding(
            ADMISSION, ADMISSION, [], defaults=defaults
        )
        assert decision.created.service_location == "R"
        assert decision.created.location_of_service == "3"

    def test_locations_copied_from_existing_code(self, two_code_catalog) -> None:
        """Test locations come from the service's other codes."""
        codes, chain_edges = two_code_catalog
        codes = {**codes, 3: code(3, None, record_type=50)}
        scheduler = make_scheduler((codes, chain_edges))
        visit = instance(3, ADMISSION)
        defaults = RoundingDefaults(service_location="R", location_of_service="3")
        decision = scheduler.plan_rounding(ADMISSION, ADMISSION, [visit], defaults=defaults)

        assert decision.outcome == RoundingOutcome.CREATED
        assert decision.created.service_location == "X"
        assert decision.created.location_of_service == "2"


class TestIncrement:
    """Tests for adding units to the current code."""

    def test_increment_within_window(self, two_code_catalog) -> None:
        """Test a unit is added inside the code's window."""
        current = instance(1, ADMISSION, units=1, last_rounded=ADMISSION)
        decision = make_scheduler(two_code_catalog).plan_rounding(
            ADMISSION, date(2024, 1, 2), [current]
        )

        assert decision.outcome == RoundingOutcome.INCREMENTED
        assert decision.updated[0].number_of_units == 2
        assert decision.updated[0].last_rounded_date == date(2024, 1, 2)
        assert decision.created is None

    def test_max_units_is_a_no_op(self, two_code_catalog) -> None:
        """Test a full code is left unchanged."""
        codes, chain_edges = two_code_catalog
        codes = {**codes, 1: code(1, 3, max_units=2, code_string="A001")}
        current = instance(1, ADMISSION, units=2, last_rounded=date(2024, 1, 2))

        decision = make_scheduler((codes, chain_edges)).plan_rounding(
            ADMISSION, date(2024, 1, 3), [current]
        )

        assert decision.outcome == RoundingOutcome.MAX_UNITS_REACHED
        assert decision.created is None
        assert decision.updated == []
        assert decision.changed is False
        assert current.number_of_units == 2

    def test_same_day_is_already_rounded(self, two_code_catalog) -> None:
        """Test rounding twice on one day adds one unit only."""
        current = instance(1, ADMISSION, units=2, last_rounded=date(2024, 1, 2))
        decision = make_scheduler(two_code_catalog).plan_rounding(
            ADMISSION, date(2024, 1, 2), [current]
        )
        assert decision.outcome == RoundingOutcome.ALREADY_ROUNDED
        assert decision.updated == []

    def test_last_code_keeps_incrementing(self, two_code_catalog) -> None:
        """Test the last code of a chain stays applicable past its window."""
        current = instance(2, date(2024, 1, 4), units=2, last_rounded=date(2024, 1, 5))
        decision = make_scheduler(two_code_catalog).plan_rounding(
            ADMISSION, date(2024, 1, 9), [current]
        )
        assert decision.outcome == RoundingOutcome.INCREMENTED
        assert decision.updated[0].number_of_units == 3

    def test_increment_raises_at_ceiling(self, two_code_catalog) -> None:
        """Test a code holding max_units cannot take another unit."""
        scheduler = make_scheduler(two_code_catalog)
        with pytest.raises(MaxUnitsReached):
            scheduler._increment(instance(1, ADMISSION, units=3), date(2024, 1, 3))

    def test_unit_ceiling(self, two_code_catalog) -> None:
        """Test max_units is the ceiling and a missing value allows no increments."""
        codes, chain_edges = two_code_catalog
        codes = {**codes, 2: code(2, 4, max_units=10, code_string="B002")}
        codes[1] = code(1, 3, code_string="A001")
        scheduler = make_scheduler((codes, chain_edges))
        assert scheduler.unit_ceiling(1) == 0
        assert scheduler.unit_ceiling(2) == 10
        assert scheduler.unit_ceiling(404) == 0

    def test_null_max_units_is_not_incremented(self) -> None:
        """Test a code without max_units reports the maximum instead of adding units."""
        codes = {1: code(1, 3, code_string="A001"), 2: code(2, 4, code_string="B002")}
        current = instance(1, ADMISSION, units=1, last_rounded=ADMISSION)
        decision = make_scheduler((codes, edges((1, 2)))).plan_rounding(
            ADMISSION, date(2024, 1, 2), [current]
        )

        assert decision.outcome == RoundingOutcome.MAX_UNITS_REACHED
        assert decision.updated == []

    def test_open_ended_tail_without_max_units_is_bounded(self) -> None:
        """Test a tail code with neither day range nor max_units stops growing."""
        codes = {
            1: code(1, 3, max_units=3, code_string="A001"),
            9: code(9, None, code_string="Z009"),
        }
        current = instance(9, date(2024, 1, 4), units=400, last_rounded=date(2025, 2, 6))
        decision = make_scheduler((codes, edges((1, 9)))).plan_rounding(
            ADMISSION, date(2025, 2, 7), [current]
        )

        assert decision.outcome == RoundingOutcome.MAX_UNITS_REACHED
        assert decision.updated == []
        assert current.number_of_units == 400


class TestRollOver:
    """Tests for moving to the next code in the chain."""

    def test_roll_over_after_window(self, two_code_catalog) -> None:
        """Test the next code starts the day after the window ends."""
        current = instance(1, ADMISSION, units=3, last_rounded=date(2024, 1, 3))
        decision = make_scheduler(two_code_catalog).plan_rounding(
            ADMISSION, date(2024, 1, 4), [current]
        )

        assert decision.outcome == RoundingOutcome.CREATED
        assert decision.created.code_id == 2
        assert decision.created.service_date == date(2024, 1, 4)
        assert decision.created.service_location == "X"
        assert decision.updated[0].id == current.id
        assert decision.updated[0].service_end_date == date(2024, 1, 3)

    def test_roll_over_skips_elapsed_windows(self, three_window_catalog) -> None:
        """Test a late rounding jumps to the window holding the date."""
        current = instance(10, ADMISSION, units=5, last_rounded=date(2024, 1, 5))
        decision = make_scheduler(three_window_catalog).plan_rounding(
            ADMISSION, date(2024, 1, 13), [current]
        )

        assert decision.created.code_id == 12
        assert decision.created.service_date == date(2024, 1, 11)
        assert decision.updated[0].service_end_date == date(2024, 1, 5)

    def test_inputs_not_mutated(self, two_code_catalog) -> None:
        """Test the scheduler returns new instances."""
        current = instance(1, ADMISSION, units=3, last_rounded=date(2024, 1, 3))
        make_scheduler(two_code_catalog).plan_rounding(ADMISSION, date(2024, 1, 4), [current])
        assert current.service_end_date is None
        assert current.number_of_units == 3

    def test_closed_code_is_not_extended(self, two_code_catalog) -> None:
        """Test a discharged code blocks further rounding."""
        current = instance(2, date(2024, 1, 4), end=date(2024, 1, 5))
        decision = make_scheduler(two_code_catalog).plan_rounding(
            ADMISSION, date(2024, 1, 6), [current]
        )
        assert decision.outcome == RoundingOutcome.SERVICE_CLOSED


class TestRoundingErrors:
    """Tests for invalid input and configuration."""

    def test_date_before_admission(self, two_code_catalog) -> None:
        """Test a rounding date before the service start."""
        decision = make_scheduler(two_code_catalog).plan_rounding(
            ADMISSION, date(2023, 12, 31), []
        )
        assert decision.outcome == RoundingOutcome.INVALID_DATE
        assert decision.days_since_start == -1

    def test_date_before_current_code(self, two_code_catalog) -> None:
        """Test a rounding date before the current code starts."""
        current = instance(2, date(2024, 1, 4))
        decision = make_scheduler(two_code_catalog).plan_rounding(
            ADMISSION, date(2024, 1, 2), [current]
        )
        assert decision.outcome == RoundingOutcome.INVALID_DATE

    def test_no_preferred_sections(self, two_code_catalog) -> None:
        """Test a physician without preferred sections."""
        decision = make_scheduler(two_code_catalog, section_ids=[]).plan_rounding(
            ADMISSION, ADMISSION, []
        )
        assert decision.outcome == RoundingOutcome.MISSING_CONFIGURATION
        assert "preferred sections" in decision.message

    def test_no_per_diem_codes_in_sections(self, two_code_catalog) -> None:
        """Test preferred sections without type 57 codes."""
        decision = make_scheduler(two_code_catalog, section_ids=[99]).plan_rounding(
            ADMISSION, ADMISSION, []
        )
        assert decision.outcome == RoundingOutcome.MISSING_CONFIGURATION

    def test_no_chain_for_candidates(self) -> None:
        """Test per-diem codes that belong to no chain."""
        codes = {1: code(1, None)}
        scheduler = RoundingScheduler([], codes, preferred_section_ids=[HOSPITAL_SECTION_ID])
        decision = scheduler.plan_rounding(ADMISSION, ADMISSION, [])
        assert decision.outcome == RoundingOutcome.NO_APPLICABLE_CODE

        with pytest.raises(NoApplicableCode):
            scheduler.select_initial_code(0)

    def test_section_filter_disabled(self, two_code_catalog) -> None:
        """Test None means every per-diem code is a candidate."""
        scheduler = make_scheduler(two_code_catalog, section_ids=None)
        assert scheduler.candidate_ids == {1, 2}


class TestDischarge:
    """Tests for closing the current per-diem code."""

    def test_discharge_on_requested_date(self, two_code_catalog) -> None:
        """Test a discharge inside the window."""
        current = instance(1, ADMISSION, units=2, last_rounded=date(2024, 1, 2))
        decision = make_scheduler(two_code_catalog).discharge([current], date(2024, 1, 2))

        assert decision.outcome == RoundingOutcome.DISCHARGED
        assert decision.updated[0].service_end_date == date(2024, 1, 2)

    def test_discharge_clamped_to_window_end(self, two_code_catalog) -> None:
        """Test the end date never extends past the code's window."""
        current = instance(1, ADMISSION, units=3, last_rounded=date(2024, 1, 3))
        decision = make_scheduler(two_code_catalog).discharge([current], date(2024, 1, 10))
        assert decision.updated[0].service_end_date == date(2024, 1, 3)

    def test_discharge_defaults_to_last_rounded(self, two_code_catalog) -> None:
        """Test the last rounding date is used when none is given."""
        current = instance(2, date(2024, 1, 4), units=2, last_rounded=date(2024, 1, 5))
        decision = make_scheduler(two_code_catalog).discharge([current])
        assert decision.updated[0].service_end_date == date(2024, 1, 5)

    def test_discharge_without_any_date(self, two_code_catalog) -> None:
        """Test the end date stays open without a date to use."""
        current = instance(1, ADMISSION)
        decision = make_scheduler(two_code_catalog).discharge([current])
        assert decision.outcome == RoundingOutcome.DISCHARGED
        assert decision.updated == []

    def test_discharge_before_start(self, two_code_catalog) -> None:
        """Test a discharge date before the code starts."""
        current = instance(2, date(2024, 1, 4))
        decision = make_scheduler(two_code_catalog).discharge([current], date(2024, 1, 1))
        assert decision.outcome == RoundingOutcome.INVALID_DATE

    def test_nothing_to_discharge(self, two_code_catalog) -> None:
        """Test a service with no per-diem code."""
        decision = make_scheduler(two_code_catalog).discharge([])
        assert decision.outcome == RoundingOutcome.NOTHING_TO_DISCHARGE
