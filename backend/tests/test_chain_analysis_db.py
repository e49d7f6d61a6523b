"""Tests for the stored chain table."""

import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from billing_engine.models import BillingCode, BillingCodeChain, BillingCodeChainEdge
from billing_engine.services.chain_analysis_db import (
    DatabaseChainService,
    load_catalog,
    load_chain_edges,
    load_chain_records,
    rebuild_chain_table,
)


def chain_row_count(session: Session) -> int:
    return session.execute(select(func.count()).select_from(BillingCodeChain)).scalar_one()


class TestLoading:
    """Tests for reading reference data."""

    def test_load_catalog(self, db_session: Session, seeded_db: dict[str, int]) -> None:
        """Test catalog rows become code info values."""
        catalog = load_catalog(db_session)
        assert set(catalog) == {1, 2, 3}
        assert catalog[1].day_range == 3
        assert catalog[1].is_per_diem
        assert not catalog[3].is_per_diem

    def test_load_chain_edges(self, db_session: Session, seeded_db: dict[str, int]) -> None:
        """Test edges are loaded."""
        edges = load_chain_edges(db_session)
        assert [(e.previous_code_id, e.code_id) for e in edges] == [(1, 2)]


class TestRebuildChainTable:
    """Tests for rebuilding billing_code_chain."""

    def test_rows_written(self, db_session: Session, seeded_db: dict[str, int]) -> None:
        """Test the seeded chain is stored."""
        records = load_chain_records(db_session)
        assert [(r.root_id, r.code_id) for r in records] == [(1, 1), (1, 2)]
        assert records[1].previous_code_id == 1
        assert records[1].previous_day_range == 3
        assert records[1].cumulative_day_range == 7
        assert records[1].is_last is True

    def test_rebuild_replaces_rows(self, db_session: Session, seeded_db: dict[str, int]) -> None:
        """Test rebuilding twice leaves one copy of every record."""
        result = rebuild_chain_table(db_session, user_id="job")
        assert len(result.records) == 2
        assert result.failures == []
        assert chain_row_count(db_session) == 2

    def test_new_code_appears_after_rebuild(
        self, db_session: Session, seeded_db: dict[str, int]
    ) -> None:
        """Test a catalog change is picked up."""
        db_session.add(BillingCode(id=4, code="0C03", title="Hospital care day 8+", day_range=30,
                                   billing_record_type=57, section_id=1))
        db_session.add(BillingCodeChainEdge(code_id=4, previous_code_id=2))
        db_session.flush()

        rebuild_chain_table(db_session)
        records = load_chain_records(db_session, root_ids=[1])
        assert [r.code_id for r in records] == [1, 2, 4]
        assert records[-1].cumulative_day_range == 37

    def test_malformed_data_reported(
        self,
        db_session: Session,
        seeded_db: dict[str, int],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test a rootless cycle is reported without losing good chains."""
        db_session.add_all(
            [
                BillingCode(id=5, code="0X05", title="Loop a", day_range=2, billing_record_type=57),
                BillingCode(id=6, code="0X06", title="Loop b", day_range=2, billing_record_type=57),
                BillingCodeChainEdge(code_id=6, previous_code_id=5),
                BillingCodeChainEdge(code_id=5, previous_code_id=6),
            ]
        )
        db_session.flush()

        with caplog.at_level(logging.WARNING, logger="audit"):
            result = rebuild_chain_table(db_session)

        assert result.failures
        assert [r.code_id for r in result.records] == [1, 2]
        assert chain_row_count(db_session) == 2
        assert "rebuild_chains" in caplog.text

    def test_filter_by_unknown_root(self, db_session: Session, seeded_db: dict[str, int]) -> None:
        """Test restricting to roots with no records."""
        assert load_chain_records(db_session, root_ids=[999]) == []


class TestDatabaseChainService:
    """Tests for queries over the stored table."""

    def test_queries_use_stored_records(
        self, db_session: Session, seeded_db: dict[str, int]
    ) -> None:
        """Test the query engine loaded from a session."""
        service = DatabaseChainService.from_session(db_session)
        assert [r.code_id for r in service.get_chain_by_root(1)] == [1, 2]
        assert service.get_chain_statistics().total_chains == 1
        assert service.get_chain_by_code(2).cumulative_day_range == 7
