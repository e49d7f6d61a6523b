"""Database-backed chain table loading and rebuilding.

Reads the billing code catalog and chain edges through SQLAlchemy,
rebuilds the derived billing_code_chain table, and serves chain queries
from the stored records.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from billing_engine.core.audit import AuditAction, log_audit
from billing_engine.models import BillingCode, BillingCodeChain, BillingCodeChainEdge
from billing_engine.services.chain_analysis import BillingCodeChainService
from billing_engine.services.chain_builder import (
    ChainBuildResult,
    ChainEdge,
    ChainRecord,
    CodeInfo,
    build_all_chains,
)

logger = logging.getLogger(__name__)


def to_code_info(code: BillingCode) -> CodeInfo:
    """Convert a BillingCode row to the value type used by the services."""
    return CodeInfo(
        id=code.id,
        code=code.code,
        title=code.title,
        day_range=code.day_range,
        max_units=code.max_units,
        multiple_unit_indicator=code.multiple_unit_indicator,
        billing_record_type=code.billing_record_type,
        section_id=code.section_id,
        billing_unit_type=code.billing_unit_type,
        fee_cents=code.fee_cents,
    )


def to_chain_record(row: BillingCodeChain) -> ChainRecord:
    """Convert a stored chain row to a ChainRecord."""
    return ChainRecord(
        code_id=row.code_id,
        code=row.code,
        title=row.title,
        day_range=row.day_range,
        root_id=row.root_id,
        previous_code_id=row.previous_code_id,
        previous_day_range=row.previous_day_range,
        cumulative_day_range=row.cumulative_day_range,
        prev_plus_self=row.prev_plus_self,
        is_last=row.is_last,
    )


def load_catalog(session: Session) -> dict[int, CodeInfo]:
    """Load the billing code catalog keyed by id."""
    codes = session.execute(select(BillingCode)).scalars().all()
    return {code.id: to_code_info(code) for code in codes}


def load_chain_edges(session: Session) -> list[ChainEdge]:
    """Load all predecessor edges."""
    rows = session.execute(select(BillingCodeChainEdge)).scalars().all()
    return [ChainEdge(code_id=row.code_id, previous_code_id=row.previous_code_id) for row in rows]


def load_chain_records(session: Session, root_ids: list[int] | None = None) -> list[ChainRecord]:
    """Load stored chain records, optionally restricted to some roots."""
    stmt = select(BillingCodeChain).order_by(
        BillingCodeChain.root_id,
        BillingCodeChain.cumulative_day_range,
        BillingCodeChain.previous_day_range,
        BillingCodeChain.code_id,
    )
    if root_ids is not None:
        stmt = stmt.where(BillingCodeChain.root_id.in_(root_ids))
    rows = session.execute(stmt).scalars().all()
    return [to_chain_record(row) for row in rows]


def rebuild_chain_table(session: Session, user_id: str | None = None) -> ChainBuildResult:
    """Rebuild billing_code_chain from the catalog and edges.

    Malformed roots are left out of the table and reported in the result.
    The caller owns the transaction; rows are flushed, not committed.

    Args:
        session: SQLAlchemy session.
        user_id: User or job triggering the rebuild (for the audit log).

    Returns:
        The build result with the chains written and the failures.
    """
    catalog = load_catalog(session)
    edges = load_chain_edges(session)
    result = build_all_chains(catalog, edges)

    session.execute(delete(BillingCodeChain))
    for record in result.records:
        session.add(
            BillingCodeChain(
                code_id=record.code_id,
                code=record.code,
                title=record.title,
                day_range=record.day_range,
                root_id=record.root_id,
                previous_code_id=record.previous_code_id,
                previous_day_range=record.previous_day_range,
                cumulative_day_range=record.cumulative_day_range,
                prev_plus_self=record.prev_plus_self,
                is_last=record.is_last,
            )
        )
    session.flush()

    log_audit(
        action=AuditAction.REBUILD_CHAINS,
        resource_type="billing_code_chain",
        user_id=user_id,
        details={
            "chains": len(result.chains),
            "records": len(result.records),
            "failures": [str(f) for f in result.failures],
        },
        success=not result.failures,
    )
    logger.info(
        f"Rebuilt chain table: {len(result.records)} records across "
        f"{len(result.chains)} roots"
    )
    return result


class DatabaseChainService(BillingCodeChainService):
    """Chain query engine over the stored chain table."""

    @classmethod
    def from_session(cls, session: Session, max_limit: int | None = None) -> "DatabaseChainService":
        return cls(load_chain_records(session), max_limit=max_limit)
