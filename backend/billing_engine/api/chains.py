"""Billing code chain API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from billing_engine.core.database import get_db
from billing_engine.schemas.chain import (
    BillingCodeChainRecord,
    ChainAnalysis,
    ChainRebuildResponse,
    ChainStatistics,
    ChainSummary,
)
from billing_engine.services.chain_analysis import ChainQuery
from billing_engine.services.chain_analysis_db import DatabaseChainService, rebuild_chain_table

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing-code-chains", tags=["Billing Code Chains"])

DbSession = Annotated[Session, Depends(get_db)]


def _bad_request(e: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get(
    "",
    response_model=list[BillingCodeChainRecord],
    summary="List chain records",
    description="List chain records, optionally filtered by root, code, predecessor or cumulative day range, or searched by code/title.",
)
def list_chain_records(
    db: DbSession,
    search: str | None = Query(None, description="Substring of code or title"),
    root_id: int | None = Query(None, alias="rootId"),
    code_id: int | None = Query(None, alias="codeId"),
    previous_code_id: int | None = Query(None, alias="previousCodeId"),
    min_cumulative_day_range: int | None = Query(None, alias="minCumulativeDayRange"),
    max_cumulative_day_range: int | None = Query(None, alias="maxCumulativeDayRange"),
    limit: int | None = Query(None, ge=0),
    offset: int = Query(0, ge=0),
) -> list[BillingCodeChainRecord]:
    """List or search chain records."""
    service = DatabaseChainService.from_session(db)
    try:
        if search is not None:
            records = service.search_chains(search, limit=limit, offset=offset)
        else:
            records = service.get_all_chains(
                ChainQuery(
                    root_id=root_id,
                    code_id=code_id,
                    previous_code_id=previous_code_id,
                    min_cumulative_day_range=min_cumulative_day_range,
                    max_cumulative_day_range=max_cumulative_day_range,
                    limit=limit,
                    offset=offset,
                )
            )
    except ValueError as e:
        raise _bad_request(e) from e
    return [BillingCodeChainRecord.model_validate(r) for r in records]


@router.get(
    "/statistics",
    response_model=ChainStatistics,
    summary="Chain statistics",
)
def get_chain_statistics(db: DbSession) -> ChainStatistics:
    stats = DatabaseChainService.from_session(db).get_chain_statistics()
    return ChainStatistics.model_validate(stats)


@router.get(
    "/longest",
    response_model=list[ChainSummary],
    summary="Longest chains",
    description="Chains ranked by number of codes.",
)
def get_longest_chains(
    db: DbSession,
    limit: int | None = Query(None, ge=0),
) -> list[ChainSummary]:
    summaries = DatabaseChainService.from_session(db).get_longest_chains(limit)
    return [ChainSummary.model_validate(s) for s in summaries]


@router.get(
    "/highest-day-ranges",
    response_model=list[ChainSummary],
    summary="Chains with the highest day ranges",
    description="Chains ranked by maximum cumulative day range.",
)
def get_chains_with_highest_day_ranges(
    db: DbSession,
    limit: int | None = Query(None, ge=0),
) -> list[ChainSummary]:
    summaries = DatabaseChainService.from_session(db).get_chains_with_highest_day_ranges(limit)
    return [ChainSummary.model_validate(s) for s in summaries]


@router.get(
    "/day-range-analysis",
    response_model=list[BillingCodeChainRecord],
    summary="Chain records by cumulative day range",
    description="Records whose cumulative day range falls within the bounds, ordered by cumulative day range.",
)
def get_chains_with_day_range_analysis(
    db: DbSession,
    min_day_range: int | None = Query(None, alias="minDayRange"),
    max_day_range: int | None = Query(None, alias="maxDayRange"),
    limit: int | None = Query(None, ge=0),
    offset: int = Query(0, ge=0),
) -> list[BillingCodeChainRecord]:
    service = DatabaseChainService.from_session(db)
    try:
        records = service.get_chains_with_day_range_analysis(
            min_day_range, max_day_range, limit=limit, offset=offset
        )
    except ValueError as e:
        raise _bad_request(e) from e
    return [BillingCodeChainRecord.model_validate(r) for r in records]


@router.get(
    "/roots/{root_id}",
    response_model=list[BillingCodeChainRecord],
    summary="Get a chain by root",
)
def get_chain_by_root(root_id: int, db: DbSession) -> list[BillingCodeChainRecord]:
    """Get every record of one chain.

    Raises:
        HTTPException: 404 if no chain has this root.
    """
    records = DatabaseChainService.from_session(db).get_chain_by_root(root_id)
    if not records:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No chain with root {root_id}",
        )
    return [BillingCodeChainRecord.model_validate(r) for r in records]


@router.get(
    "/roots/{root_id}/analysis",
    response_model=ChainAnalysis,
    summary="Analyze a chain",
    description="Root record, ordered chain codes, total day range and cycle check.",
)
def analyze_chain(root_id: int, db: DbSession) -> ChainAnalysis:
    analysis = DatabaseChainService.from_session(db).analyze_chain(root_id)
    if analysis is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No chain with root {root_id}",
        )
    return ChainAnalysis.model_validate(analysis)


@router.get(
    "/codes/{code_id}",
    response_model=BillingCodeChainRecord,
    summary="Get the chain record of a code",
)
def get_chain_by_code(code_id: int, db: DbSession) -> BillingCodeChainRecord:
    record = DatabaseChainService.from_session(db).get_chain_by_code(code_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Code {code_id} is not in any chain",
        )
    return BillingCodeChainRecord.model_validate(record)


@router.get(
    "/codes/{code_id}/chains",
    response_model=list[BillingCodeChainRecord],
    summary="Chains containing a code",
    description="Every record of every chain that contains the code.",
)
def get_chains_containing_code(code_id: int, db: DbSession) -> list[BillingCodeChainRecord]:
    records = DatabaseChainService.from_session(db).get_chains_containing_code(code_id)
    return [BillingCodeChainRecord.model_validate(r) for r in records]


@router.post(
    "/rebuild",
    response_model=ChainRebuildResponse,
    summary="Rebuild the chain table",
    description="Recompute every chain from the billing code catalog. Malformed chains are reported and skipped.",
)
def rebuild_chains(db: DbSession) -> ChainRebuildResponse:
    result = rebuild_chain_table(db)
    logger.info(f"Chain table rebuilt: {len(result.chains)} chains, {len(result.failures)} failures")
    return ChainRebuildResponse(
        chains=len(result.chains),
        records=len(result.records),
        failures=[str(f) for f in result.failures],
    )
