"""Billing code chain schemas."""

from pydantic import BaseModel, Field


class BillingCodeChainRecord(BaseModel):
    """One (root, code) record of a billing code chain."""

    code_id: int = Field(..., description="Billing code this record describes")
    code: str = Field(..., description="Billing code string")
    title: str = Field(..., description="Billing code title")
    day_range: int = Field(..., description="Days covered by this code")
    root_id: int = Field(..., description="Chain root code id")
    previous_code_id: int | None = Field(None, description="Predecessor (null for the root)")
    previous_day_range: int = Field(..., description="Cumulative days before this code")
    cumulative_day_range: int = Field(..., description="Cumulative days through this code")
    prev_plus_self: int = Field(..., description="Same as cumulative_day_range")
    is_last: bool = Field(..., description="Whether no code follows this one")

    model_config = {"from_attributes": True}


class ChainSummary(BaseModel):
    """A chain ranked by length or day range."""

    root_id: int
    root_code: str
    root_title: str
    chain_length: int = Field(..., description="Number of codes in the chain")
    max_cumulative_day_range: int = Field(..., description="Longest cumulative day range")

    model_config = {"from_attributes": True}


class ChainStatistics(BaseModel):
    """Aggregate statistics over all chains."""

    total_chains: int = Field(0, description="Distinct roots")
    total_codes: int = Field(0, description="Distinct codes across chains")
    total_records: int = Field(0, description="Chain records")
    average_chain_length: float = Field(0.0, description="Records per chain")
    max_cumulative_day_range: int = Field(0, description="Longest cumulative day range")

    model_config = {"from_attributes": True}


class ChainAnalysis(BaseModel):
    """Structure of one chain."""

    root_code: BillingCodeChainRecord
    chain_codes: list[BillingCodeChainRecord] = Field(default_factory=list)
    total_day_range: int = 0
    chain_length: int = 0
    has_cycles: bool = False

    model_config = {"from_attributes": True}


class ChainRebuildResponse(BaseModel):
    """Result of rebuilding the chain table."""

    chains: int = Field(..., description="Chains written")
    records: int = Field(..., description="Records written")
    failures: list[str] = Field(default_factory=list, description="Malformed chain data")
