"""Services for the Billing Chain Engine.

Services implement the billing logic:
- chain_builder: Billing code chain construction from catalog edges
- chain_analysis: Chain queries, rankings and statistics
- rounding: Per-diem rounding and discharge scheduling
- claim_batch / claim_builder: Fixed-width claim batch generation
- return_file: Payer return file parsing
- code_splitting: Time-based code splitting by location of service
"""

from billing_engine.services.chain_analysis import (
    BillingCodeChainService,
    ChainAnalysis,
    ChainQuery,
    ChainStatistics,
    ChainSummary,
)
from billing_engine.services.chain_analysis_db import (
    DatabaseChainService,
    load_chain_records,
    rebuild_chain_table,
)
from billing_engine.services.chain_builder import (
    ChainBuildResult,
    ChainEdge,
    ChainRecord,
    CodeInfo,
    build_all_chains,
    build_chain,
    find_root_ids,
)
from billing_engine.services.claim_batch import (
    PractitionerHeader,
    ServiceRecord,
    ServiceRecord50,
    ServiceRecord57,
    generate_claim_batch,
    parse_claim_batch,
    verify_claim_batch,
)
from billing_engine.services.claim_builder import (
    ClaimService,
    ClaimServiceCode,
    build_practitioner_header,
    build_service_records,
)
from billing_engine.services.code_splitting import (
    CodeToSplit,
    LocationOfService,
    generate_split_description,
    split_billing_code_by_time_and_location,
)
from billing_engine.services.return_file import (
    ReturnRecord,
    parse_biweekly_return_file,
    parse_daily_return_file,
    summarize_return_records,
)
from billing_engine.services.rounding import (
    RoundingDecision,
    RoundingDefaults,
    RoundingOutcome,
    RoundingScheduler,
    ServiceCodeInstance,
)
from billing_engine.services.rounding_db import DatabaseRoundingService

__all__ = [
    # Chains
    "BillingCodeChainService",
    "ChainAnalysis",
    "ChainBuildResult",
    "ChainEdge",
    "ChainQuery",
    "ChainRecord",
    "ChainStatistics",
    "ChainSummary",
    "CodeInfo",
    "DatabaseChainService",
    "build_all_chains",
    "build_chain",
    "find_root_ids",
    "load_chain_records",
    "rebuild_chain_table",
    # Rounding
    "DatabaseRoundingService",
    "RoundingDecision",
    "RoundingDefaults",
    "RoundingOutcome",
    "RoundingScheduler",
    "ServiceCodeInstance",
    # Claims
    "ClaimService",
    "ClaimServiceCode",
    "PractitionerHeader",
    "ServiceRecord",
    "ServiceRecord50",
    "ServiceRecord57",
    "build_practitioner_header",
    "build_service_records",
    "generate_claim_batch",
    "parse_claim_batch",
    "verify_claim_batch",
    # Return files
    "ReturnRecord",
    "parse_biweekly_return_file",
    "parse_daily_return_file",
    "summarize_return_records",
    # Code splitting
    "CodeToSplit",
    "LocationOfService",
    "generate_split_description",
    "split_billing_code_by_time_and_location",
]
