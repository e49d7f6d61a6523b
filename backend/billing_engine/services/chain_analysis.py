"""Chain query and analysis engine.

Read-side queries over the derived chain table: lookups by root or
code, rankings, day-range filtering, search and aggregate statistics.
All operations are side-effect-free over an in-memory record set.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from billing_engine.core.config import settings
from billing_engine.services.chain_builder import ChainRecord

logger = logging.getLogger(__name__)


# ============================================================================
# Query and result types
# ============================================================================


@dataclass
class ChainQuery:
    """Filters and pagination for listing chain records."""

    root_id: int | None = None
    code_id: int | None = None
    previous_code_id: int | None = None
    min_cumulative_day_range: int | None = None
    max_cumulative_day_range: int | None = None
    limit: int | None = None
    offset: int = 0


@dataclass
class ChainSummary:
    """One root ranked by length or day range."""

    root_id: int
    root_code: str
    root_title: str
    chain_length: int
    max_cumulative_day_range: int


@dataclass
class ChainStatistics:
    """Aggregate counts over the chain table."""

    total_chains: int = 0
    total_codes: int = 0
    total_records: int = 0
    average_chain_length: float = 0.0
    max_cumulative_day_range: int = 0


@dataclass
class ChainAnalysis:
    """Structure of a single chain."""

    root_code: ChainRecord
    chain_codes: list[ChainRecord] = field(default_factory=list)
    total_day_range: int = 0
    chain_length: int = 0
    has_cycles: bool = False


def _chain_order(record: ChainRecord) -> tuple[int, int, int]:
    return (record.cumulative_day_range, record.previous_day_range, record.code_id)


# ============================================================================
# Service
# ============================================================================


class BillingCodeChainService:
    """Query engine over a set of chain records.

    Example usage:
        service = BillingCodeChainService(result.records)
        chain = service.get_chain_by_root(root_id)
        stats = service.get_chain_statistics()
    """

    def __init__(
        self,
        records: Iterable[ChainRecord],
        max_limit: int | None = None,
    ) -> None:
        self._max_limit = max_limit or settings.chain_query_max_limit
        self._records = sorted(records, key=lambda r: (r.root_id, *_chain_order(r)))

        self._by_root: dict[int, list[ChainRecord]] = defaultdict(list)
        self._by_code: dict[int, list[ChainRecord]] = defaultdict(list)
        for record in self._records:
            self._by_root[record.root_id].append(record)
            self._by_code[record.code_id].append(record)

    @property
    def records(self) -> list[ChainRecord]:
        return list(self._records)

    def _paginate(self, items: list, limit: int | None, offset: int = 0) -> list:
        """Apply offset/limit with the safety ceiling.

        Raises:
            ValueError: If limit or offset is negative.
        """
        if offset < 0:
            raise ValueError(f"offset must not be negative, got {offset}")
        if limit is not None and limit < 0:
            raise ValueError(f"limit must not be negative, got {limit}")

        effective = self._max_limit if limit is None else min(limit, self._max_limit)
        return items[offset : offset + effective]

    def _summary(self, root_id: int) -> ChainSummary:
        chain = self._by_root[root_id]
        root = next((r for r in chain if r.is_root), chain[0])
        return ChainSummary(
            root_id=root_id,
            root_code=root.code,
            root_title=root.title,
            chain_length=len(chain),
            max_cumulative_day_range=max(r.cumulative_day_range for r in chain),
        )

    def _filter(self, query: ChainQuery) -> list[ChainRecord]:
        return [
            r
            for r in self._records
            if (query.root_id is None or r.root_id == query.root_id)
            and (query.code_id is None or r.code_id == query.code_id)
            and (query.previous_code_id is None or r.previous_code_id == query.previous_code_id)
            and (
                query.min_cumulative_day_range is None
                or r.cumulative_day_range >= query.min_cumulative_day_range
            )
            and (
                query.max_cumulative_day_range is None
                or r.cumulative_day_range <= query.max_cumulative_day_range
            )
        ]

    def get_all_chains(self, query: ChainQuery | None = None) -> list[ChainRecord]:
        """List chain records matching the query filters."""
        query = query or ChainQuery()
        return self._paginate(self._filter(query), query.limit, query.offset)

    def get_chain_by_root(self, root_id: int) -> list[ChainRecord]:
        """All records of a root, ordered by cumulative day range."""
        return list(self._by_root.get(root_id, []))

    def get_chain_by_code(self, code_id: int) -> ChainRecord | None:
        """The chain record for a code.

        A code reachable from several roots breaks the one-chain-per-code
        assumption; the record of the lowest root id is returned and a
        warning is logged.
        """
        matches = self._by_code.get(code_id, [])
        if not matches:
            return None
        if len(matches) > 1:
            roots = sorted(r.root_id for r in matches)
            logger.warning(
                f"Code {code_id} belongs to {len(roots)} chains (roots {roots}); "
                f"using root {roots[0]}"
            )
        return min(matches, key=lambda r: r.root_id)

    def get_chains_containing_code(self, code_id: int) -> list[ChainRecord]:
        """Complete chains of every root whose chain includes the code."""
        root_ids = sorted({r.root_id for r in self._by_code.get(code_id, [])})
        return [record for root_id in root_ids for record in self._by_root[root_id]]

    def get_longest_chains(self, limit: int | None = None) -> list[ChainSummary]:
        """Roots ranked by number of records, longest first."""
        limit = settings.chain_query_default_limit if limit is None else limit
        summaries = [self._summary(root_id) for root_id in self._by_root]
        summaries.sort(key=lambda s: (-s.chain_length, s.root_id))
        return self._paginate(summaries, limit)

    def get_chains_with_highest_day_ranges(self, limit: int | None = None) -> list[ChainSummary]:
        """Roots ranked by their maximum cumulative day range, highest first."""
        limit = settings.chain_query_default_limit if limit is None else limit
        summaries = [self._summary(root_id) for root_id in self._by_root]
        summaries.sort(key=lambda s: (-s.max_cumulative_day_range, s.root_id))
        return self._paginate(summaries, limit)

    def get_chains_with_day_range_analysis(
        self,
        min_day_range: int | None = None,
        max_day_range: int | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ChainRecord]:
        """Records whose cumulative day range lies in [min, max]; bounds optional."""
        query = ChainQuery(
            min_cumulative_day_range=min_day_range,
            max_cumulative_day_range=max_day_range,
        )
        matches = sorted(self._filter(query), key=lambda r: (*_chain_order(r), r.root_id))
        return self._paginate(matches, limit, offset)

    def search_chains(
        self,
        term: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ChainRecord]:
        """Case-insensitive substring search over code and title."""
        needle = term.strip().lower()
        if not needle:
            return []
        matches = [
            r for r in self._records if needle in r.code.lower() or needle in r.title.lower()
        ]
        return self._paginate(matches, limit, offset)

    def get_chain_statistics(self) -> ChainStatistics:
        """Aggregate counts over all chains."""
        if not self._records:
            return ChainStatistics()

        total_chains = len(self._by_root)
        return ChainStatistics(
            total_chains=total_chains,
            total_codes=len(self._by_code),
            total_records=len(self._records),
            average_chain_length=round(len(self._records) / total_chains, 2),
            max_cumulative_day_range=max(r.cumulative_day_range for r in self._records),
        )

    def analyze_chain(self, root_id: int) -> ChainAnalysis | None:
        """Describe one chain and check its predecessor links for cycles."""
        chain = self.get_chain_by_root(root_id)
        if not chain:
            return None

        root = next((r for r in chain if r.is_root), chain[0])
        return ChainAnalysis(
            root_code=root,
            chain_codes=chain,
            total_day_range=max(r.cumulative_day_range for r in chain),
            chain_length=len(chain),
            has_cycles=_has_cycles(chain),
        )


def _has_cycles(chain: list[ChainRecord]) -> bool:
    """Walk predecessor links from every record; True if any walk repeats."""
    previous = {r.code_id: r.previous_code_id for r in chain}
    for start in previous:
        seen = set()
        current: int | None = start
        while current is not None:
            if current in seen:
                return True
            seen.add(current)
            current = previous.get(current)
    return False
