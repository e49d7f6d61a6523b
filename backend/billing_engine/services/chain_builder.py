"""Billing code chain construction.

Builds the derived chain table from the billing code catalog and the
predecessor edges between codes. Each root code yields one chain: every
code reachable from the root gets one record carrying the cumulative day
range before and through that code.

Chain reference data comes from an offline bulk load, so traversal is
bounded and a malformed root (cycle, missing code, converging paths)
fails on its own without affecting other roots.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field

from billing_engine.core.exceptions import MalformedChainData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodeInfo:
    """Billing code catalog entry as consumed by chain and rounding logic."""

    id: int
    code: str
    title: str
    day_range: int | None = None
    max_units: int | None = None
    multiple_unit_indicator: str | None = None
    billing_record_type: int = 50
    section_id: int | None = None
    billing_unit_type: str | None = None
    fee_cents: int = 0

    @property
    def is_per_diem(self) -> bool:
        return self.billing_record_type == 57


@dataclass(frozen=True)
class ChainEdge:
    """Predecessor link: code_id follows previous_code_id."""

    code_id: int
    previous_code_id: int


@dataclass(frozen=True)
class ChainRecord:
    """One (root, code) pair of a billing code chain."""

    code_id: int
    code: str
    title: str
    day_range: int
    root_id: int
    previous_code_id: int | None
    previous_day_range: int
    cumulative_day_range: int
    prev_plus_self: int
    is_last: bool
    path_ids: tuple[int, ...] = field(default=(), compare=False)

    @property
    def is_root(self) -> bool:
        return self.previous_code_id is None

    def to_dict(self, include_path: bool = False) -> dict:
        data = asdict(self)
        if include_path:
            data["path_ids"] = list(self.path_ids)
        else:
            data.pop("path_ids")
        return data


@dataclass
class ChainBuildResult:
    """Result of building every chain in the catalog."""

    chains: dict[int, list[ChainRecord]] = field(default_factory=dict)
    failures: list[MalformedChainData] = field(default_factory=list)

    @property
    def records(self) -> list[ChainRecord]:
        """All records of all successfully built chains, by root id."""
        return [record for root_id in sorted(self.chains) for record in self.chains[root_id]]

    @property
    def failed_root_ids(self) -> list[int]:
        return sorted({f.root_id for f in self.failures if f.root_id is not None})


def _index_codes(codes: Mapping[int, CodeInfo] | Iterable[CodeInfo]) -> dict[int, CodeInfo]:
    if isinstance(codes, Mapping):
        return dict(codes)
    return {code.id: code for code in codes}


def _successor_map(edges: Iterable[ChainEdge]) -> dict[int, list[int]]:
    successors: dict[int, set[int]] = defaultdict(set)
    for edge in edges:
        successors[edge.previous_code_id].add(edge.code_id)
    return {prev: sorted(ids) for prev, ids in successors.items()}


def _reachable_ids(root_id: int, successors: dict[int, list[int]]) -> set[int]:
    """Ids reachable from a root, tolerating cycles."""
    seen = {root_id}
    pending = [root_id]
    while pending:
        for next_id in successors.get(pending.pop(), []):
            if next_id not in seen:
                seen.add(next_id)
                pending.append(next_id)
    return seen


def build_chain(
    root_id: int,
    codes: Mapping[int, CodeInfo] | Iterable[CodeInfo],
    edges: Iterable[ChainEdge],
) -> list[ChainRecord]:
    """Build the chain records reachable from one root.

    Args:
        root_id: Id of the chain's starting code.
        codes: Billing code catalog (mapping by id or iterable).
        edges: Predecessor edges.

    Returns:
        Records sorted by cumulative_day_range, then previous_day_range,
        then code_id.

    Raises:
        MalformedChainData: On a cycle, a depth beyond the catalog size,
            a root or reachable code missing from the catalog, or a code
            reached through two different predecessors.
    """
    catalog = _index_codes(codes)
    successors = _successor_map(edges)

    if root_id not in catalog:
        raise MalformedChainData(root_id, f"root code {root_id} is not in the catalog")

    max_depth = len(catalog)
    # code_id -> (previous_code_id, previous_day_range, path)
    reached: dict[int, tuple[int | None, int, tuple[int, ...]]] = {}
    stack: list[tuple[int, int | None, int, tuple[int, ...]]] = [(root_id, None, 0, ())]

    while stack:
        code_id, previous_id, previous_day_range, parent_path = stack.pop()

        if code_id in parent_path:
            cycle = " -> ".join(str(i) for i in (*parent_path, code_id))
            raise MalformedChainData(root_id, f"cycle detected: {cycle}")
        if code_id not in catalog:
            raise MalformedChainData(
                root_id, f"code {code_id} (after {previous_id}) is not in the catalog"
            )
        if len(parent_path) >= max_depth:
            raise MalformedChainData(
                root_id, f"traversal depth exceeds catalog size ({max_depth})"
            )
        if code_id in reached:
            first_previous = reached[code_id][0]
            raise MalformedChainData(
                root_id,
                f"code {code_id} is reached from both {first_previous} and {previous_id}",
            )

        path = (*parent_path, code_id)
        reached[code_id] = (previous_id, previous_day_range, path)
        cumulative = previous_day_range + (catalog[code_id].day_range or 0)

        for next_id in reversed(successors.get(code_id, [])):
            stack.append((next_id, code_id, cumulative, path))

    predecessors = {previous_id for previous_id, _, _ in reached.values()}
    records = []
    for code_id, (previous_id, previous_day_range, path) in reached.items():
        info = catalog[code_id]
        day_range = info.day_range or 0
        cumulative = previous_day_range + day_range
        records.append(
            ChainRecord(
                code_id=code_id,
                code=info.code,
                title=info.title,
                day_range=day_range,
                root_id=root_id,
                previous_code_id=previous_id,
                previous_day_range=previous_day_range,
                cumulative_day_range=cumulative,
                prev_plus_self=cumulative,
                is_last=code_id not in predecessors,
                path_ids=path,
            )
        )

    records.sort(key=lambda r: (r.cumulative_day_range, r.previous_day_range, r.code_id))
    return records


def find_root_ids(
    codes: Mapping[int, CodeInfo] | Iterable[CodeInfo],
    edges: Iterable[ChainEdge],
) -> list[int]:
    """Find chain roots: codes with a day range or successors and no predecessor."""
    catalog = _index_codes(codes)
    edge_list = list(edges)
    has_predecessor = {edge.code_id for edge in edge_list}
    has_successor = {edge.previous_code_id for edge in edge_list}

    return sorted(
        code_id
        for code_id, info in catalog.items()
        if code_id not in has_predecessor
        and (info.day_range is not None or code_id in has_successor)
    )


def build_all_chains(
    codes: Mapping[int, CodeInfo] | Iterable[CodeInfo],
    edges: Iterable[ChainEdge],
) -> ChainBuildResult:
    """Build every chain in the catalog, isolating failures per root.

    Edges pointing at a predecessor missing from the catalog, and codes
    that only sit on a cycle with no root, are reported as failures with
    no root id.
    """
    catalog = _index_codes(codes)
    edge_list = list(edges)
    result = ChainBuildResult()

    successors = _successor_map(edge_list)
    covered: set[int] = set()
    for root_id in find_root_ids(catalog, edge_list):
        covered |= _reachable_ids(root_id, successors)
        try:
            records = build_chain(root_id, catalog, edge_list)
        except MalformedChainData as e:
            logger.warning(f"Skipping malformed chain: {e}")
            result.failures.append(e)
            continue
        result.chains[root_id] = records

    for edge in sorted(edge_list, key=lambda e: (e.code_id, e.previous_code_id)):
        if edge.previous_code_id not in catalog:
            failure = MalformedChainData(
                None,
                f"code {edge.code_id} has orphaned predecessor {edge.previous_code_id}",
            )
        elif edge.code_id not in covered:
            failure = MalformedChainData(
                None,
                f"code {edge.code_id} is not reachable from any root (cycle without root)",
            )
        else:
            continue
        logger.warning(f"Chain edge rejected: {failure}")
        result.failures.append(failure)

    logger.info(
        f"Built {len(result.chains)} chains ({len(result.records)} records), "
        f"{len(result.failures)} failures"
    )
    return result
