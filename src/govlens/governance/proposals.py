"""
Proposal analytics.

Windowed scans over the proposal registry and the aggregate statistics built
from them: state and type counts, per-type success rates, average lifetime
and average voter turnout.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..errors.exceptions import RegistryError, create_window_error
from .core import (
    EngineConfig,
    ProposalRecord,
    ProposalState,
    ProposalType,
    basis_points,
    rounded_basis_points,
)
from .registries import ProposalRegistry, TokenRegistry, require_registry


def validate_window(start_id: int, end_id: int, config: EngineConfig) -> None:
    """Reject windows that are negative, reversed, or wider than the cap."""
    if start_id < 0 or end_id < start_id or end_id - start_id + 1 > config.max_proposal_window:
        raise create_window_error(start_id, end_id, config.max_proposal_window)


def recent_window(registry: ProposalRegistry, size: int, config: EngineConfig) -> Tuple[int, int]:
    """The window covering the latest `size` proposal ids."""
    size = max(1, min(size, config.max_proposal_window))
    end_id = max(registry.proposal_count(), 1)
    return max(1, end_id - size + 1), end_id


class ProposalWindowScanner:
    """Iterates the existing proposals in an id window.

    Existence is tested by reading the proposal state; ids whose reads fail
    are skipped and remembered rather than aborting the scan.
    """

    def __init__(self, proposal_registry: Optional[ProposalRegistry], config: EngineConfig):
        self._proposal_registry = proposal_registry
        self.config = config
        self.skipped: List[int] = []

    @property
    def proposals(self) -> ProposalRegistry:
        return require_registry(self._proposal_registry, "proposal")

    def scan(self, start_id: int, end_id: int) -> Iterator[ProposalRecord]:
        validate_window(start_id, end_id, self.config)
        registry = self.proposals
        self.skipped = []

        for proposal_id in range(start_id, end_id + 1):
            try:
                state = registry.get_proposal_state(proposal_id)
                record = registry.get_proposal_record(proposal_id)
            except RegistryError as e:
                logger.debug(f"Skipping proposal {proposal_id}: {e.message}")
                self.skipped.append(proposal_id)
                continue
            yield replace(record, state=state)


def snapshot_supply(record: ProposalRecord, token_registry: TokenRegistry) -> int:
    """Supply at the proposal's snapshot, else current total supply."""
    try:
        supply = token_registry.get_snapshot_metrics(record.snapshot_id).total_supply
    except RegistryError:
        supply = 0
    if supply <= 0:
        supply = token_registry.total_supply()
    return supply


def turnout_basis_points(record: ProposalRecord, token_registry: TokenRegistry) -> Optional[int]:
    """Votes cast as a share of supply, or None when supply is unknown."""
    supply = snapshot_supply(record, token_registry)
    if supply <= 0:
        return None
    return basis_points(record.votes.total(), supply)


@dataclass
class TypeStats:
    """Attempts and executions of one proposal type."""

    attempted: int = 0
    executed: int = 0

    @property
    def success_rate_bp(self) -> int:
        return rounded_basis_points(self.executed, self.attempted)

    def to_dict(self) -> Dict[str, int]:
        return {
            "attempted": self.attempted,
            "executed": self.executed,
            "success_rate_bp": self.success_rate_bp,
        }


@dataclass
class ProposalAnalytics:
    """Aggregated statistics over a proposal id window."""

    start_id: int
    end_id: int
    total_proposals: int = 0
    state_counts: Dict[ProposalState, int] = field(
        default_factory=lambda: {state: 0 for state in ProposalState}
    )
    type_stats: Dict[ProposalType, TypeStats] = field(
        default_factory=lambda: {ptype: TypeStats() for ptype in ProposalType}
    )
    avg_lifetime: int = 0
    avg_turnout_bp: int = 0
    skipped_ids: List[int] = field(default_factory=list)

    def count(self, state: ProposalState) -> int:
        return self.state_counts.get(state, 0)

    def success_rate_bp(self, proposal_type: ProposalType) -> int:
        return self.type_stats[proposal_type].success_rate_bp

    @property
    def distinct_types(self) -> int:
        return sum(1 for stats in self.type_stats.values() if stats.attempted > 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_id": self.start_id,
            "end_id": self.end_id,
            "total_proposals": self.total_proposals,
            "state_counts": {s.value: n for s, n in self.state_counts.items()},
            "type_stats": {t.value: s.to_dict() for t, s in self.type_stats.items()},
            "avg_lifetime": self.avg_lifetime,
            "avg_turnout_bp": self.avg_turnout_bp,
            "skipped_ids": list(self.skipped_ids),
        }


class ProposalAnalyticsAggregator:
    """Aggregates proposal statistics over a capped id window."""

    def __init__(
        self,
        proposal_registry: Optional[ProposalRegistry],
        token_registry: Optional[TokenRegistry],
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self._proposal_registry = proposal_registry
        self._token_registry = token_registry

    def aggregate(self, start_id: int, end_id: int) -> ProposalAnalytics:
        validate_window(start_id, end_id, self.config)
        tokens = require_registry(self._token_registry, "token")
        scanner = ProposalWindowScanner(self._proposal_registry, self.config)

        analytics = ProposalAnalytics(start_id=start_id, end_id=end_id)
        now = self.config.now()
        lifetime_total = 0
        turnout_total = 0
        turnout_samples = 0

        for record in scanner.scan(start_id, end_id):
            analytics.total_proposals += 1
            analytics.state_counts[record.state] += 1

            stats = analytics.type_stats[record.proposal_type]
            stats.attempted += 1
            if record.state == ProposalState.EXECUTED:
                stats.executed += 1

            lifetime_total += max(0, int(now - record.created_at))

            try:
                turnout = turnout_basis_points(record, tokens)
            except RegistryError as e:
                logger.debug(f"No turnout for proposal {record.proposal_id}: {e.message}")
                turnout = None
            if turnout is not None:
                turnout_total += turnout
                turnout_samples += 1

        analytics.skipped_ids = scanner.skipped
        if analytics.total_proposals:
            analytics.avg_lifetime = lifetime_total // analytics.total_proposals
        if turnout_samples:
            analytics.avg_turnout_bp = turnout_total // turnout_samples

        logger.debug(
            f"Aggregated {analytics.total_proposals} proposals in [{start_id}, {end_id}], "
            f"{len(analytics.skipped_ids)} skipped"
        )
        return analytics
