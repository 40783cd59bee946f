"""
Voter behaviour analytics.

Only aggregate tallies are visible per proposal, never individual ballots.
Voter direction is therefore inferred: a voter who took part in a proposal is
assumed to have voted with that proposal's plurality bucket. The inference is
only meaningful in aggregate across many proposals, and every report carries
``direction_inferred=True`` to say so.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

from ..errors.exceptions import RegistryError
from .core import EngineConfig, ProposalRecord, VoteChoice
from .graph import DelegationGraph
from .proposals import ProposalWindowScanner, validate_window
from .registries import ProposalRegistry, TokenRegistry, require_registry
from .validation import CycleAndDepthValidator

SUPER_ACTIVE_PERCENT = 80
CONSISTENT_PERCENT = 80
LEANING_PERCENT = 66

# Direction codes used in the participation matrix
_DIRECTION_CODES = {VoteChoice.YES: 0, VoteChoice.NO: 1, VoteChoice.ABSTAIN: 2}
_NO_DIRECTION = -1


class Leaning(Enum):
    """Inferred voting tendency of an active voter."""

    YES = "yes_leaning"
    NO = "no_leaning"
    BALANCED = "balanced"


@dataclass
class VoterProfile:
    """Inferred behaviour of one candidate voter over a window."""

    address: str
    vote_count: int = 0
    yes_count: int = 0
    no_count: int = 0
    abstain_count: int = 0
    super_active: bool = False
    consistent: bool = False
    leaning: Optional[Leaning] = None

    @property
    def active(self) -> bool:
        return self.vote_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "vote_count": self.vote_count,
            "yes_count": self.yes_count,
            "no_count": self.no_count,
            "abstain_count": self.abstain_count,
            "super_active": self.super_active,
            "consistent": self.consistent,
            "leaning": self.leaning.value if self.leaning else None,
        }


@dataclass
class VoterBehaviorReport:
    """Classification of the sampled candidate voters."""

    start_id: int
    end_id: int
    proposals_analyzed: int = 0
    profiles: List[VoterProfile] = field(default_factory=list)
    delegator_count: int = 0
    delegate_count: int = 0
    avg_delegation_chain_length: int = 0
    direction_inferred: bool = True

    @property
    def total_voters(self) -> int:
        return len(self.profiles)

    @property
    def active_voters(self) -> int:
        return sum(1 for p in self.profiles if p.active)

    @property
    def super_active_voters(self) -> int:
        return sum(1 for p in self.profiles if p.super_active)

    @property
    def consistent_voters(self) -> int:
        return sum(1 for p in self.profiles if p.consistent)

    def leaning_count(self, leaning: Leaning) -> int:
        return sum(1 for p in self.profiles if p.leaning == leaning)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_id": self.start_id,
            "end_id": self.end_id,
            "proposals_analyzed": self.proposals_analyzed,
            "total_voters": self.total_voters,
            "active_voters": self.active_voters,
            "super_active_voters": self.super_active_voters,
            "consistent_voters": self.consistent_voters,
            "yes_leaning": self.leaning_count(Leaning.YES),
            "no_leaning": self.leaning_count(Leaning.NO),
            "balanced": self.leaning_count(Leaning.BALANCED),
            "delegator_count": self.delegator_count,
            "delegate_count": self.delegate_count,
            "avg_delegation_chain_length": self.avg_delegation_chain_length,
            "direction_inferred": self.direction_inferred,
            "profiles": [p.to_dict() for p in self.profiles],
        }


class VoterBehaviorAnalyzer:
    """Heuristic classification of voter activity and leaning."""

    def __init__(
        self,
        proposal_registry: Optional[ProposalRegistry],
        token_registry: Optional[TokenRegistry],
        config: Optional[EngineConfig] = None,
        validator: Optional[CycleAndDepthValidator] = None,
    ):
        self.config = config or EngineConfig()
        self._proposal_registry = proposal_registry
        self.graph = DelegationGraph(token_registry)
        self.validator = validator or CycleAndDepthValidator(token_registry, self.config)

    def seed_candidates(self, records: List[ProposalRecord]) -> List[str]:
        """Sample of addresses likely to vote.

        The current top delegate, its direct delegators, and every proposer in
        the window, deduplicated and capped. This is a sample, not the full
        voter population.
        """
        cap = self.config.max_candidates
        candidates: List[str] = []
        seen = set()

        def add(address: Optional[str]) -> None:
            if address and address not in seen and len(candidates) < cap:
                seen.add(address)
                candidates.append(address)

        tokens = self.graph.tokens
        try:
            metrics = tokens.get_snapshot_metrics(tokens.get_current_snapshot_id())
            top_delegate = metrics.top_delegate
        except RegistryError as e:
            logger.debug(f"No snapshot metrics for candidate seeding: {e.message}")
            top_delegate = None

        if top_delegate:
            add(top_delegate)
            for delegator in self.graph.delegators_of(top_delegate):
                add(delegator)

        for record in records:
            add(record.proposer)

        return candidates

    def analyze(self, start_id: int, end_id: int) -> VoterBehaviorReport:
        validate_window(start_id, end_id, self.config)
        registry = require_registry(self._proposal_registry, "proposal")

        scanner = ProposalWindowScanner(registry, self.config)
        records = list(scanner.scan(start_id, end_id))
        candidates = self.seed_candidates(records)
        report = VoterBehaviorReport(
            start_id=start_id, end_id=end_id, proposals_analyzed=len(records)
        )
        if not candidates:
            return report

        directions = np.array(
            [_DIRECTION_CODES.get(r.votes.plurality(), _NO_DIRECTION) for r in records],
            dtype=np.int8,
        )
        voted = np.zeros((len(candidates), len(records)), dtype=bool)
        for row, address in enumerate(candidates):
            for col, record in enumerate(records):
                try:
                    voted[row, col] = registry.voter_weight(record.proposal_id, address) > 0
                except RegistryError as e:
                    logger.debug(
                        f"No voter weight for {address} on proposal {record.proposal_id}: {e.message}"
                    )

        vote_counts = voted.sum(axis=1)
        yes_counts = (voted & (directions == 0)).sum(axis=1)
        no_counts = (voted & (directions == 1)).sum(axis=1)
        abstain_counts = (voted & (directions == 2)).sum(axis=1)

        for row, address in enumerate(candidates):
            profile = VoterProfile(
                address=address,
                vote_count=int(vote_counts[row]),
                yes_count=int(yes_counts[row]),
                no_count=int(no_counts[row]),
                abstain_count=int(abstain_counts[row]),
            )
            self._classify(profile, len(records))
            report.profiles.append(profile)

        self._delegation_profile(report, candidates)
        return report

    @staticmethod
    def _classify(profile: VoterProfile, window_size: int) -> None:
        votes = profile.vote_count
        if votes == 0:
            return

        profile.super_active = votes * 100 >= SUPER_ACTIVE_PERCENT * window_size
        dominant = max(profile.yes_count, profile.no_count, profile.abstain_count)
        profile.consistent = dominant * 100 >= CONSISTENT_PERCENT * votes

        if profile.yes_count * 100 >= LEANING_PERCENT * votes:
            profile.leaning = Leaning.YES
        elif profile.no_count * 100 >= LEANING_PERCENT * votes:
            profile.leaning = Leaning.NO
        else:
            profile.leaning = Leaning.BALANCED

    def _delegation_profile(self, report: VoterBehaviorReport, candidates: List[str]) -> None:
        chain_total = 0
        for address in candidates:
            if self.graph.delegate_of(address) is not None:
                report.delegator_count += 1
                chain_total += self.validator.forward_depth(address)
            if self.graph.delegators_of(address):
                report.delegate_count += 1
        if report.delegator_count:
            report.avg_delegation_chain_length = chain_total // report.delegator_count
