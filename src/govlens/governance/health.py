"""
Governance health scoring.

A 0-100 score built from five sub-scores of at most 20 points each:
participation, delegation balance, proposal-type diversity, execution
effectiveness and threat-level evenness.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..errors.exceptions import RegistryError
from .core import BASIS_POINTS, EngineConfig, ProposalState, ThreatLevel, basis_points, clamp
from .delegation import DelegationAnalyticsRecorder
from .proposals import ProposalAnalytics, ProposalAnalyticsAggregator
from .registries import TokenRegistry, require_registry
from .timelock import TimelockAnalytics, TimelockAnalyticsAggregator

SUB_SCORE_MAX = 20
POINTS_PER_TYPE = 5

# Largest possible sum of |share - even share| across the four threat levels
_EVEN_SHARE_BP = BASIS_POINTS // len(ThreatLevel)
_MAX_THREAT_SPREAD_BP = 2 * (BASIS_POINTS - _EVEN_SHARE_BP)


@dataclass
class HealthBreakdown:
    """The five sub-scores of a health score."""

    participation: int = 0
    delegation_balance: int = 0
    diversity: int = 0
    execution: int = 0
    threat_balance: int = 0

    @property
    def total(self) -> int:
        return (
            self.participation
            + self.delegation_balance
            + self.diversity
            + self.execution
            + self.threat_balance
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "participation": self.participation,
            "delegation_balance": self.delegation_balance,
            "diversity": self.diversity,
            "execution": self.execution,
            "threat_balance": self.threat_balance,
        }


@dataclass
class HealthReport:
    """Health score over a proposal window."""

    start_id: int
    end_id: int
    breakdown: HealthBreakdown
    top_delegate_share_bp: int = 0

    @property
    def score(self) -> int:
        return self.breakdown.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_id": self.start_id,
            "end_id": self.end_id,
            "score": self.score,
            "breakdown": self.breakdown.to_dict(),
            "top_delegate_share_bp": self.top_delegate_share_bp,
        }


class GovernanceHealthScorer:
    """Combines proposal, delegation and timelock analytics into one score."""

    def __init__(
        self,
        proposal_aggregator: ProposalAnalyticsAggregator,
        timelock_aggregator: TimelockAnalyticsAggregator,
        token_registry: Optional[TokenRegistry],
        config: Optional[EngineConfig] = None,
        recorder: Optional[DelegationAnalyticsRecorder] = None,
    ):
        self.config = config or EngineConfig()
        self.proposal_aggregator = proposal_aggregator
        self.timelock_aggregator = timelock_aggregator
        self.recorder = recorder
        self._token_registry = token_registry

    def score(self, start_id: int, end_id: int) -> HealthReport:
        proposals = self.proposal_aggregator.aggregate(start_id, end_id)
        timelock = self.timelock_aggregator.analyze(start_id, end_id)
        top_share = self.top_delegate_share_bp()

        breakdown = HealthBreakdown(
            participation=self.participation_score(proposals),
            delegation_balance=self.delegation_balance_score(top_share),
            diversity=self.diversity_score(proposals),
            execution=self.execution_score(proposals),
            threat_balance=self.threat_balance_score(timelock),
        )
        logger.debug(f"Health of [{start_id}, {end_id}]: {breakdown.to_dict()}")
        return HealthReport(
            start_id=start_id,
            end_id=end_id,
            breakdown=breakdown,
            top_delegate_share_bp=top_share,
        )

    def top_delegate_share_bp(self) -> int:
        """Top delegate's share of supply.

        Read from the current snapshot, falling back to the recorder's
        concentration ranking when the snapshot has no top delegate.
        """
        tokens = require_registry(self._token_registry, "token")
        try:
            snapshot = tokens.get_snapshot_metrics(tokens.get_current_snapshot_id())
        except RegistryError as e:
            logger.debug(f"No snapshot metrics for delegation balance: {e.message}")
            snapshot = None

        if snapshot is not None and snapshot.top_delegate:
            supply = snapshot.total_supply or tokens.total_supply()
            return basis_points(snapshot.top_delegate_amount, supply)

        if self.recorder is not None:
            top = self.recorder.top_delegate_concentration(1)
            if top:
                return top[0].share_bp
        return 0

    def participation_score(self, proposals: ProposalAnalytics) -> int:
        points = proposals.avg_turnout_bp * SUB_SCORE_MAX // self.config.full_participation_bp
        return clamp(points, 0, SUB_SCORE_MAX)

    def delegation_balance_score(self, top_share_bp: int) -> int:
        penalty = top_share_bp * SUB_SCORE_MAX // self.config.full_concentration_bp
        return clamp(SUB_SCORE_MAX - penalty, 0, SUB_SCORE_MAX)

    @staticmethod
    def diversity_score(proposals: ProposalAnalytics) -> int:
        return clamp(proposals.distinct_types * POINTS_PER_TYPE, 0, SUB_SCORE_MAX)

    @staticmethod
    def execution_score(proposals: ProposalAnalytics) -> int:
        """Executed share of the proposals that passed their vote."""
        passed = sum(
            proposals.count(state)
            for state in (
                ProposalState.SUCCEEDED,
                ProposalState.QUEUED,
                ProposalState.EXECUTED,
                ProposalState.EXPIRED,
            )
        )
        if passed == 0:
            return 0
        points = proposals.count(ProposalState.EXECUTED) * SUB_SCORE_MAX // passed
        return clamp(points, 0, SUB_SCORE_MAX)

    @staticmethod
    def threat_balance_score(timelock: TimelockAnalytics) -> int:
        """Full marks when transactions spread evenly over threat levels."""
        total = timelock.total_transactions
        if total == 0:
            return 0
        spread = sum(
            abs(basis_points(count, total) - _EVEN_SHARE_BP)
            for count in timelock.level_counts().values()
        )
        penalty = spread * SUB_SCORE_MAX // _MAX_THREAT_SPREAD_BP
        return clamp(SUB_SCORE_MAX - penalty, 0, SUB_SCORE_MAX)
