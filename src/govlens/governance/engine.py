"""
Governance analytics engine.

Wires the validator, power calculator, tree walker, recorder and the
analytics aggregators against injected registries and exposes them as one
query surface.
"""

import logging

logger = logging.getLogger(__name__)
from typing import Any, Dict, List, Optional, Tuple

from .core import EngineConfig
from .delegation import Account, DelegateShare, DelegationAnalyticsRecorder, DelegationPage
from .health import GovernanceHealthScorer, HealthReport
from .observability import AnalyticsSnapshot, AnalyticsSnapshotLog, EventType, GovernanceEvents
from .participation import ParticipationAnalyzer, ParticipationMetrics, TokenMetrics
from .power import AccountDelegationStats, VotingPowerCalculator
from .proposals import ProposalAnalytics, ProposalAnalyticsAggregator, recent_window
from .registries import ProposalRegistry, TimelockRegistry, TokenRegistry, require_registry
from .timelock import TimelockAnalytics, TimelockAnalyticsAggregator
from .tree import DelegationLoop, DelegationTreeWalker, DelegatorSubtree
from .validation import CycleAndDepthValidator, DelegationValidation
from .voters import VoterBehaviorAnalyzer, VoterBehaviorReport

SNAPSHOT_TOP_DELEGATES = 5


class GovernanceAnalyticsEngine:
    """Delegation integrity and governance analytics over external registries."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        token_registry: Optional[TokenRegistry] = None,
        proposal_registry: Optional[ProposalRegistry] = None,
        timelock_registry: Optional[TimelockRegistry] = None,
        events: Optional[GovernanceEvents] = None,
    ):
        self.config = config or EngineConfig()
        self.config.validate()
        self.token_registry = token_registry
        self.proposal_registry = proposal_registry
        self.timelock_registry = timelock_registry
        self.events = events or GovernanceEvents(self.config.max_event_log)

        self.validator = CycleAndDepthValidator(token_registry, self.config, self.events)
        self.power = VotingPowerCalculator(token_registry, self.config)
        self.recorder = DelegationAnalyticsRecorder(
            token_registry, self.config, self.validator, self.events
        )
        self.walker = DelegationTreeWalker(
            token_registry, self.config, self.recorder.known_addresses, self.events
        )
        self.proposals = ProposalAnalyticsAggregator(proposal_registry, token_registry, self.config)
        self.voters = VoterBehaviorAnalyzer(
            proposal_registry, token_registry, self.config, self.validator
        )
        self.participation = ParticipationAnalyzer(proposal_registry, token_registry, self.config)
        self.timelock = TimelockAnalyticsAggregator(
            proposal_registry, timelock_registry, self.config
        )
        self.health = GovernanceHealthScorer(
            self.proposals, self.timelock, token_registry, self.config, self.recorder
        )
        self.snapshots = AnalyticsSnapshotLog(clock=self.config.clock)

    # Delegation integrity

    def validate_delegation(self, delegator: str, delegatee: Optional[str]) -> DelegationValidation:
        return self.validator.validate_delegation(delegator, delegatee)

    def warning_level(self, delegator: str, delegatee: Optional[str]) -> int:
        return self.validator.warning_level(delegator, delegatee)

    def check_delegation_warning(self, delegator: str, delegatee: Optional[str]) -> int:
        return self.validator.check_delegation_warning(delegator, delegatee)

    # Voting power and delegation structure

    def effective_power(self, address: str) -> int:
        return self.power.effective_power(address)

    def subtree_power(self, address: str) -> int:
        return self.power.subtree_power(address, self.walker)

    def account_delegation_stats(self, address: str) -> AccountDelegationStats:
        return self.power.account_delegation_stats(address)

    def full_delegator_subtree(self, root: str, max_depth: Optional[int] = None) -> DelegatorSubtree:
        return self.walker.full_delegator_subtree(root, max_depth)

    def detect_global_loops(self, addresses: Optional[List[str]] = None) -> Optional[DelegationLoop]:
        return self.walker.detect_global_loops(addresses)

    # Delegation records

    def record_delegation(self, delegator: str, delegatee: Optional[str]) -> Account:
        return self.recorder.record_delegation(delegator, delegatee)

    def top_delegate_concentration(self, count: int) -> List[DelegateShare]:
        return self.recorder.top_delegate_concentration(count)

    def delegation_analytics(self, offset: int = 0, limit: Optional[int] = None) -> DelegationPage:
        return self.recorder.delegation_analytics(offset, limit)

    # Windowed analytics

    def recent_window(self, size: Optional[int] = None) -> Tuple[int, int]:
        """Window over the latest proposals, default_recent_window wide by default."""
        registry = require_registry(self.proposal_registry, "proposal")
        return recent_window(registry, size or self.config.default_recent_window, self.config)

    def proposal_analytics(self, start_id: int, end_id: int) -> ProposalAnalytics:
        return self.proposals.aggregate(start_id, end_id)

    def voter_behavior(self, start_id: int, end_id: int) -> VoterBehaviorReport:
        return self.voters.analyze(start_id, end_id)

    def participation_metrics(self, start_id: int, end_id: int) -> ParticipationMetrics:
        return self.participation.participation_metrics(start_id, end_id)

    def token_metrics(self) -> TokenMetrics:
        return self.participation.token_metrics()

    def timelock_analytics(self, start_id: int, end_id: int) -> TimelockAnalytics:
        return self.timelock.analyze(start_id, end_id)

    def health_score(self, start_id: int, end_id: int) -> HealthReport:
        return self.health.score(start_id, end_id)

    # Snapshots

    def take_snapshot(
        self, start_id: Optional[int] = None, end_id: Optional[int] = None
    ) -> AnalyticsSnapshot:
        """Append the current aggregated metrics to the snapshot log.

        Covers the recent proposal window unless one is given.
        """
        if start_id is None or end_id is None:
            start_id, end_id = self.recent_window()

        metrics: Dict[str, Any] = {
            "window": [start_id, end_id],
            "proposals": self.proposal_analytics(start_id, end_id).to_dict(),
            "participation": self.participation_metrics(start_id, end_id).to_dict(),
            "timelock": self.timelock_analytics(start_id, end_id).to_dict(),
            "health": self.health_score(start_id, end_id).to_dict(),
            "top_delegates": [
                share.to_dict()
                for share in self.top_delegate_concentration(SNAPSHOT_TOP_DELEGATES)
            ],
            "recorded_accounts": len(self.recorder.accounts),
        }
        snapshot = self.snapshots.append(metrics)
        self.events.emit_event(
            EventType.SNAPSHOT_APPENDED,
            metadata={"sequence": snapshot.sequence, "snapshot_hash": snapshot.snapshot_hash},
        )
        return snapshot
