"""
Delegation integrity and governance analytics.

This package provides:
- Delegation edge validation against cycles, diamond patterns and depth
- Effective voting power and bounded delegator subtree walks
- Delegation observation recording and delegate concentration
- Proposal, voter, participation and timelock analytics
- Governance health scoring
- Governance events and a hash-chained analytics snapshot log
"""

from .core import (
    BASIS_POINTS,
    ZERO_ADDRESS,
    EngineConfig,
    GovernanceParameters,
    ProposalRecord,
    ProposalState,
    ProposalType,
    SnapshotMetrics,
    ThreatLevel,
    TimelockTxRecord,
    VoteChoice,
    VoteTotals,
    basis_points,
    rounded_basis_points,
)
from .registries import (
    InMemoryProposalRegistry,
    InMemoryTimelockRegistry,
    InMemoryTokenRegistry,
    ProposalRegistry,
    TimelockRegistry,
    TokenRegistry,
    load_registries,
)
from .validation import (
    CycleAndDepthValidator,
    DelegationValidation,
    ValidationReason,
)
from .power import AccountDelegationStats, VotingPowerCalculator
from .tree import DelegationLoop, DelegationTreeWalker, DelegatorSubtree
from .delegation import (
    Account,
    DelegateShare,
    DelegationAnalyticsRecorder,
    DelegationPage,
)
from .proposals import ProposalAnalytics, ProposalAnalyticsAggregator, ProposalWindowScanner
from .voters import Leaning, VoterBehaviorAnalyzer, VoterBehaviorReport, VoterProfile
from .participation import ParticipationAnalyzer, ParticipationMetrics, TokenMetrics
from .timelock import TimelockAnalytics, TimelockAnalyticsAggregator, ThreatLevelStats
from .health import GovernanceHealthScorer, HealthBreakdown, HealthReport
from .observability import (
    AnalyticsSnapshot,
    AnalyticsSnapshotLog,
    EventType,
    GovernanceEvent,
    GovernanceEvents,
)
from .engine import GovernanceAnalyticsEngine

__all__ = [
    # Core
    "BASIS_POINTS",
    "ZERO_ADDRESS",
    "EngineConfig",
    "GovernanceParameters",
    "ProposalRecord",
    "ProposalState",
    "ProposalType",
    "SnapshotMetrics",
    "ThreatLevel",
    "TimelockTxRecord",
    "VoteChoice",
    "VoteTotals",
    "basis_points",
    "rounded_basis_points",
    # Registries
    "TokenRegistry",
    "ProposalRegistry",
    "TimelockRegistry",
    "InMemoryTokenRegistry",
    "InMemoryProposalRegistry",
    "InMemoryTimelockRegistry",
    "load_registries",
    # Delegation integrity
    "CycleAndDepthValidator",
    "DelegationValidation",
    "ValidationReason",
    "VotingPowerCalculator",
    "AccountDelegationStats",
    "DelegationTreeWalker",
    "DelegatorSubtree",
    "DelegationLoop",
    "DelegationAnalyticsRecorder",
    "Account",
    "DelegateShare",
    "DelegationPage",
    # Analytics
    "ProposalAnalyticsAggregator",
    "ProposalAnalytics",
    "ProposalWindowScanner",
    "VoterBehaviorAnalyzer",
    "VoterBehaviorReport",
    "VoterProfile",
    "Leaning",
    "ParticipationAnalyzer",
    "ParticipationMetrics",
    "TokenMetrics",
    "TimelockAnalyticsAggregator",
    "TimelockAnalytics",
    "ThreatLevelStats",
    "GovernanceHealthScorer",
    "HealthBreakdown",
    "HealthReport",
    # Observability
    "GovernanceEvents",
    "GovernanceEvent",
    "EventType",
    "AnalyticsSnapshot",
    "AnalyticsSnapshotLog",
    # Engine
    "GovernanceAnalyticsEngine",
]
