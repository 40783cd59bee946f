"""
Core governance types and data structures.

This module defines the records read from the external registries, the
engine configuration, and the integer basis-point helpers shared by every
analytics component.
"""

import logging

logger = logging.getLogger(__name__)
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..errors.exceptions import ConfigurationError, ValidationError

BASIS_POINTS = 10000
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class ProposalType(Enum):
    """Type of governance proposal."""

    GENERAL = "general"
    WITHDRAWAL = "withdrawal"
    TOKEN_TRANSFER = "token_transfer"
    GOVERNANCE_CHANGE = "governance_change"
    EXTERNAL_ASSET_TRANSFER = "external_asset_transfer"
    TOKEN_MINT = "token_mint"
    TOKEN_BURN = "token_burn"


class ProposalState(Enum):
    """Lifecycle state of a governance proposal."""

    ACTIVE = "active"
    CANCELED = "canceled"
    DEFEATED = "defeated"
    SUCCEEDED = "succeeded"
    QUEUED = "queued"
    EXECUTED = "executed"
    EXPIRED = "expired"


class ThreatLevel(Enum):
    """Risk classification of a timelocked transaction."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class VoteChoice(Enum):
    """Vote buckets tallied on a proposal."""

    YES = "yes"
    NO = "no"
    ABSTAIN = "abstain"


def is_null_address(address: Optional[str]) -> bool:
    """Check whether an address is the null sentinel."""
    return not address or address.lower() == ZERO_ADDRESS


def basis_points(numerator: int, denominator: int) -> int:
    """Share of numerator in denominator, floored to whole basis points."""
    if denominator <= 0:
        return 0
    return (numerator * BASIS_POINTS) // denominator


def rounded_basis_points(numerator: int, denominator: int) -> int:
    """Share of numerator in denominator, rounded half-up to basis points."""
    if denominator <= 0:
        return 0
    return (numerator * BASIS_POINTS + denominator // 2) // denominator


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


@dataclass
class VoteTotals:
    """Aggregate tallies of a proposal."""

    yes: int = 0
    no: int = 0
    abstain: int = 0

    def __post_init__(self):
        if self.yes < 0 or self.no < 0 or self.abstain < 0:
            raise ValidationError("Vote tallies cannot be negative")

    def total(self) -> int:
        """Total voting weight cast."""
        return self.yes + self.no + self.abstain

    def plurality(self) -> Optional[VoteChoice]:
        """Bucket holding a strict plurality, or None on a tie or no votes."""
        buckets = [
            (VoteChoice.YES, self.yes),
            (VoteChoice.NO, self.no),
            (VoteChoice.ABSTAIN, self.abstain),
        ]
        best = max(weight for _, weight in buckets)
        if best == 0:
            return None
        leaders = [choice for choice, weight in buckets if weight == best]
        return leaders[0] if len(leaders) == 1 else None

    def to_dict(self) -> Dict[str, int]:
        return {"yes": self.yes, "no": self.no, "abstain": self.abstain}


@dataclass
class ProposalRecord:
    """A proposal as exposed by the proposal registry."""

    proposal_id: int
    proposal_type: ProposalType
    state: ProposalState
    snapshot_id: int
    created_at: float
    deadline: float
    votes: VoteTotals = field(default_factory=VoteTotals)
    proposer: str = ""
    timelock_tx_hash: Optional[str] = None
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert proposal record to dictionary."""
        return {
            "proposal_id": self.proposal_id,
            "proposal_type": self.proposal_type.value,
            "state": self.state.value,
            "snapshot_id": self.snapshot_id,
            "created_at": self.created_at,
            "deadline": self.deadline,
            "votes": self.votes.to_dict(),
            "proposer": self.proposer,
            "timelock_tx_hash": self.timelock_tx_hash,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposalRecord":
        """Create proposal record from dictionary."""
        votes = data.get("votes", {})
        return cls(
            proposal_id=int(data["proposal_id"]),
            proposal_type=ProposalType(data["proposal_type"]),
            state=ProposalState(data["state"]),
            snapshot_id=int(data.get("snapshot_id", 0)),
            created_at=float(data.get("created_at", 0)),
            deadline=float(data.get("deadline", 0)),
            votes=VoteTotals(
                yes=int(votes.get("yes", 0)),
                no=int(votes.get("no", 0)),
                abstain=int(votes.get("abstain", 0)),
            ),
            proposer=data.get("proposer", ""),
            timelock_tx_hash=data.get("timelock_tx_hash"),
            title=data.get("title", ""),
        )


@dataclass
class TimelockTxRecord:
    """A delayed-execution transaction held by the timelock registry."""

    tx_hash: str
    target: str
    value: int = 0
    payload: str = ""
    eta: float = 0.0
    executed: bool = False
    threat_level: Optional[ThreatLevel] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "target": self.target,
            "value": self.value,
            "payload": self.payload,
            "eta": self.eta,
            "executed": self.executed,
            "threat_level": self.threat_level.value if self.threat_level else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelockTxRecord":
        threat = data.get("threat_level")
        return cls(
            tx_hash=data["tx_hash"],
            target=data.get("target", ""),
            value=int(data.get("value", 0)),
            payload=data.get("payload", ""),
            eta=float(data.get("eta", 0)),
            executed=bool(data.get("executed", False)),
            threat_level=ThreatLevel(threat) if threat else None,
        )


@dataclass
class SnapshotMetrics:
    """Point-in-time token metrics recorded at a snapshot."""

    snapshot_id: int
    total_supply: int = 0
    active_holders: int = 0
    active_delegates: int = 0
    total_delegated: int = 0
    top_delegate: Optional[str] = None
    top_delegate_amount: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "total_supply": self.total_supply,
            "active_holders": self.active_holders,
            "active_delegates": self.active_delegates,
            "total_delegated": self.total_delegated,
            "top_delegate": self.top_delegate,
            "top_delegate_amount": self.top_delegate_amount,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SnapshotMetrics":
        return cls(
            snapshot_id=int(data["snapshot_id"]),
            total_supply=int(data.get("total_supply", 0)),
            active_holders=int(data.get("active_holders", 0)),
            active_delegates=int(data.get("active_delegates", 0)),
            total_delegated=int(data.get("total_delegated", 0)),
            top_delegate=data.get("top_delegate"),
            top_delegate_amount=int(data.get("top_delegate_amount", 0)),
        )


@dataclass
class GovernanceParameters:
    """Governance parameters exposed by the proposal registry."""

    quorum: int = 0
    voting_duration: int = 0
    proposal_creation_threshold: int = 0
    proposal_stake: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceParameters":
        known = {"quorum", "voting_duration", "proposal_creation_threshold", "proposal_stake"}
        return cls(
            quorum=int(data.get("quorum", 0)),
            voting_duration=int(data.get("voting_duration", 0)),
            proposal_creation_threshold=int(data.get("proposal_creation_threshold", 0)),
            proposal_stake=int(data.get("proposal_stake", 0)),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class EngineConfig:
    """Configuration for the delegation integrity and analytics engine.

    Every traversal in the engine is bounded by one of these caps so that
    worst-case work stays predictable regardless of registry size.
    """

    # Delegation graph bounds
    max_depth: int = 8
    use_registry_max_depth: bool = False
    complexity_threshold: int = 1000  # delegators x (depth + 1) around a node
    max_visited_nodes: int = 1000

    # Analytics windows
    max_candidates: int = 100
    max_proposal_window: int = 100
    max_delegation_page: int = 10000
    default_recent_window: int = 50

    # Observability
    max_event_log: int = 10000  # events retained before the oldest are evicted

    # Health scoring
    full_participation_bp: int = 5000  # turnout earning the full sub-score
    full_concentration_bp: int = 5000  # top-delegate share zeroing the sub-score

    clock: Callable[[], float] = field(default=time.time, repr=False, compare=False)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate configuration."""
        positive = (
            "max_depth",
            "complexity_threshold",
            "max_visited_nodes",
            "max_candidates",
            "max_proposal_window",
            "max_delegation_page",
            "default_recent_window",
            "max_event_log",
            "full_participation_bp",
            "full_concentration_bp",
        )
        for name in positive:
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(
                    f"{name} must be a positive integer",
                    config_key=name,
                    config_value=value,
                )

        if self.default_recent_window > self.max_proposal_window:
            raise ConfigurationError(
                "default_recent_window cannot exceed max_proposal_window",
                config_key="default_recent_window",
                config_value=self.default_recent_window,
            )

        for name in ("full_participation_bp", "full_concentration_bp"):
            if getattr(self, name) > BASIS_POINTS:
                raise ConfigurationError(
                    f"{name} cannot exceed {BASIS_POINTS}",
                    config_key=name,
                    config_value=getattr(self, name),
                )

        if not callable(self.clock):
            raise ConfigurationError("clock must be callable", config_key="clock")

    def now(self) -> float:
        return self.clock()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "max_depth": self.max_depth,
            "use_registry_max_depth": self.use_registry_max_depth,
            "complexity_threshold": self.complexity_threshold,
            "max_visited_nodes": self.max_visited_nodes,
            "max_candidates": self.max_candidates,
            "max_proposal_window": self.max_proposal_window,
            "max_delegation_page": self.max_delegation_page,
            "default_recent_window": self.default_recent_window,
            "max_event_log": self.max_event_log,
            "full_participation_bp": self.full_participation_bp,
            "full_concentration_bp": self.full_concentration_bp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create configuration from dictionary, rejecting unknown keys."""
        allowed = set(cls().to_dict())
        unknown = set(data) - allowed
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}",
                config_key=sorted(unknown)[0],
            )
        return cls(**data)
