"""
Registry accessor interfaces.

The engine never owns token, proposal or timelock state. It reads them
through the abstract interfaces below, which callers implement against their
own backing store. In-memory implementations are provided for fixtures and
for the command-line front end.
"""

import json
import logging

logger = logging.getLogger(__name__)
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, TypeVar, Union

from ..errors.exceptions import NotFoundError, RegistryUnavailableError, ValidationError
from .core import (
    GovernanceParameters,
    ProposalRecord,
    ProposalState,
    SnapshotMetrics,
    ThreatLevel,
    TimelockTxRecord,
    is_null_address,
)

R = TypeVar("R")


def require_registry(registry: Optional[R], name: str) -> R:
    """Return the registry or raise if it was never configured."""
    if registry is None:
        raise RegistryUnavailableError(name)
    return registry


class TokenRegistry(ABC):
    """Read interface into the governance token."""

    @abstractmethod
    def balance_of(self, address: str) -> int:
        """Token balance of an address."""
        pass

    @abstractmethod
    def get_delegate(self, address: str) -> Optional[str]:
        """Current delegate of an address, or None when self-delegated."""
        pass

    @abstractmethod
    def get_delegators_of(self, address: str) -> List[str]:
        """Addresses directly delegating to an address."""
        pass

    @abstractmethod
    def total_supply(self) -> int:
        pass

    @abstractmethod
    def get_current_snapshot_id(self) -> int:
        pass

    @abstractmethod
    def get_snapshot_metrics(self, snapshot_id: int) -> SnapshotMetrics:
        """Metrics frozen at a snapshot; raises NotFoundError if unknown."""
        pass

    @abstractmethod
    def max_delegation_depth(self) -> int:
        pass


class ProposalRegistry(ABC):
    """Read interface into the proposal store."""

    @abstractmethod
    def get_proposal_state(self, proposal_id: int) -> ProposalState:
        """State of a proposal; raises NotFoundError for unknown ids."""
        pass

    @abstractmethod
    def get_proposal_record(self, proposal_id: int) -> ProposalRecord:
        pass

    @abstractmethod
    def voter_weight(self, proposal_id: int, address: str) -> int:
        """Weight recorded for a voter on a proposal, 0 if not voted."""
        pass

    @abstractmethod
    def governance_parameters(self) -> GovernanceParameters:
        pass

    @abstractmethod
    def proposal_count(self) -> int:
        """Highest proposal id issued so far."""
        pass


class TimelockRegistry(ABC):
    """Read interface into the timelock queue."""

    @abstractmethod
    def get_transaction(self, tx_hash: str) -> TimelockTxRecord:
        pass

    @abstractmethod
    def is_queued(self, tx_hash: str) -> bool:
        pass

    @abstractmethod
    def get_threat_level(self, target: str, payload: str) -> ThreatLevel:
        pass

    @abstractmethod
    def get_delay_for_threat_level(self, level: ThreatLevel) -> int:
        """Configured delay in seconds for a threat level."""
        pass

    @abstractmethod
    def grace_period(self) -> int:
        pass

    def low_threat_delay(self) -> int:
        return self.get_delay_for_threat_level(ThreatLevel.LOW)

    def medium_threat_delay(self) -> int:
        return self.get_delay_for_threat_level(ThreatLevel.MEDIUM)

    def high_threat_delay(self) -> int:
        return self.get_delay_for_threat_level(ThreatLevel.HIGH)

    def critical_threat_delay(self) -> int:
        return self.get_delay_for_threat_level(ThreatLevel.CRITICAL)


class InMemoryTokenRegistry(TokenRegistry):
    """Token registry backed by dictionaries."""

    def __init__(self, max_depth: int = 8):
        self.balances: Dict[str, int] = {}
        self.delegates: Dict[str, str] = {}
        self.delegators: Dict[str, List[str]] = {}
        self.snapshots: Dict[int, SnapshotMetrics] = {}
        self.current_snapshot_id = 0
        self.supply: Optional[int] = None
        self.max_depth = max_depth

    def set_balance(self, address: str, amount: int) -> None:
        if amount < 0:
            raise ValidationError("Balance cannot be negative", field="amount", value=amount)
        self.balances[address] = amount

    def delegate(self, delegator: str, delegatee: Optional[str]) -> None:
        """Point delegator at delegatee; None or self resets to self-delegation."""
        previous = self.delegates.pop(delegator, None)
        if previous is not None:
            self.delegators[previous].remove(delegator)
            if not self.delegators[previous]:
                del self.delegators[previous]

        if delegatee is None or delegatee == delegator or is_null_address(delegatee):
            return

        self.delegates[delegator] = delegatee
        self.delegators.setdefault(delegatee, []).append(delegator)

    def remove_account(self, address: str) -> None:
        """Forget an address entirely, as if it vanished from the registry."""
        self.delegate(address, None)
        for delegator in list(self.delegators.get(address, [])):
            self.delegate(delegator, None)
        self.balances.pop(address, None)

    def add_snapshot(self, metrics: SnapshotMetrics, current: bool = True) -> None:
        self.snapshots[metrics.snapshot_id] = metrics
        if current:
            self.current_snapshot_id = metrics.snapshot_id

    def balance_of(self, address: str) -> int:
        return self.balances.get(address, 0)

    def get_delegate(self, address: str) -> Optional[str]:
        return self.delegates.get(address)

    def get_delegators_of(self, address: str) -> List[str]:
        return list(self.delegators.get(address, []))

    def total_supply(self) -> int:
        if self.supply is not None:
            return self.supply
        return sum(self.balances.values())

    def get_current_snapshot_id(self) -> int:
        return self.current_snapshot_id

    def get_snapshot_metrics(self, snapshot_id: int) -> SnapshotMetrics:
        if snapshot_id not in self.snapshots:
            raise NotFoundError(
                f"Snapshot {snapshot_id} not found", key=snapshot_id, registry="token"
            )
        return self.snapshots[snapshot_id]

    def max_delegation_depth(self) -> int:
        return self.max_depth

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryTokenRegistry":
        registry = cls(max_depth=int(data.get("max_delegation_depth", 8)))
        for address, amount in data.get("balances", {}).items():
            registry.set_balance(address, int(amount))
        for delegator, delegatee in data.get("delegates", {}).items():
            registry.delegate(delegator, delegatee)
        for snapshot in data.get("snapshots", []):
            registry.add_snapshot(SnapshotMetrics.from_dict(snapshot), current=False)
        if registry.snapshots:
            registry.current_snapshot_id = int(
                data.get("current_snapshot_id", max(registry.snapshots))
            )
        if "total_supply" in data:
            registry.supply = int(data["total_supply"])
        return registry


class InMemoryProposalRegistry(ProposalRegistry):
    """Proposal registry backed by dictionaries."""

    def __init__(self, parameters: Optional[GovernanceParameters] = None):
        self.proposals: Dict[int, ProposalRecord] = {}
        self.weights: Dict[Tuple[int, str], int] = {}
        self.parameters = parameters or GovernanceParameters()

    def add_proposal(self, record: ProposalRecord) -> None:
        self.proposals[record.proposal_id] = record

    def set_voter_weight(self, proposal_id: int, address: str, weight: int) -> None:
        self.weights[(proposal_id, address)] = weight

    def _get(self, proposal_id: int) -> ProposalRecord:
        if proposal_id not in self.proposals:
            raise NotFoundError(
                f"Proposal {proposal_id} not found", key=proposal_id, registry="proposal"
            )
        return self.proposals[proposal_id]

    def get_proposal_state(self, proposal_id: int) -> ProposalState:
        return self._get(proposal_id).state

    def get_proposal_record(self, proposal_id: int) -> ProposalRecord:
        return self._get(proposal_id)

    def voter_weight(self, proposal_id: int, address: str) -> int:
        self._get(proposal_id)
        return self.weights.get((proposal_id, address), 0)

    def governance_parameters(self) -> GovernanceParameters:
        return self.parameters

    def proposal_count(self) -> int:
        return max(self.proposals, default=0)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryProposalRegistry":
        registry = cls(GovernanceParameters.from_dict(data.get("parameters", {})))
        for entry in data.get("proposals", []):
            record = ProposalRecord.from_dict(entry)
            registry.add_proposal(record)
            for address, weight in entry.get("voter_weights", {}).items():
                registry.set_voter_weight(record.proposal_id, address, int(weight))
        return registry


class InMemoryTimelockRegistry(TimelockRegistry):
    """Timelock registry backed by dictionaries.

    Threat levels are resolved per target first, then per payload selector
    (the first ten characters of the payload), defaulting to LOW.
    """

    def __init__(self, delays: Optional[Dict[ThreatLevel, int]] = None, grace: int = 14 * 86400):
        self.transactions: Dict[str, TimelockTxRecord] = {}
        self.queued: set = set()
        self.target_threats: Dict[str, ThreatLevel] = {}
        self.selector_threats: Dict[str, ThreatLevel] = {}
        self.delays = {
            ThreatLevel.LOW: 86400,
            ThreatLevel.MEDIUM: 3 * 86400,
            ThreatLevel.HIGH: 7 * 86400,
            ThreatLevel.CRITICAL: 14 * 86400,
        }
        self.delays.update(delays or {})
        self.grace = grace

    def add_transaction(self, record: TimelockTxRecord, queued: bool = True) -> None:
        self.transactions[record.tx_hash] = record
        if record.threat_level is not None:
            self.target_threats.setdefault(record.target, record.threat_level)
        if queued and not record.executed:
            self.queued.add(record.tx_hash)
        else:
            self.queued.discard(record.tx_hash)

    def get_transaction(self, tx_hash: str) -> TimelockTxRecord:
        if tx_hash not in self.transactions:
            raise NotFoundError(
                f"Timelock transaction {tx_hash} not found", key=tx_hash, registry="timelock"
            )
        return self.transactions[tx_hash]

    def is_queued(self, tx_hash: str) -> bool:
        return tx_hash in self.queued

    def get_threat_level(self, target: str, payload: str) -> ThreatLevel:
        if target in self.target_threats:
            return self.target_threats[target]
        return self.selector_threats.get((payload or "")[:10], ThreatLevel.LOW)

    def get_delay_for_threat_level(self, level: ThreatLevel) -> int:
        return self.delays[level]

    def grace_period(self) -> int:
        return self.grace

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryTimelockRegistry":
        delays = {ThreatLevel(k): int(v) for k, v in data.get("delays", {}).items()}
        registry = cls(delays=delays, grace=int(data.get("grace_period", 14 * 86400)))
        for target, level in data.get("target_threats", {}).items():
            registry.target_threats[target] = ThreatLevel(level)
        for selector, level in data.get("selector_threats", {}).items():
            registry.selector_threats[selector] = ThreatLevel(level)
        for entry in data.get("transactions", []):
            registry.add_transaction(
                TimelockTxRecord.from_dict(entry), queued=bool(entry.get("queued", True))
            )
        return registry


def load_registries(
    source: Union[str, Path, Dict[str, Any]]
) -> Tuple[InMemoryTokenRegistry, InMemoryProposalRegistry, InMemoryTimelockRegistry]:
    """Build in-memory registries from a JSON state file or a parsed mapping."""
    if isinstance(source, dict):
        data = source
    else:
        with open(source, "r", encoding="utf-8") as handle:
            data = json.load(handle)

    token = InMemoryTokenRegistry.from_dict(data.get("token", {}))
    proposals = InMemoryProposalRegistry.from_dict(data.get("proposals", {}))
    timelock = InMemoryTimelockRegistry.from_dict(data.get("timelock", {}))
    logger.debug(
        f"Loaded registries: {len(token.balances)} balances, "
        f"{len(proposals.proposals)} proposals, {len(timelock.transactions)} timelock txs"
    )
    return token, proposals, timelock
