"""
Timelock analytics.

Threat-level statistics over the delayed-execution transactions attached to
proposals in an id window.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors.exceptions import RegistryError
from .core import EngineConfig, ProposalRecord, ProposalState, ThreatLevel, rounded_basis_points
from .proposals import ProposalWindowScanner, validate_window
from .registries import ProposalRegistry, TimelockRegistry, require_registry


class TransactionStatus(Enum):
    """Lifecycle outcome of a timelocked transaction."""

    EXECUTED = "executed"
    PENDING = "pending"
    EXPIRED = "expired"
    CANCELED = "canceled"


@dataclass
class ThreatLevelStats:
    """Outcome counts and delay for one threat level."""

    level: ThreatLevel
    count: int = 0
    executed: int = 0
    pending: int = 0
    expired: int = 0
    canceled: int = 0
    total_delay: int = 0

    @property
    def avg_delay(self) -> int:
        return self.total_delay // self.count if self.count else 0

    @property
    def success_rate_bp(self) -> int:
        return rounded_basis_points(self.executed, self.count)

    def record(self, status: TransactionStatus, delay: int) -> None:
        self.count += 1
        self.total_delay += delay
        if status == TransactionStatus.EXECUTED:
            self.executed += 1
        elif status == TransactionStatus.PENDING:
            self.pending += 1
        elif status == TransactionStatus.EXPIRED:
            self.expired += 1
        else:
            self.canceled += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "count": self.count,
            "executed": self.executed,
            "pending": self.pending,
            "expired": self.expired,
            "canceled": self.canceled,
            "avg_delay": self.avg_delay,
            "success_rate_bp": self.success_rate_bp,
        }


@dataclass
class TimelockAnalytics:
    """Timelock statistics over a proposal id window."""

    start_id: int
    end_id: int
    levels: Dict[ThreatLevel, ThreatLevelStats] = field(
        default_factory=lambda: {level: ThreatLevelStats(level) for level in ThreatLevel}
    )
    skipped_ids: List[int] = field(default_factory=list)
    skipped_hashes: List[str] = field(default_factory=list)

    def _total(self, attribute: str) -> int:
        return sum(getattr(stats, attribute) for stats in self.levels.values())

    @property
    def total_transactions(self) -> int:
        return self._total("count")

    @property
    def executed_transactions(self) -> int:
        return self._total("executed")

    @property
    def pending_transactions(self) -> int:
        return self._total("pending")

    @property
    def expired_transactions(self) -> int:
        return self._total("expired")

    @property
    def canceled_transactions(self) -> int:
        return self._total("canceled")

    def level_counts(self) -> Dict[ThreatLevel, int]:
        return {level: stats.count for level, stats in self.levels.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_id": self.start_id,
            "end_id": self.end_id,
            "total_transactions": self.total_transactions,
            "executed_transactions": self.executed_transactions,
            "pending_transactions": self.pending_transactions,
            "expired_transactions": self.expired_transactions,
            "canceled_transactions": self.canceled_transactions,
            "levels": {level.value: stats.to_dict() for level, stats in self.levels.items()},
            "skipped_ids": list(self.skipped_ids),
            "skipped_hashes": list(self.skipped_hashes),
        }


class TimelockAnalyticsAggregator:
    """Aggregates threat-level statistics of timelocked proposals."""

    def __init__(
        self,
        proposal_registry: Optional[ProposalRegistry],
        timelock_registry: Optional[TimelockRegistry],
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self._proposal_registry = proposal_registry
        self._timelock_registry = timelock_registry

    def analyze(self, start_id: int, end_id: int) -> TimelockAnalytics:
        validate_window(start_id, end_id, self.config)
        timelock = require_registry(self._timelock_registry, "timelock")
        scanner = ProposalWindowScanner(self._proposal_registry, self.config)

        analytics = TimelockAnalytics(start_id=start_id, end_id=end_id)
        now = self.config.now()
        grace = timelock.grace_period()

        for record in scanner.scan(start_id, end_id):
            tx_hash = record.timelock_tx_hash
            if not tx_hash:
                continue
            try:
                tx = timelock.get_transaction(tx_hash)
                level = tx.threat_level or timelock.get_threat_level(tx.target, tx.payload)
                status = self._status(record, tx.executed, tx.eta, timelock.is_queued(tx_hash), now, grace)
                delay = timelock.get_delay_for_threat_level(level)
            except RegistryError as e:
                logger.debug(f"Skipping timelock transaction {tx_hash}: {e.message}")
                analytics.skipped_hashes.append(tx_hash)
                continue
            analytics.levels[level].record(status, delay)

        analytics.skipped_ids = scanner.skipped
        return analytics

    @staticmethod
    def _status(
        record: ProposalRecord, executed: bool, eta: float, queued: bool, now: float, grace: int
    ) -> TransactionStatus:
        if executed:
            return TransactionStatus.EXECUTED
        if record.state == ProposalState.CANCELED:
            return TransactionStatus.CANCELED
        if record.state == ProposalState.EXPIRED or now > eta + grace:
            return TransactionStatus.EXPIRED
        if queued:
            return TransactionStatus.PENDING
        return TransactionStatus.CANCELED
