"""
Participation and token metrics.

Turnout and quorum statistics over a proposal window, and the token-level
view of the current snapshot.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..errors.exceptions import RegistryError
from .core import EngineConfig, basis_points, rounded_basis_points
from .proposals import ProposalWindowScanner, turnout_basis_points, validate_window
from .registries import ProposalRegistry, TokenRegistry, require_registry


@dataclass
class ParticipationMetrics:
    """Turnout and quorum statistics over a proposal window."""

    start_id: int
    end_id: int
    proposals_counted: int = 0
    avg_turnout_bp: int = 0
    highest_turnout_bp: int = 0
    lowest_turnout_bp: int = 0
    quorum: int = 0
    quorum_reached: int = 0
    quorum_reach_rate_bp: int = 0
    delegation_rate_bp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_id": self.start_id,
            "end_id": self.end_id,
            "proposals_counted": self.proposals_counted,
            "avg_turnout_bp": self.avg_turnout_bp,
            "highest_turnout_bp": self.highest_turnout_bp,
            "lowest_turnout_bp": self.lowest_turnout_bp,
            "quorum": self.quorum,
            "quorum_reached": self.quorum_reached,
            "quorum_reach_rate_bp": self.quorum_reach_rate_bp,
            "delegation_rate_bp": self.delegation_rate_bp,
        }


@dataclass
class TokenMetrics:
    """Token distribution at the current snapshot."""

    snapshot_id: int
    total_supply: int
    active_holders: int
    active_delegates: int
    total_delegated: int
    delegated_share_bp: int
    top_delegate: Optional[str]
    top_delegate_amount: int
    top_delegate_share_bp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "total_supply": self.total_supply,
            "active_holders": self.active_holders,
            "active_delegates": self.active_delegates,
            "total_delegated": self.total_delegated,
            "delegated_share_bp": self.delegated_share_bp,
            "top_delegate": self.top_delegate,
            "top_delegate_amount": self.top_delegate_amount,
            "top_delegate_share_bp": self.top_delegate_share_bp,
        }


class ParticipationAnalyzer:
    """Computes participation metrics with a windowed proposal scan."""

    def __init__(
        self,
        proposal_registry: Optional[ProposalRegistry],
        token_registry: Optional[TokenRegistry],
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self._proposal_registry = proposal_registry
        self._token_registry = token_registry

    def participation_metrics(self, start_id: int, end_id: int) -> ParticipationMetrics:
        validate_window(start_id, end_id, self.config)
        registry = require_registry(self._proposal_registry, "proposal")
        tokens = require_registry(self._token_registry, "token")

        metrics = ParticipationMetrics(start_id=start_id, end_id=end_id)
        metrics.quorum = registry.governance_parameters().quorum

        turnouts = []
        for record in ProposalWindowScanner(registry, self.config).scan(start_id, end_id):
            metrics.proposals_counted += 1
            if metrics.quorum > 0 and record.votes.total() >= metrics.quorum:
                metrics.quorum_reached += 1
            try:
                turnout = turnout_basis_points(record, tokens)
            except RegistryError as e:
                logger.debug(f"No turnout for proposal {record.proposal_id}: {e.message}")
                continue
            if turnout is not None:
                turnouts.append(turnout)

        if turnouts:
            metrics.avg_turnout_bp = sum(turnouts) // len(turnouts)
            metrics.highest_turnout_bp = max(turnouts)
            metrics.lowest_turnout_bp = min(turnouts)
        metrics.quorum_reach_rate_bp = rounded_basis_points(
            metrics.quorum_reached, metrics.proposals_counted
        )

        try:
            snapshot = tokens.get_snapshot_metrics(tokens.get_current_snapshot_id())
            metrics.delegation_rate_bp = basis_points(snapshot.total_delegated, snapshot.total_supply)
        except RegistryError as e:
            logger.debug(f"No snapshot metrics for delegation rate: {e.message}")

        return metrics

    def token_metrics(self) -> TokenMetrics:
        """Token distribution at the current snapshot.

        Falls back to the live total supply when the snapshot does not carry
        one.
        """
        tokens = require_registry(self._token_registry, "token")
        snapshot = tokens.get_snapshot_metrics(tokens.get_current_snapshot_id())
        supply = snapshot.total_supply or tokens.total_supply()
        return TokenMetrics(
            snapshot_id=snapshot.snapshot_id,
            total_supply=supply,
            active_holders=snapshot.active_holders,
            active_delegates=snapshot.active_delegates,
            total_delegated=snapshot.total_delegated,
            delegated_share_bp=basis_points(snapshot.total_delegated, supply),
            top_delegate=snapshot.top_delegate,
            top_delegate_amount=snapshot.top_delegate_amount,
            top_delegate_share_bp=basis_points(snapshot.top_delegate_amount, supply),
        )
