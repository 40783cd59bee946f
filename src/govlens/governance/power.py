"""
Voting power derived from token balances and delegation edges.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from .core import EngineConfig, basis_points
from .graph import DelegationGraph
from .registries import TokenRegistry

if TYPE_CHECKING:
    from .tree import DelegationTreeWalker


@dataclass
class AccountDelegationStats:
    """Delegation position of a single account."""

    address: str
    current_delegate: Optional[str]
    is_delegating: bool
    delegator_count: int
    delegated_balance: int
    delegated_share_bp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "current_delegate": self.current_delegate,
            "is_delegating": self.is_delegating,
            "delegator_count": self.delegator_count,
            "delegated_balance": self.delegated_balance,
            "delegated_share_bp": self.delegated_share_bp,
        }


class VotingPowerCalculator:
    """Computes effective voting power and per-account delegation stats."""

    def __init__(self, token_registry: Optional[TokenRegistry], config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.graph = DelegationGraph(token_registry)

    def effective_power(self, address: str) -> int:
        """Own balance plus the balances of direct delegators.

        This is a single-hop sum. Power held further down the delegation
        tree is not rolled up; use subtree_power for that.
        """
        power = self.graph.balance_of(address)
        for delegator in self.graph.delegators_of(address):
            power += self.graph.balance_of(delegator)
        return power

    def subtree_power(self, address: str, walker: "DelegationTreeWalker") -> int:
        """Own balance plus every balance in the bounded delegator subtree."""
        subtree = walker.full_delegator_subtree(address)
        if subtree.truncated:
            logger.warning(f"Subtree power of {address} computed over a truncated subtree")
        return self.graph.balance_of(address) + sum(
            self.graph.balance_of(member) for member in subtree.members
        )

    def account_delegation_stats(self, address: str) -> AccountDelegationStats:
        delegate = self.graph.delegate_of(address)
        delegators = self.graph.delegators_of(address)
        delegated = sum(self.graph.balance_of(d) for d in delegators)
        return AccountDelegationStats(
            address=address,
            current_delegate=delegate,
            is_delegating=delegate is not None,
            delegator_count=len(delegators),
            delegated_balance=delegated,
            delegated_share_bp=basis_points(delegated, self.graph.tokens.total_supply()),
        )
