"""
Delegation observation recording.

This module keeps the engine's own view of delegation activity: one record
per account, upserted on every observation, plus an append-only history.
It also ranks delegates by the power concentrated in them.
"""

import logging

logger = logging.getLogger(__name__)
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors.exceptions import InvalidRangeError, NotFoundError
from .core import EngineConfig, basis_points
from .graph import DelegationGraph
from .observability import EventType, GovernanceEvents
from .registries import TokenRegistry
from .validation import CycleAndDepthValidator


@dataclass
class Account:
    """The engine's record of an account's delegation."""

    address: str
    delegate: Optional[str] = None
    voting_power: int = 0
    chain_depth: int = 0
    exceeds_max_depth: bool = False
    active: bool = False
    first_recorded_at: float = 0.0
    last_recorded_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "delegate": self.delegate,
            "voting_power": self.voting_power,
            "chain_depth": self.chain_depth,
            "exceeds_max_depth": self.exceeds_max_depth,
            "active": self.active,
            "first_recorded_at": self.first_recorded_at,
            "last_recorded_at": self.last_recorded_at,
        }


@dataclass(frozen=True)
class DelegationObservation:
    """One recorded observation in an account's history."""

    delegate: Optional[str]
    voting_power: int
    chain_depth: int
    recorded_at: float


@dataclass
class DelegateShare:
    """A delegate's aggregated power and its share of total supply."""

    delegate: str
    delegated_power: int
    share_bp: int
    delegator_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegate": self.delegate,
            "delegated_power": self.delegated_power,
            "share_bp": self.share_bp,
            "delegator_count": self.delegator_count,
        }


@dataclass
class DelegationPage:
    """A page of delegation records."""

    offset: int
    limit: int
    total: int
    records: List[Account] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offset": self.offset,
            "limit": self.limit,
            "total": self.total,
            "records": [record.to_dict() for record in self.records],
        }


class DelegationAnalyticsRecorder:
    """Records delegation observations and ranks delegate concentration."""

    def __init__(
        self,
        token_registry: Optional[TokenRegistry],
        config: Optional[EngineConfig] = None,
        validator: Optional[CycleAndDepthValidator] = None,
        events: Optional[GovernanceEvents] = None,
    ):
        self.config = config or EngineConfig()
        self.graph = DelegationGraph(token_registry)
        self.validator = validator or CycleAndDepthValidator(token_registry, self.config)
        self.events = events
        self.accounts: Dict[str, Account] = {}
        self.history: Dict[str, List[DelegationObservation]] = {}
        self._lock = threading.Lock()

    def record_delegation(self, delegator: str, delegatee: Optional[str]) -> Account:
        """Upsert the delegation record of delegator.

        A None or self delegatee marks the record inactive; history is kept.
        Chain depth is always recomputed from the live registry and capped at
        max_depth; a chain reaching past it is flagged and reported with a
        depth warning event.
        """
        now = self.config.now()
        voting_power = self.graph.balance_of(delegator)

        if self.validator.is_self_delegation(delegator, delegatee):
            delegate = None
            depth = 0
        else:
            delegate = delegatee
            depth = 1 + self.validator.forward_depth(delegatee)
        limit = self.validator.max_depth
        exceeds = depth > limit
        if exceeds:
            depth = limit

        with self._lock:
            account = self.accounts.get(delegator)
            if account is None:
                account = Account(address=delegator, first_recorded_at=now)
                self.accounts[delegator] = account

            account.delegate = delegate
            account.voting_power = voting_power
            account.chain_depth = depth
            account.exceeds_max_depth = exceeds
            account.active = delegate is not None
            account.last_recorded_at = now

            self.history.setdefault(delegator, []).append(
                DelegationObservation(
                    delegate=delegate,
                    voting_power=voting_power,
                    chain_depth=depth,
                    recorded_at=now,
                )
            )

        if account.active:
            logger.info(f"Recorded delegation {delegator} -> {delegate} (depth {depth})")
            event_type = EventType.DELEGATION_RECORDED
        else:
            logger.info(f"Recorded {delegator} as self-delegated")
            event_type = EventType.DELEGATION_DEACTIVATED

        if self.events is not None:
            self.events.emit_event(
                event_type,
                delegator_address=delegator,
                delegatee_address=delegate,
                metadata={"voting_power": voting_power, "chain_depth": depth},
            )

        if exceeds:
            logger.warning(
                f"Delegation chain of {delegator} through {delegate} exceeds max depth {limit}"
            )
            if self.events is not None:
                self.events.emit_event(
                    EventType.DELEGATION_DEPTH_WARNING,
                    delegator_address=delegator,
                    delegatee_address=delegate,
                    metadata={"chain_depth": depth, "max_depth": limit, "exceeds_max_depth": True},
                )

        return account

    def get_account(self, address: str) -> Account:
        if address not in self.accounts:
            raise NotFoundError(f"No delegation recorded for {address}", key=address)
        return self.accounts[address]

    def get_history(self, address: str) -> List[DelegationObservation]:
        return list(self.history.get(address, []))

    def known_addresses(self) -> List[str]:
        return list(self.accounts)

    def active_records(self) -> List[Account]:
        return [account for account in self.accounts.values() if account.active]

    def top_delegate_concentration(self, count: int) -> List[DelegateShare]:
        """Top delegates by power delegated to them in active records."""
        if count < 1:
            raise InvalidRangeError(
                "Delegate count must be at least 1", field="count", value=count
            )

        power: Dict[str, int] = {}
        delegators: Dict[str, int] = {}
        for account in self.active_records():
            power[account.delegate] = power.get(account.delegate, 0) + account.voting_power
            delegators[account.delegate] = delegators.get(account.delegate, 0) + 1

        ranked = sorted(power.items(), key=lambda item: item[1], reverse=True)
        total_supply = self.graph.tokens.total_supply()

        return [
            DelegateShare(
                delegate=delegate,
                delegated_power=amount,
                share_bp=basis_points(amount, total_supply),
                delegator_count=delegators[delegate],
            )
            for delegate, amount in ranked[:count]
        ]

    def delegation_analytics(self, offset: int = 0, limit: Optional[int] = None) -> DelegationPage:
        """Page through recorded delegation records in insertion order."""
        if limit is None:
            limit = self.config.max_delegation_page
        if offset < 0 or limit < 1 or limit > self.config.max_delegation_page:
            raise InvalidRangeError(
                f"Page must have offset >= 0 and 1 <= limit <= {self.config.max_delegation_page}",
                start=offset,
                limit=limit,
            )

        records = list(self.accounts.values())
        return DelegationPage(
            offset=offset,
            limit=limit,
            total=len(records),
            records=records[offset:offset + limit],
        )
