"""
Delegation integrity validation.

This module checks proposed delegation edges against the live delegation
graph: chain depth in both directions, literal cycles, and diamond patterns
where independent paths reconverge and would double-count voting power.
"""

import logging

logger = logging.getLogger(__name__)
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set

from ..errors.exceptions import DelegationRejectedError, TooComplexError
from .core import EngineConfig, is_null_address
from .graph import DelegationGraph
from .observability import EventType, GovernanceEvents
from .registries import TokenRegistry

WARNING_NONE = 0
WARNING_APPROACHING = 1
WARNING_AT_LIMIT = 2
WARNING_BLOCKED = 3


class ValidationReason(Enum):
    """Why a delegation was rejected."""

    NONE = "none"
    CYCLE = "cycle"
    DEPTH_EXCEEDED = "depth_exceeded"


@dataclass
class DelegationValidation:
    """Outcome of validating a proposed delegation edge."""

    delegator: str
    delegatee: Optional[str]
    valid: bool
    reason: ValidationReason = ValidationReason.NONE
    resulting_depth: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegator": self.delegator,
            "delegatee": self.delegatee,
            "valid": self.valid,
            "reason": self.reason.value,
            "resulting_depth": self.resulting_depth,
        }


class CycleAndDepthValidator:
    """Validates delegation edges for cycles, diamonds and depth."""

    def __init__(
        self,
        token_registry: Optional[TokenRegistry],
        config: Optional[EngineConfig] = None,
        events: Optional[GovernanceEvents] = None,
    ):
        self.config = config or EngineConfig()
        self.graph = DelegationGraph(token_registry)
        self.events = events

    @property
    def max_depth(self) -> int:
        """Maximum chain depth, from the registry when so configured."""
        if self.config.use_registry_max_depth:
            return self.graph.tokens.max_delegation_depth()
        return self.config.max_depth

    @staticmethod
    def is_self_delegation(delegator: str, delegatee: Optional[str]) -> bool:
        return is_null_address(delegatee) or delegatee == delegator

    def forward_depth(self, node: str) -> int:
        """Hops from node following delegate pointers, at most max_depth.

        Stops at a null delegate, a self-delegation, or any address already
        visited on this walk.
        """
        limit = self.max_depth
        visited = {node}
        current = node
        depth = 0
        while depth < limit:
            nxt = self.graph.delegate_of(current)
            if nxt is None or nxt in visited:
                break
            visited.add(nxt)
            depth += 1
            current = nxt
        return depth

    def backward_depth(self, node: str) -> int:
        """Longest path in the inverse-delegation subtree rooted at node.

        Walks level by level to max_depth; raises TooComplexError when the
        subtree exceeds the visited-node cap.
        """
        limit = self.max_depth
        cap = self.config.max_visited_nodes
        visited = {node}
        frontier = [node]
        depth = 0
        while frontier and depth < limit:
            next_level = []
            for address in frontier:
                for delegator in self.graph.delegators_of(address):
                    if delegator in visited:
                        continue
                    visited.add(delegator)
                    if len(visited) > cap:
                        self._too_complex(node, len(visited), cap, "backward depth")
                    next_level.append(delegator)
            if not next_level:
                break
            depth += 1
            frontier = next_level
        return depth

    def resulting_depth(self, delegator: str, delegatee: Optional[str]) -> int:
        """Depth of the longest chain through the proposed edge."""
        if self.is_self_delegation(delegator, delegatee):
            return self.backward_depth(delegator)
        return self.backward_depth(delegator) + 1 + self.forward_depth(delegatee)

    def cycle_detection(self, delegator: str, delegatee: Optional[str]) -> bool:
        """Whether delegator -> delegatee would close a cycle or a diamond.

        Searches outward from delegatee over both delegate and delegator
        edges; reaching delegator means the new edge would reconnect two
        paths through the same accounts. The delegator's current edge is left
        out of the search since the new edge replaces it.
        """
        if self.is_self_delegation(delegator, delegatee):
            return False

        if self.graph.delegate_of(delegatee) == delegator:
            return True

        estimate = len(self.graph.delegators_of(delegatee)) * (
            self.forward_depth(delegatee) + 1
        )
        threshold = self.config.complexity_threshold
        if estimate > threshold:
            self._too_complex(delegatee, estimate, threshold, "cycle detection")

        replaced = self.graph.delegate_of(delegator)
        cap = self.config.max_visited_nodes
        max_distance = 2 * self.max_depth
        visited: Set[str] = {delegatee}
        queue = deque([(delegatee, 0)])
        while queue:
            address, distance = queue.popleft()
            if distance >= max_distance:
                continue

            neighbours = self.graph.delegators_of(address)
            if address == replaced:
                neighbours = [n for n in neighbours if n != delegator]
            forward = self.graph.delegate_of(address)
            if forward is not None:
                neighbours.append(forward)

            for neighbour in neighbours:
                if neighbour == delegator:
                    return True
                if neighbour in visited:
                    continue
                visited.add(neighbour)
                if len(visited) > cap:
                    self._too_complex(delegatee, len(visited), cap, "cycle detection")
                queue.append((neighbour, distance + 1))

        return False

    def validate_delegation(
        self, delegator: str, delegatee: Optional[str]
    ) -> DelegationValidation:
        """Validate a proposed delegation edge."""
        if self.is_self_delegation(delegator, delegatee):
            return DelegationValidation(delegator, delegatee, valid=True)

        if self.cycle_detection(delegator, delegatee):
            return DelegationValidation(
                delegator, delegatee, valid=False, reason=ValidationReason.CYCLE
            )

        depth = self.resulting_depth(delegator, delegatee)
        if depth > self.max_depth:
            return DelegationValidation(
                delegator,
                delegatee,
                valid=False,
                reason=ValidationReason.DEPTH_EXCEEDED,
                resulting_depth=depth,
            )

        return DelegationValidation(delegator, delegatee, valid=True, resulting_depth=depth)

    def warning_level(self, delegator: str, delegatee: Optional[str]) -> int:
        """Warning level for a proposed delegation.

        3 blocks (cycle or depth over the limit), 2 reaches the limit exactly,
        1 is within two hops of it, 0 is clear.
        """
        if self.is_self_delegation(delegator, delegatee):
            return WARNING_NONE

        if self.cycle_detection(delegator, delegatee):
            return WARNING_BLOCKED

        limit = self.max_depth
        depth = self.resulting_depth(delegator, delegatee)
        if depth > limit:
            return WARNING_BLOCKED
        if depth == limit:
            return WARNING_AT_LIMIT
        if depth >= limit - 2:
            return WARNING_APPROACHING
        return WARNING_NONE

    def check_delegation_warning(self, delegator: str, delegatee: Optional[str]) -> int:
        """Compute the warning level, emit events, and block on level 3."""
        level = self.warning_level(delegator, delegatee)

        if level == WARNING_BLOCKED:
            logger.warning(f"Delegation {delegator} -> {delegatee} blocked")
            self._emit(EventType.DELEGATION_BLOCKED, delegator, delegatee, level)
            raise DelegationRejectedError(
                "Delegation would create a cycle or exceed the maximum delegation depth",
                delegator=delegator,
                delegatee=delegatee,
                warning_level=level,
            )

        if level > WARNING_NONE:
            logger.info(
                f"Delegation {delegator} -> {delegatee} is near the depth limit (level {level})"
            )
            self._emit(EventType.DELEGATION_DEPTH_WARNING, delegator, delegatee, level)

        return level

    def _emit(
        self, event_type: EventType, delegator: str, delegatee: Optional[str], level: int
    ) -> None:
        if self.events is not None:
            self.events.emit_event(
                event_type,
                delegator_address=delegator,
                delegatee_address=delegatee,
                metadata={"warning_level": level, "max_depth": self.max_depth},
            )

    def _too_complex(self, address: str, estimate: int, threshold: int, operation: str) -> None:
        logger.warning(
            f"Delegation graph around {address} too complex for {operation}: "
            f"{estimate} > {threshold}"
        )
        if self.events is not None:
            self.events.emit_event(
                EventType.ANALYSIS_TOO_COMPLEX,
                delegatee_address=address,
                metadata={"estimate": estimate, "threshold": threshold, "operation": operation},
            )
        raise TooComplexError(
            f"Delegation graph around {address} is too complex for online {operation}",
            address=address,
            estimate=estimate,
            threshold=threshold,
        )
