"""
Delegation tree walking.

Bounded enumeration of the delegators beneath an account and a periodic,
whole-graph audit for delegation loops.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from ..errors.exceptions import InvalidRangeError, TooComplexError
from .core import EngineConfig
from .graph import DelegationGraph
from .observability import EventType, GovernanceEvents
from .registries import TokenRegistry


@dataclass
class DelegatorSubtree:
    """Delegators found beneath a root, grouped by distance from it."""

    root: str
    max_depth: int
    levels: List[List[str]] = field(default_factory=list)
    truncated: bool = False

    @property
    def members(self) -> List[str]:
        return [address for level in self.levels for address in level]

    @property
    def depth(self) -> int:
        return len(self.levels)

    def __len__(self) -> int:
        return sum(len(level) for level in self.levels)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "max_depth": self.max_depth,
            "levels": [list(level) for level in self.levels],
            "size": len(self),
            "truncated": self.truncated,
        }


@dataclass
class DelegationLoop:
    """A delegation cycle found by the global audit."""

    root: str
    cycle: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"root": self.root, "cycle": list(self.cycle)}


class DelegationTreeWalker:
    """Bounded traversal of the delegation graph."""

    def __init__(
        self,
        token_registry: Optional[TokenRegistry],
        config: Optional[EngineConfig] = None,
        address_source: Optional[Callable[[], Iterable[str]]] = None,
        events: Optional[GovernanceEvents] = None,
    ):
        self.config = config or EngineConfig()
        self.graph = DelegationGraph(token_registry)
        self.address_source = address_source
        self.events = events

    def full_delegator_subtree(
        self, root: str, max_depth: Optional[int] = None
    ) -> DelegatorSubtree:
        """Breadth-first enumeration of delegators beneath root.

        Duplicates are suppressed and the walk stops once the visited-node cap
        is reached, in which case the result is marked truncated.
        """
        if max_depth is None:
            max_depth = self.config.max_depth
        if max_depth < 1 or max_depth > self.config.max_depth:
            raise InvalidRangeError(
                f"max_depth must be between 1 and {self.config.max_depth}",
                field="max_depth",
                value=max_depth,
                limit=self.config.max_depth,
            )

        cap = self.config.max_visited_nodes
        subtree = DelegatorSubtree(root=root, max_depth=max_depth)
        visited = {root}
        frontier = [root]

        while frontier and subtree.depth < max_depth and not subtree.truncated:
            level: List[str] = []
            for address in frontier:
                for delegator in self.graph.delegators_of(address):
                    if delegator in visited:
                        continue
                    if len(visited) - 1 >= cap:
                        subtree.truncated = True
                        break
                    visited.add(delegator)
                    level.append(delegator)
                if subtree.truncated:
                    break
            if level:
                subtree.levels.append(level)
            frontier = level

        if subtree.truncated:
            logger.warning(
                f"Delegator subtree of {root} truncated at {cap} nodes "
                f"({len(subtree)} delegators collected)"
            )
        return subtree

    def detect_global_loops(
        self, addresses: Optional[Iterable[str]] = None
    ) -> Optional[DelegationLoop]:
        """Audit every known address for a delegation loop.

        Each address roots a forward walk that runs until its chain ends or an
        address repeats; the repeat closes a cycle, returned as the path from
        its first occurrence. Chains already proven loop-free are not walked
        again. A walk longer than the visited-node cap raises TooComplexError.
        """
        if addresses is None:
            addresses = self.address_source() if self.address_source else []

        cap = self.config.max_visited_nodes
        cleared: Set[str] = set()
        for root in addresses:
            path = [root]
            positions = {root: 0}
            current = root
            while current not in cleared:
                nxt = self.graph.delegate_of(current)
                if nxt is None:
                    break
                if nxt in positions:
                    return self._report_loop(root, path[positions[nxt]:] + [nxt])
                if len(path) >= cap:
                    self._too_complex(root, len(path) + 1, cap)
                positions[nxt] = len(path)
                path.append(nxt)
                current = nxt
            cleared.update(path)

        return None

    def _report_loop(self, root: str, cycle: List[str]) -> DelegationLoop:
        loop = DelegationLoop(root=root, cycle=cycle)
        logger.warning(f"Delegation loop detected: {' -> '.join(loop.cycle)}")
        if self.events is not None:
            self.events.emit_event(
                EventType.DELEGATION_LOOP_DETECTED,
                delegator_address=root,
                metadata={"cycle": loop.cycle},
            )
        return loop

    def _too_complex(self, root: str, visited: int, cap: int) -> None:
        logger.warning(f"Delegation chain from {root} exceeds {cap} addresses during loop audit")
        if self.events is not None:
            self.events.emit_event(
                EventType.ANALYSIS_TOO_COMPLEX,
                delegator_address=root,
                metadata={"estimate": visited, "threshold": cap, "operation": "loop audit"},
            )
        raise TooComplexError(
            f"Delegation chain from {root} is too long for the loop audit",
            address=root,
            estimate=visited,
            threshold=cap,
        )
