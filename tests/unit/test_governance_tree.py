"""
Unit tests for delegation tree walking and the global loop audit.
"""

import logging

logger = logging.getLogger(__name__)
import pytest

from govlens.governance.core import EngineConfig
from govlens.governance.observability import EventType
from govlens.governance.tree import DelegationTreeWalker
from govlens.errors.exceptions import InvalidRangeError, TooComplexError


class TestFullDelegatorSubtree:
    """Test bounded subtree enumeration."""

    @pytest.fixture
    def walker(self, token_registry, config):
        token_registry.delegate("B", "A")
        token_registry.delegate("C", "A")
        token_registry.delegate("D", "B")
        token_registry.delegate("E", "D")
        return DelegationTreeWalker(token_registry, config)

    def test_levels(self, walker):
        subtree = walker.full_delegator_subtree("A")

        assert subtree.levels == [["B", "C"], ["D"], ["E"]]
        assert subtree.members == ["B", "C", "D", "E"]
        assert len(subtree) == 4
        assert subtree.depth == 3
        assert subtree.truncated is False

    def test_depth_limit(self, walker):
        subtree = walker.full_delegator_subtree("A", max_depth=1)

        assert subtree.levels == [["B", "C"]]

    def test_leaf(self, walker):
        subtree = walker.full_delegator_subtree("E")

        assert subtree.levels == []
        assert len(subtree) == 0

    @pytest.mark.parametrize("depth", [0, -1, 9])
    def test_depth_out_of_range(self, walker, depth):
        with pytest.raises(InvalidRangeError):
            walker.full_delegator_subtree("A", max_depth=depth)

    def test_truncation_is_flagged_and_logged(self, token_registry, caplog):
        walker = DelegationTreeWalker(token_registry, EngineConfig(max_visited_nodes=3))
        for i in range(5):
            token_registry.delegate(f"S{i}", "ROOT")

        with caplog.at_level(logging.WARNING):
            subtree = walker.full_delegator_subtree("ROOT")

        assert subtree.truncated is True
        assert len(subtree) == 3
        assert "truncated" in caplog.text
        assert subtree.to_dict()["truncated"] is True

    def test_existing_cycle_does_not_loop(self, token_registry, config):
        token_registry.delegate("A", "B")
        token_registry.delegate("B", "A")
        walker = DelegationTreeWalker(token_registry, config)

        subtree = walker.full_delegator_subtree("A")

        assert subtree.members == ["B"]


class TestDetectGlobalLoops:
    """Test the global loop audit."""

    def test_finds_loop(self, token_registry, config, events):
        token_registry.delegate("A", "B")
        token_registry.delegate("B", "C")
        token_registry.delegate("C", "A")
        walker = DelegationTreeWalker(token_registry, config, events=events)

        loop = walker.detect_global_loops(["A"])

        assert loop.root == "A"
        assert loop.cycle == ["A", "B", "C", "A"]
        assert len(events.event_log.get_events_by_type(EventType.DELEGATION_LOOP_DETECTED)) == 1

    def test_loop_below_root(self, token_registry, config):
        token_registry.delegate("R", "A")
        token_registry.delegate("A", "B")
        token_registry.delegate("B", "A")
        walker = DelegationTreeWalker(token_registry, config)

        loop = walker.detect_global_loops(["R"])

        assert loop.cycle == ["A", "B", "A"]

    def test_no_loop(self, token_registry, config):
        token_registry.delegate("A", "B")
        token_registry.delegate("B", "C")
        walker = DelegationTreeWalker(token_registry, config)

        assert walker.detect_global_loops(["A", "B", "C"]) is None

    def test_default_address_source(self, token_registry, config):
        token_registry.delegate("X", "Y")
        token_registry.delegate("Y", "X")
        walker = DelegationTreeWalker(token_registry, config, address_source=lambda: ["Q", "X"])

        loop = walker.detect_global_loops()

        assert loop.root == "X"
        assert loop.cycle == ["X", "Y", "X"]

    def test_no_addresses(self, token_registry, config):
        walker = DelegationTreeWalker(token_registry, config)

        assert walker.detect_global_loops() is None

    def test_loop_longer_than_max_depth(self, token_registry, config):
        nodes = [f"N{i}" for i in range(12)]
        for current, nxt in zip(nodes, nodes[1:] + nodes[:1]):
            token_registry.delegate(current, nxt)
        walker = DelegationTreeWalker(token_registry, config)

        loop = walker.detect_global_loops(nodes)

        assert loop is not None
        assert loop.cycle == nodes + ["N0"]

    def test_long_chain_without_loop(self, token_registry, config):
        nodes = [f"N{i}" for i in range(30)]
        for current, nxt in zip(nodes, nodes[1:]):
            token_registry.delegate(current, nxt)
        walker = DelegationTreeWalker(token_registry, config)

        assert walker.detect_global_loops(reversed(nodes)) is None

    def test_chain_beyond_visited_cap(self, token_registry, events):
        nodes = [f"N{i}" for i in range(10)]
        for current, nxt in zip(nodes, nodes[1:]):
            token_registry.delegate(current, nxt)
        walker = DelegationTreeWalker(
            token_registry, EngineConfig(max_visited_nodes=5), events=events
        )

        with pytest.raises(TooComplexError):
            walker.detect_global_loops(["N0"])
        assert len(events.event_log.get_events_by_type(EventType.ANALYSIS_TOO_COMPLEX)) == 1
