"""
Property-based tests for the governance analytics engine using Hypothesis.

This module checks depth bounds, loop reports, recorder state transitions,
concentration ordering and health score bounds over generated graphs and
proposal sets.
"""

import logging

logger = logging.getLogger(__name__)
import pytest
from hypothesis import given, settings, strategies as st

from govlens.governance.core import (
    BASIS_POINTS,
    EngineConfig,
    ProposalRecord,
    ProposalState,
    ProposalType,
    SnapshotMetrics,
    ThreatLevel,
    TimelockTxRecord,
    VoteTotals,
    basis_points,
    rounded_basis_points,
)
from govlens.governance.delegation import DelegationAnalyticsRecorder
from govlens.governance.engine import GovernanceAnalyticsEngine
from govlens.governance.registries import (
    InMemoryProposalRegistry,
    InMemoryTimelockRegistry,
    InMemoryTokenRegistry,
)
from govlens.governance.tree import DelegationTreeWalker
from govlens.governance.validation import CycleAndDepthValidator
from govlens.errors.exceptions import TooComplexError

ADDRESSES = [f"0x{i:02x}" for i in range(12)]

address = st.sampled_from(ADDRESSES)
delegate_maps = st.dictionaries(keys=address, values=address, max_size=len(ADDRESSES))


def token_registry_from(delegates, balances=None):
    registry = InMemoryTokenRegistry()
    for delegator, delegatee in delegates.items():
        registry.delegate(delegator, delegatee)
    for holder, amount in (balances or {}).items():
        registry.set_balance(holder, amount)
    return registry


class TestDepthProperties:
    """Depth bounds hold on arbitrary graphs, cycles included."""

    @given(delegate_maps, address, st.integers(min_value=1, max_value=10))
    def test_forward_depth_bounded(self, delegates, node, max_depth):
        validator = CycleAndDepthValidator(
            token_registry_from(delegates), EngineConfig(max_depth=max_depth)
        )

        assert 0 <= validator.forward_depth(node) <= max_depth

    @given(delegate_maps, address)
    def test_backward_depth_bounded(self, delegates, node):
        validator = CycleAndDepthValidator(token_registry_from(delegates))

        assert 0 <= validator.backward_depth(node) <= validator.max_depth

    @given(delegate_maps, address, address)
    def test_valid_edges_respect_max_depth(self, delegates, delegator, delegatee):
        validator = CycleAndDepthValidator(token_registry_from(delegates))

        try:
            result = validator.validate_delegation(delegator, delegatee)
        except TooComplexError:
            return
        if result.valid:
            assert result.resulting_depth <= validator.max_depth
            assert validator.warning_level(delegator, delegatee) < 3

    @given(delegate_maps, address, address)
    def test_existing_reverse_edge_is_a_cycle(self, delegates, a, b):
        if a == b:
            return
        delegates = dict(delegates)
        delegates[a] = b
        validator = CycleAndDepthValidator(token_registry_from(delegates))

        assert validator.cycle_detection(b, a) is True


class TestLoopProperties:
    """Loops reported by the audit are real cycles."""

    @given(delegate_maps)
    def test_reported_loop_is_closed_path(self, delegates):
        registry = token_registry_from(delegates)
        walker = DelegationTreeWalker(registry)

        loop = walker.detect_global_loops(ADDRESSES)

        if loop is None:
            return
        assert loop.cycle[0] == loop.cycle[-1]
        assert len(loop.cycle) >= 3
        for current, nxt in zip(loop.cycle, loop.cycle[1:]):
            assert registry.get_delegate(current) == nxt


class TestRecorderProperties:
    """Recorder state transitions."""

    @given(address, address, st.integers(min_value=0, max_value=10**6))
    def test_undelegate_then_redelegate(self, delegator, delegatee, balance):
        if delegator == delegatee:
            return
        registry = token_registry_from({}, {delegator: balance})
        recorder = DelegationAnalyticsRecorder(registry)

        recorder.record_delegation(delegator, delegatee)
        account = recorder.record_delegation(delegator, None)
        assert account.active is False
        assert account.delegate is None

        account = recorder.record_delegation(delegator, delegatee)
        assert account.active is True
        assert account.chain_depth == 1
        assert len(recorder.get_history(delegator)) == 3

    @given(st.dictionaries(keys=address, values=st.integers(min_value=1, max_value=10**6), min_size=1))
    def test_concentration_sorted_descending(self, balances):
        delegates = {holder: f"delegate-{i % 3}" for i, holder in enumerate(sorted(balances))}
        registry = token_registry_from(delegates, balances)
        recorder = DelegationAnalyticsRecorder(registry)
        for holder, delegate in delegates.items():
            recorder.record_delegation(holder, delegate)

        top = recorder.top_delegate_concentration(3)
        powers = [share.delegated_power for share in top]

        assert powers == sorted(powers, reverse=True)
        assert sum(powers) == sum(balances.values())
        assert sum(share.share_bp for share in top) <= BASIS_POINTS


class TestBasisPointProperties:
    @given(st.integers(min_value=0, max_value=10**12), st.integers(min_value=1, max_value=10**12))
    def test_rounding_within_one_of_floor(self, numerator, denominator):
        floor = basis_points(numerator, denominator)
        rounded = rounded_basis_points(numerator, denominator)

        assert rounded - floor in (0, 1)


proposal_rows = st.lists(
    st.tuples(
        st.sampled_from(list(ProposalType)),
        st.sampled_from(list(ProposalState)),
        st.integers(min_value=0, max_value=5000),
        st.integers(min_value=0, max_value=5000),
        st.one_of(st.none(), st.sampled_from(list(ThreatLevel))),
    ),
    max_size=20,
)


class TestHealthProperties:
    """Health score bounds."""

    @settings(max_examples=50, deadline=None)
    @given(proposal_rows, st.integers(min_value=0, max_value=20000))
    def test_score_bounded_and_additive(self, rows, top_amount):
        token = InMemoryTokenRegistry()
        token.add_snapshot(
            SnapshotMetrics(
                snapshot_id=1, total_supply=10000, top_delegate="T", top_delegate_amount=top_amount
            )
        )
        proposals = InMemoryProposalRegistry()
        timelock = InMemoryTimelockRegistry()
        for proposal_id, (ptype, state, yes, no, level) in enumerate(rows, 1):
            tx_hash = None
            if level is not None:
                tx_hash = f"0x{proposal_id}"
                timelock.add_transaction(
                    TimelockTxRecord(tx_hash=tx_hash, target=f"t{proposal_id}", threat_level=level)
                )
            proposals.add_proposal(
                ProposalRecord(
                    proposal_id=proposal_id,
                    proposal_type=ptype,
                    state=state,
                    snapshot_id=1,
                    created_at=0.0,
                    deadline=1.0,
                    votes=VoteTotals(yes=yes, no=no),
                    timelock_tx_hash=tx_hash,
                )
            )
        engine = GovernanceAnalyticsEngine(
            config=EngineConfig(clock=lambda: 100.0),
            token_registry=token,
            proposal_registry=proposals,
            timelock_registry=timelock,
        )

        report = engine.health_score(1, max(len(rows), 1))
        breakdown = report.breakdown.to_dict()

        assert 0 <= report.score <= 100
        assert report.score == sum(breakdown.values())
        assert all(0 <= value <= 20 for value in breakdown.values())
