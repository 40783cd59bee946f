"""
Shared fixtures for govlens tests.
"""

import logging

logger = logging.getLogger(__name__)
import pytest

from govlens.governance.core import (
    EngineConfig,
    ProposalRecord,
    ProposalState,
    ProposalType,
    SnapshotMetrics,
    VoteTotals,
)
from govlens.governance.observability import GovernanceEvents
from govlens.governance.registries import (
    InMemoryProposalRegistry,
    InMemoryTimelockRegistry,
    InMemoryTokenRegistry,
)

FIXED_NOW = 1_000_000.0


@pytest.fixture
def config():
    """Engine configuration with a frozen clock."""
    return EngineConfig(clock=lambda: FIXED_NOW)


@pytest.fixture
def events():
    return GovernanceEvents()


@pytest.fixture
def token_registry():
    return InMemoryTokenRegistry()


@pytest.fixture
def proposal_registry():
    return InMemoryProposalRegistry()


@pytest.fixture
def timelock_registry():
    return InMemoryTimelockRegistry(grace=100)


@pytest.fixture
def make_proposal():
    """Factory for proposal records."""

    def _make(
        proposal_id,
        proposal_type=ProposalType.GENERAL,
        state=ProposalState.ACTIVE,
        votes=(0, 0, 0),
        snapshot_id=1,
        created_at=0.0,
        proposer="",
        timelock_tx_hash=None,
    ):
        yes, no, abstain = votes
        return ProposalRecord(
            proposal_id=proposal_id,
            proposal_type=proposal_type,
            state=state,
            snapshot_id=snapshot_id,
            created_at=created_at,
            deadline=created_at + 86400,
            votes=VoteTotals(yes=yes, no=no, abstain=abstain),
            proposer=proposer,
            timelock_tx_hash=timelock_tx_hash,
        )

    return _make


@pytest.fixture
def supply_snapshot(token_registry):
    """Current snapshot #1 with a total supply of 1000."""
    snapshot = SnapshotMetrics(snapshot_id=1, total_supply=1000)
    token_registry.add_snapshot(snapshot)
    return snapshot
