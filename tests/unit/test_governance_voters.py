"""
Unit tests for voter behaviour analytics.

Direction is inferred from each proposal's plurality bucket, so the
fixtures below choose tallies whose plurality is unambiguous.
"""

import logging

logger = logging.getLogger(__name__)
import pytest

from govlens.governance.core import EngineConfig, ProposalState, SnapshotMetrics
from govlens.governance.voters import Leaning, VoterBehaviorAnalyzer, VoterProfile
from govlens.errors.exceptions import InvalidRangeError, RegistryUnavailableError


class TestVoterBehaviorAnalyzer:
    """Test VoterBehaviorAnalyzer class."""

    @pytest.fixture
    def registries(self, token_registry, proposal_registry, make_proposal):
        token_registry.add_snapshot(SnapshotMetrics(snapshot_id=1, top_delegate="T"))
        token_registry.delegate("d1", "T")
        token_registry.delegate("d2", "T")

        tallies = {
            1: (10, 1, 0),
            2: (10, 1, 0),
            3: (10, 1, 0),
            4: (10, 1, 0),
            5: (1, 10, 0),
        }
        for proposal_id, votes in tallies.items():
            proposal_registry.add_proposal(
                make_proposal(proposal_id, state=ProposalState.DEFEATED, votes=votes, proposer="P")
            )

        for proposal_id in range(1, 6):
            proposal_registry.set_voter_weight(proposal_id, "T", 5)
        proposal_registry.set_voter_weight(1, "d1", 1)
        proposal_registry.set_voter_weight(4, "P", 2)
        proposal_registry.set_voter_weight(5, "P", 2)
        return token_registry, proposal_registry

    @pytest.fixture
    def analyzer(self, registries, config):
        token_registry, proposal_registry = registries
        return VoterBehaviorAnalyzer(proposal_registry, token_registry, config)

    def test_candidates(self, analyzer, proposal_registry):
        records = [proposal_registry.get_proposal_record(i) for i in range(1, 6)]

        assert analyzer.seed_candidates(records) == ["T", "d1", "d2", "P"]

    def test_candidate_cap(self, registries):
        token_registry, proposal_registry = registries
        analyzer = VoterBehaviorAnalyzer(
            proposal_registry, token_registry, EngineConfig(max_candidates=2)
        )

        report = analyzer.analyze(1, 5)

        assert [p.address for p in report.profiles] == ["T", "d1"]

    def test_profiles(self, analyzer):
        report = analyzer.analyze(1, 5)
        profiles = {p.address: p for p in report.profiles}

        top = profiles["T"]
        assert (top.vote_count, top.yes_count, top.no_count) == (5, 4, 1)
        assert top.super_active and top.consistent
        assert top.leaning == Leaning.YES

        assert profiles["d1"].vote_count == 1
        assert profiles["d1"].super_active is False
        assert profiles["d1"].leaning == Leaning.YES

        assert profiles["d2"].active is False
        assert profiles["d2"].leaning is None

        assert profiles["P"].consistent is False
        assert profiles["P"].leaning == Leaning.BALANCED

    def test_report_counts(self, analyzer):
        report = analyzer.analyze(1, 5)

        assert report.proposals_analyzed == 5
        assert report.total_voters == 4
        assert report.active_voters == 3
        assert report.super_active_voters == 1
        assert report.consistent_voters == 2
        assert report.leaning_count(Leaning.YES) == 2
        assert report.leaning_count(Leaning.NO) == 0
        assert report.leaning_count(Leaning.BALANCED) == 1
        assert report.direction_inferred is True

    def test_delegation_profile(self, analyzer):
        report = analyzer.analyze(1, 5)

        assert report.delegator_count == 2
        assert report.delegate_count == 1
        assert report.avg_delegation_chain_length == 1

    def test_tied_proposal_has_no_direction(
        self, token_registry, proposal_registry, make_proposal, config
    ):
        proposal_registry.add_proposal(make_proposal(1, votes=(5, 5, 0), proposer="P"))
        proposal_registry.set_voter_weight(1, "P", 5)
        analyzer = VoterBehaviorAnalyzer(proposal_registry, token_registry, config)

        profile = analyzer.analyze(1, 1).profiles[0]

        assert profile.vote_count == 1
        assert profile.yes_count == profile.no_count == profile.abstain_count == 0
        assert profile.consistent is False
        assert profile.leaning == Leaning.BALANCED

    def test_without_snapshot_only_proposers(
        self, token_registry, proposal_registry, make_proposal, config
    ):
        proposal_registry.add_proposal(make_proposal(1, proposer="P1"))
        proposal_registry.add_proposal(make_proposal(2, proposer="P2"))
        proposal_registry.add_proposal(make_proposal(3, proposer="P1"))
        analyzer = VoterBehaviorAnalyzer(proposal_registry, token_registry, config)

        report = analyzer.analyze(1, 3)

        assert [p.address for p in report.profiles] == ["P1", "P2"]
        assert report.active_voters == 0

    def test_no_candidates(self, token_registry, proposal_registry, config):
        analyzer = VoterBehaviorAnalyzer(proposal_registry, token_registry, config)

        report = analyzer.analyze(1, 3)

        assert report.total_voters == 0
        assert report.to_dict()["direction_inferred"] is True

    def test_invalid_window(self, analyzer):
        with pytest.raises(InvalidRangeError):
            analyzer.analyze(3, 1)

    def test_missing_proposal_registry(self, token_registry, config):
        analyzer = VoterBehaviorAnalyzer(None, token_registry, config)

        with pytest.raises(RegistryUnavailableError):
            analyzer.analyze(1, 2)


class TestClassification:
    """Test the classification thresholds directly."""

    def test_no_leaning(self):
        profile = VoterProfile(address="A", vote_count=3, no_count=2, abstain_count=1)
        VoterBehaviorAnalyzer._classify(profile, window_size=10)

        assert profile.super_active is False
        assert profile.consistent is False
        assert profile.leaning == Leaning.NO

    def test_thresholds_are_inclusive(self):
        profile = VoterProfile(address="A", vote_count=8, yes_count=8)
        VoterBehaviorAnalyzer._classify(profile, window_size=10)

        assert profile.super_active is True
        assert profile.consistent is True
