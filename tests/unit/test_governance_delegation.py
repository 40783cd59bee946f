"""
Unit tests for delegation observation recording.

This module tests record upserts, deactivation, depth recomputation,
delegate concentration ranking and paging.
"""

import logging

logger = logging.getLogger(__name__)
import itertools
import threading

import pytest

from govlens.governance.core import EngineConfig
from govlens.governance.delegation import DelegationAnalyticsRecorder
from govlens.governance.observability import EventType
from govlens.errors.exceptions import InvalidRangeError, NotFoundError


class TestRecordDelegation:
    """Test record_delegation."""

    @pytest.fixture
    def ticking_config(self):
        ticks = itertools.count(100)
        return EngineConfig(clock=lambda: float(next(ticks)))

    @pytest.fixture
    def recorder(self, token_registry, ticking_config, events):
        token_registry.set_balance("A", 100)
        token_registry.delegate("B", "C")
        return DelegationAnalyticsRecorder(token_registry, ticking_config, events=events)

    def test_record(self, recorder, events):
        account = recorder.record_delegation("A", "B")

        assert account.delegate == "B"
        assert account.voting_power == 100
        assert account.chain_depth == 2
        assert account.active is True
        assert account.first_recorded_at == 100.0
        assert len(events.event_log.get_events_by_type(EventType.DELEGATION_RECORDED)) == 1

    def test_undelegate_keeps_history(self, recorder, events):
        recorder.record_delegation("A", "B")
        account = recorder.record_delegation("A", None)

        assert account.active is False
        assert account.delegate is None
        assert account.chain_depth == 0
        assert account.first_recorded_at == 100.0
        assert account.last_recorded_at == 101.0
        assert len(recorder.get_history("A")) == 2
        assert len(events.event_log.get_events_by_type(EventType.DELEGATION_DEACTIVATED)) == 1

    def test_self_delegation_deactivates(self, recorder):
        account = recorder.record_delegation("A", "A")

        assert account.active is False
        assert account.delegate is None

    def test_depth_recomputed_from_registry(self, recorder, token_registry):
        recorder.record_delegation("A", "B")
        recorder.record_delegation("A", None)
        token_registry.delegate("C", "D")

        account = recorder.record_delegation("A", "B")

        assert account.active is True
        assert account.chain_depth == 3

    def test_chain_past_max_depth_is_flagged(self, recorder, token_registry, events, caplog):
        nodes = [f"N{i}" for i in range(20)]
        for current, nxt in zip(nodes, nodes[1:]):
            token_registry.delegate(current, nxt)

        with caplog.at_level(logging.WARNING):
            account = recorder.record_delegation("A", "N0")

        assert account.chain_depth == recorder.validator.max_depth
        assert account.exceeds_max_depth is True
        assert account.to_dict()["exceeds_max_depth"] is True
        assert "exceeds max depth" in caplog.text
        warnings = events.event_log.get_events_by_type(EventType.DELEGATION_DEPTH_WARNING)
        assert len(warnings) == 1
        assert warnings[0].metadata["max_depth"] == 8

    def test_flag_cleared_when_chain_shortens(self, recorder, token_registry):
        nodes = [f"N{i}" for i in range(10)]
        for current, nxt in zip(nodes, nodes[1:]):
            token_registry.delegate(current, nxt)
        recorder.record_delegation("A", "N0")
        token_registry.delegate("N2", None)

        account = recorder.record_delegation("A", "N0")

        assert account.exceeds_max_depth is False
        assert account.chain_depth == 3

    def test_voting_power_taken_at_record_time(self, recorder, token_registry):
        recorder.record_delegation("A", "B")
        token_registry.set_balance("A", 5)

        assert recorder.get_account("A").voting_power == 100
        assert recorder.record_delegation("A", "B").voting_power == 5

    def test_unknown_account(self, recorder):
        with pytest.raises(NotFoundError):
            recorder.get_account("nobody")
        assert recorder.get_history("nobody") == []

    def test_concurrent_writes(self, token_registry, config):
        recorder = DelegationAnalyticsRecorder(token_registry, config)

        def write(index):
            for _ in range(20):
                recorder.record_delegation(f"A{index}", "B")

        threads = [threading.Thread(target=write, args=(i,)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(recorder.accounts) == 5
        assert all(len(recorder.get_history(f"A{i}")) == 20 for i in range(5))


class TestTopDelegateConcentration:
    """Test delegate concentration ranking."""

    @pytest.fixture
    def recorder(self, token_registry, config):
        for source, delegate, amount in (
            ("a1", "X", 100),
            ("a2", "Y", 50),
            ("a3", "Z", 200),
            ("a4", "W", 10),
        ):
            token_registry.set_balance(source, amount)
            token_registry.delegate(source, delegate)
        recorder = DelegationAnalyticsRecorder(token_registry, config)
        for source, delegate in (("a1", "X"), ("a2", "Y"), ("a3", "Z"), ("a4", "W")):
            recorder.record_delegation(source, delegate)
        return recorder

    def test_top_three(self, recorder):
        top = recorder.top_delegate_concentration(3)

        assert [share.delegate for share in top] == ["Z", "X", "Y"]
        assert [share.delegated_power for share in top] == [200, 100, 50]
        assert [share.share_bp for share in top] == [5555, 2777, 1388]

    def test_aggregates_per_delegate(self, recorder, token_registry):
        token_registry.set_balance("a5", 160)
        recorder.record_delegation("a5", "Y")

        top = recorder.top_delegate_concentration(1)

        assert top[0].delegate == "Y"
        assert top[0].delegated_power == 210
        assert top[0].delegator_count == 2

    def test_inactive_records_excluded(self, recorder):
        recorder.record_delegation("a3", None)

        top = recorder.top_delegate_concentration(4)

        assert [share.delegate for share in top] == ["X", "Y", "W"]

    def test_count_larger_than_delegates(self, recorder):
        assert len(recorder.top_delegate_concentration(50)) == 4

    def test_count_must_be_positive(self, recorder):
        with pytest.raises(InvalidRangeError):
            recorder.top_delegate_concentration(0)


class TestDelegationAnalytics:
    """Test paging through records."""

    @pytest.fixture
    def recorder(self, token_registry, config):
        recorder = DelegationAnalyticsRecorder(token_registry, config)
        for i in range(5):
            recorder.record_delegation(f"A{i}", "B")
        return recorder

    def test_page(self, recorder):
        page = recorder.delegation_analytics(offset=1, limit=2)

        assert page.total == 5
        assert [record.address for record in page.records] == ["A1", "A2"]
        assert page.to_dict()["records"][0]["delegate"] == "B"

    def test_default_limit(self, recorder):
        page = recorder.delegation_analytics()

        assert page.limit == 10000
        assert len(page.records) == 5

    def test_offset_past_end(self, recorder):
        assert recorder.delegation_analytics(offset=10, limit=5).records == []

    @pytest.mark.parametrize("offset, limit", [(-1, 5), (0, 0), (0, 10001)])
    def test_invalid_page(self, recorder, offset, limit):
        with pytest.raises(InvalidRangeError):
            recorder.delegation_analytics(offset=offset, limit=limit)
