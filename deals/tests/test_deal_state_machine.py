"""
Tests for deals/state_machine.py

Pure table checks, no database access.
"""

import os
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.test_settings')

import itertools

import pytest

from deals.state_machine import (
    DealStatus,
    TransitionGuard,
    VALID_TRANSITIONS,
    is_terminal,
    legal_next_states,
    timestamp_fields_for,
)

S = DealStatus

EXPECTED_EDGES = {
    (S.PROSPECT, S.OUTREACH_SENT),
    (S.PROSPECT, S.DECLINED),
    (S.OUTREACH_SENT, S.NEGOTIATION),
    (S.OUTREACH_SENT, S.DECLINED),
    (S.NEGOTIATION, S.AGREEMENT_LOCKED),
    (S.NEGOTIATION, S.DECLINED),
    (S.AGREEMENT_LOCKED, S.INVOICED),
    (S.AGREEMENT_LOCKED, S.DECLINED),
    (S.INVOICED, S.PAID),
    (S.INVOICED, S.DECLINED),
}


# =============================================================================
# Adjacency table
# =============================================================================

class TestTransitionTable:

    def test_table_matches_lifecycle(self):
        edges = {(src, dst) for src, targets in VALID_TRANSITIONS.items() for dst in targets}
        assert edges == EXPECTED_EDGES

    @pytest.mark.parametrize('src,dst', list(itertools.product(S.ALL, S.ALL)))
    def test_guard_agrees_with_table(self, src, dst):
        allowed, reason = TransitionGuard.can_transition(src, dst)
        assert allowed == ((src, dst) in EXPECTED_EDGES)
        assert reason

    @pytest.mark.parametrize('status', S.ALL)
    def test_no_self_transitions(self, status):
        allowed, _ = TransitionGuard.can_transition(status, status)
        assert allowed is False

    @pytest.mark.parametrize('status', [S.PAID, S.DECLINED])
    def test_terminal_states_have_no_exits(self, status):
        assert is_terminal(status)
        assert legal_next_states(status) == frozenset()

    def test_unknown_statuses(self):
        assert TransitionGuard.can_transition(S.PROSPECT, 'ARCHIVED')[0] is False
        assert TransitionGuard.can_transition('ARCHIVED', S.DECLINED)[0] is False
        assert legal_next_states('ARCHIVED') == frozenset()


class TestReopenEdge:

    def test_plain_transition_cannot_go_back_to_negotiation(self):
        allowed, _ = TransitionGuard.can_transition(S.AGREEMENT_LOCKED, S.NEGOTIATION)
        assert allowed is False

    def test_reopen_only_from_agreement_locked(self):
        for status in S.ALL:
            allowed, _ = TransitionGuard.can_reopen(status)
            assert allowed == (status == S.AGREEMENT_LOCKED)


class TestTimestampFields:

    def test_paid_closes_the_deal(self):
        assert timestamp_fields_for(S.PAID) == ('paid_at', 'closed_at')

    def test_declined_closes_the_deal(self):
        assert timestamp_fields_for(S.DECLINED) == ('closed_at',)

    def test_prospect_stamps_nothing(self):
        assert timestamp_fields_for(S.PROSPECT) == ()
