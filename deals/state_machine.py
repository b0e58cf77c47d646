"""
Deal lifecycle state machine.

    PROSPECT ──► OUTREACH_SENT ──► NEGOTIATION ──► AGREEMENT_LOCKED ──► INVOICED ──► PAID
                                        ▲                 │
                                        └──── reopen ─────┘

    Every non-terminal state can also move to DECLINED.

INVARIANTS:
- PAID and DECLINED are terminal
- No self-transitions
- AGREEMENT_LOCKED -> NEGOTIATION exists only through the explicit reopen
  operation, never through a plain transition
"""

from typing import Dict, FrozenSet, Optional, Tuple


class DealStatus:
    PROSPECT = 'PROSPECT'
    OUTREACH_SENT = 'OUTREACH_SENT'
    NEGOTIATION = 'NEGOTIATION'
    AGREEMENT_LOCKED = 'AGREEMENT_LOCKED'
    INVOICED = 'INVOICED'
    PAID = 'PAID'
    DECLINED = 'DECLINED'

    ALL = (PROSPECT, OUTREACH_SENT, NEGOTIATION, AGREEMENT_LOCKED, INVOICED, PAID, DECLINED)
    TERMINAL = frozenset({PAID, DECLINED})


S = DealStatus

VALID_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.PROSPECT: frozenset({S.OUTREACH_SENT, S.DECLINED}),
    S.OUTREACH_SENT: frozenset({S.NEGOTIATION, S.DECLINED}),
    S.NEGOTIATION: frozenset({S.AGREEMENT_LOCKED, S.DECLINED}),
    S.AGREEMENT_LOCKED: frozenset({S.INVOICED, S.DECLINED}),
    S.INVOICED: frozenset({S.PAID, S.DECLINED}),
    # Terminal states - no transitions out
    S.PAID: frozenset(),
    S.DECLINED: frozenset(),
}

# The one back-edge, reachable only via reopen_negotiation()
REOPEN_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.AGREEMENT_LOCKED: frozenset({S.NEGOTIATION}),
}

# Timestamp stamped when a deal enters each state
TIMESTAMP_FIELDS: Dict[str, Tuple[str, ...]] = {
    S.OUTREACH_SENT: ('outreach_sent_at',),
    S.NEGOTIATION: ('negotiation_started_at',),
    S.AGREEMENT_LOCKED: ('agreement_locked_at',),
    S.INVOICED: ('invoiced_at',),
    S.PAID: ('paid_at', 'closed_at'),
    S.DECLINED: ('closed_at',),
}


def legal_next_states(current: str) -> FrozenSet[str]:
    return VALID_TRANSITIONS.get(current, frozenset())


class TransitionGuard:
    """Decides whether a deal may move between two states."""

    @staticmethod
    def can_transition(from_state: str, to_state: str) -> Tuple[bool, str]:
        """
        Check if a plain transition is allowed.

        Returns:
            Tuple of (allowed, reason)
        """
        if to_state not in DealStatus.ALL:
            return False, f"Unknown status {to_state}"
        if from_state in DealStatus.TERMINAL:
            return False, f"Cannot transition from terminal state {from_state}"
        if to_state in legal_next_states(from_state):
            return True, "Valid transition"
        return False, f"Invalid transition: {from_state} -> {to_state}"

    @staticmethod
    def can_reopen(from_state: str) -> Tuple[bool, str]:
        if S.NEGOTIATION in REOPEN_TRANSITIONS.get(from_state, frozenset()):
            return True, "Valid reopen"
        return False, f"Negotiation can only be reopened from {S.AGREEMENT_LOCKED}, not {from_state}"


def timestamp_fields_for(status: str) -> Tuple[str, ...]:
    return TIMESTAMP_FIELDS.get(status, ())


def is_terminal(status: Optional[str]) -> bool:
    return status in DealStatus.TERMINAL
