"""Lifecycle of a withdrawal attempt.

An attempt starts in ``NOTHING`` and ends in exactly one terminal state. The
only intermediate state is ``FORCE_CLOSING_RING``. Each attempt carries a
generation number; work started for an older generation can no longer change
what the presentation layer sees.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Dict, FrozenSet, Optional, Tuple

from .config import (
    REASON_INVALID_SIGNATURE,
    REASON_POOL_DRAINED,
    REASON_POOL_NOT_CLOSED,
    REASON_SIGNATURE_USED,
)
from .types import RingState, TxReceipt, WithdrawalAttempt, WithdrawalState

logger = logging.getLogger(__name__)

S = WithdrawalState

TERMINAL_STATES: FrozenSet[WithdrawalState] = frozenset({
    S.CORRUPTED_TOKEN,
    S.RING_NOT_CLOSED,
    S.RING_NOT_ENOUGH_PARTICIPANTS_TO_CLOSE,
    S.SUCCESS_CLOSE_RING,
    S.FAILED_CLOSE_RING,
    S.INVALID_SIGNATURE,
    S.SIGNATURE_USED,
    S.INVALID_RING,
    S.WITHDRAWN,
    S.UNKNOWN_ERROR,
})

_SUCCESS_STATES = frozenset({S.WITHDRAWN, S.SUCCESS_CLOSE_RING})

TRANSITIONS: Dict[WithdrawalState, FrozenSet[WithdrawalState]] = {
    S.NOTHING: TERMINAL_STATES | {S.FORCE_CLOSING_RING},
    S.FORCE_CLOSING_RING: frozenset({
        S.SUCCESS_CLOSE_RING,
        S.FAILED_CLOSE_RING,
        S.RING_NOT_ENOUGH_PARTICIPANTS_TO_CLOSE,
        S.INVALID_SIGNATURE,
        S.INVALID_RING,
        S.CORRUPTED_TOKEN,
        S.UNKNOWN_ERROR,
    }),
}

# Contract revert reasons, matched by containment in the node's error text.
# The reasons are disjoint, so the order only decides the fallthrough.
REVERT_REASONS: Tuple[Tuple[str, WithdrawalState], ...] = (
    (REASON_SIGNATURE_USED, S.SIGNATURE_USED),
    (REASON_POOL_DRAINED, S.SIGNATURE_USED),
    (REASON_INVALID_SIGNATURE, S.INVALID_SIGNATURE),
    (REASON_POOL_NOT_CLOSED, S.RING_NOT_CLOSED),
)


def classify_submission_failure(diagnostic: str) -> WithdrawalState:
    for reason, state in REVERT_REASONS:
        if reason in diagnostic:
            return state
    return S.UNKNOWN_ERROR


def is_terminal(state: WithdrawalState) -> bool:
    return state in TERMINAL_STATES


def start_attempt(previous: WithdrawalAttempt) -> WithdrawalAttempt:
    return WithdrawalAttempt(generation=previous.generation + 1)


def can_transition(current: WithdrawalState, new: WithdrawalState) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


def transition(
    attempt: WithdrawalAttempt,
    state: WithdrawalState,
    *,
    receipt: Optional[TxReceipt] = None,
    diagnostic: Optional[str] = None,
) -> WithdrawalAttempt:
    if not can_transition(attempt.state, state):
        raise ValueError(f"illegal transition {attempt.state.name} -> {state.name}")
    return replace(
        attempt,
        state=state,
        receipt=receipt if state in _SUCCESS_STATES else None,
        diagnostic=diagnostic if state == S.UNKNOWN_ERROR else None,
    )


def with_ring_state(attempt: WithdrawalAttempt, ring_state: RingState) -> WithdrawalAttempt:
    return replace(attempt, ring_state=ring_state)


class WithdrawalStateMachine:
    """Holds the current attempt; the single source of truth for the UI."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._attempt = WithdrawalAttempt()

    @property
    def snapshot(self) -> WithdrawalAttempt:
        with self._lock:
            return self._attempt

    @property
    def generation(self) -> int:
        return self.snapshot.generation

    def begin(self) -> int:
        """Start a new attempt in ``NOTHING`` and return its generation."""
        with self._lock:
            self._attempt = start_attempt(self._attempt)
            logger.debug(f"Attempt {self._attempt.generation} started")
            return self._attempt.generation

    def reset(self) -> None:
        """Detach from any pending attempt; its late result will be dropped."""
        current = self.snapshot
        if not is_terminal(current.state):
            logger.info(f"Abandoning attempt {current.generation} in {current.state.name}")
        self.begin()

    def apply(
        self,
        generation: int,
        state: WithdrawalState,
        *,
        receipt: Optional[TxReceipt] = None,
        diagnostic: Optional[str] = None,
    ) -> bool:
        with self._lock:
            if generation != self._attempt.generation:
                logger.info(
                    f"Discarding {state.name} for stale attempt {generation} "
                    f"(current {self._attempt.generation})"
                )
                return False
            self._attempt = transition(
                self._attempt, state, receipt=receipt, diagnostic=diagnostic
            )
            logger.info(f"Attempt {generation} -> {state.name}")
            return True

    def observe_ring(self, generation: int, ring_state: RingState) -> bool:
        with self._lock:
            if generation != self._attempt.generation:
                return False
            self._attempt = with_ring_state(self._attempt, ring_state)
            return True
