"""User-facing text for each attempt state."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .config import DEFAULT_EXPLORER_URL, MIN_FORCE_CLOSE_PARTICIPANTS, SOMEWHAT_PRIVATE_MAX_DEPOSITS
from .types import RingState, WithdrawalAttempt, WithdrawalState


class RingNotClosedBranch(Enum):
    WAIT = "wait"
    TOO_FEW_DEPOSITS = "too_few_deposits"
    FORCE_CLOSE_ELIGIBLE = "force_close_eligible"


class PrivacyLevel(Enum):
    NONE = "not"
    SOMEWHAT = "somewhat"
    FULL = "completely"


def ring_not_closed_branch(ring: RingState) -> RingNotClosedBranch:
    if not ring.can_force_close:
        return RingNotClosedBranch.WAIT
    if ring.deposited < MIN_FORCE_CLOSE_PARTICIPANTS:
        return RingNotClosedBranch.TOO_FEW_DEPOSITS
    return RingNotClosedBranch.FORCE_CLOSE_ELIGIBLE


def privacy_level(deposited: int) -> PrivacyLevel:
    if deposited <= 1:
        return PrivacyLevel.NONE
    if deposited <= SOMEWHAT_PRIVATE_MAX_DEPOSITS:
        return PrivacyLevel.SOMEWHAT
    return PrivacyLevel.FULL


def _ring_not_closed(ring: Optional[RingState]) -> str:
    # A contract revert can report the pool open after it was read as closed.
    if ring is None or ring.is_closed or ring.force_close_blocks_left < 0:
        return "Pool isn't closed yet. Please try again later."

    branch = ring_not_closed_branch(ring)
    if branch == RingNotClosedBranch.WAIT:
        return (
            "Ring isn't closed yet.\n"
            f"You can manually close it in {ring.force_close_blocks_left} blocks."
        )
    if branch == RingNotClosedBranch.TOO_FEW_DEPOSITS:
        return (
            "Can't withdraw ETH yet.\n"
            "Your ETH is the only ETH currently in the pool so your withdrawal won't be "
            "private. Please wait until more ETH has been deposited."
        )

    level = privacy_level(ring.deposited)
    if level == PrivacyLevel.FULL:
        privacy = "Withdrawing your ETH will be completely private."
    elif level == PrivacyLevel.SOMEWHAT:
        privacy = (
            "If you close the pool now your withdrawal will be somewhat private. "
            "For more privacy, wait for the pool to get bigger."
        )
    else:
        privacy = "If you close the pool now your withdrawal will not be private."
    return (
        "Close pool and withdraw ETH?\n"
        f"Your ETH is currently mixed in with a pool of {ring.deposited} ETH deposit(s).\n"
        f"{privacy}\n"
        "Closing the pool will cost you a small transaction fee (run `close-ring`)."
    )


_MESSAGES = {
    WithdrawalState.NOTHING: "Withdrawing ETH... Remember to confirm this withdrawal in your wallet.",
    WithdrawalState.FORCE_CLOSING_RING: "Closing pool... Remember to confirm this in your wallet.",
    WithdrawalState.CORRUPTED_TOKEN: (
        "This token doesn't look right. Check you've pasted it correctly and try again."
    ),
    WithdrawalState.SUCCESS_CLOSE_RING: "Pool closed. Your ETH is now ready to withdraw.",
    WithdrawalState.FAILED_CLOSE_RING: (
        "Couldn't close pool. If you recently tried closing the pool, it may still be "
        "closing in the background. Please wait a few minutes and try your withdrawal again."
    ),
    WithdrawalState.RING_NOT_ENOUGH_PARTICIPANTS_TO_CLOSE: (
        "Couldn't close pool. There's not enough ETH in this pool right now to make your "
        "withdrawal private. Please try again later."
    ),
    WithdrawalState.INVALID_RING: "Invalid ring.",
    WithdrawalState.SIGNATURE_USED: "Old token. This token's already been used to withdraw ETH.",
}


def describe(
    attempt: WithdrawalAttempt,
    address: str = "",
    explorer_url: str = DEFAULT_EXPLORER_URL,
) -> str:
    state = attempt.state
    if state == WithdrawalState.RING_NOT_CLOSED:
        return _ring_not_closed(attempt.ring_state)
    if state == WithdrawalState.INVALID_SIGNATURE:
        return (
            f"Wrong account. There's no ETH in the pool for {address or 'this account'}.\n"
            "Try changing your Ethereum account."
        )
    if state == WithdrawalState.WITHDRAWN:
        tx_hash = attempt.receipt.transaction_hash if attempt.receipt else ""
        return f"ETH withdrawn.\nView on etherscan: {explorer_url}{tx_hash}"
    if state in _MESSAGES:
        return _MESSAGES[state]
    return (
        "Please open a new issue with the error description below.\n"
        f"Unknown error occurred:\n{attempt.diagnostic or ''}"
    )


def describe_ring(ring: RingState) -> str:
    if ring.is_closed:
        return f"Pool is closed (ring hash 0x{ring.ring_hash.hex()}). Withdrawals are open."
    return _ring_not_closed(ring)
