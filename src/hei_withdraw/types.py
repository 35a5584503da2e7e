"""Core types for the heiswap withdrawal client.

Only the surface needed to take a deposit back out of a ring is modelled
here: the parsed token, the ring snapshot read from the contract, the
stealth keypair, the ring signature and the attempt the UI renders.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Tuple

Point = Tuple[int, int]

# Unfilled ring slots come back from the contract as the zero point.
PLACEHOLDER_POINT: Point = (0, 0)


class AmountTier(IntEnum):
    """ETH denominations accepted by the pool contract."""

    ONE = 1
    TWO = 2
    FOUR = 4
    EIGHT = 8
    SIXTEEN = 16
    THIRTY_TWO = 32


class WithdrawalState(IntEnum):
    UNKNOWN_ERROR = -2
    NOTHING = -1
    CORRUPTED_TOKEN = 0
    RING_NOT_CLOSED = 1
    RING_NOT_ENOUGH_PARTICIPANTS_TO_CLOSE = 2
    FORCE_CLOSING_RING = 3
    FAILED_CLOSE_RING = 4
    SUCCESS_CLOSE_RING = 5
    INVALID_RING = 6
    INVALID_SIGNATURE = 7
    SIGNATURE_USED = 8
    WITHDRAWN = 9


class SubmissionMode(Enum):
    DIRECT = "direct"
    RELAYER = "relayer"


@dataclass(frozen=True)
class WithdrawalToken:
    amount_tier: AmountTier
    ring_index: int
    secret: bytes


@dataclass(frozen=True)
class RingState:
    is_closed: bool
    ring_hash: Optional[bytes] = None
    force_close_blocks_left: int = -1
    deposited: int = 0
    withdrawn: int = 0

    @property
    def can_force_close(self) -> bool:
        return not self.is_closed and self.force_close_blocks_left == 0


@dataclass(frozen=True)
class StealthKeypair:
    secret_scalar: int
    public_point: Point

    def __repr__(self) -> str:
        # Keep the scalar out of logs and tracebacks.
        return f"StealthKeypair(public_point={self.public_point!r})"


@dataclass(frozen=True)
class RingSignature:
    challenge: int
    responses: Tuple[int, ...]
    key_image: Point


@dataclass(frozen=True)
class Membership:
    index: int
    keypair: StealthKeypair
    public_keys: Tuple[Point, ...]


@dataclass
class TxReceipt:
    transaction_hash: str
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    status: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WithdrawalAttempt:
    """Snapshot of one withdrawal attempt, as read by the presentation layer."""

    generation: int = 0
    state: WithdrawalState = WithdrawalState.NOTHING
    ring_state: Optional[RingState] = None
    receipt: Optional[TxReceipt] = None
    diagnostic: Optional[str] = None
