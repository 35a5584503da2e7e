"""Ring readiness as reported by the contract."""

from __future__ import annotations

import logging

from .config import RING_HASH_SIZE
from .errors import err
from .ledger import Ledger
from .types import AmountTier, RingState, WithdrawalState

logger = logging.getLogger(__name__)


def is_closed_hash(ring_hash: bytes) -> bool:
    return len(ring_hash) == RING_HASH_SIZE


class RingStatusResolver:
    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    async def resolve(self, amount_tier: AmountTier, ring_index: int) -> RingState:
        """Read the ring's closing hash and, if still open, how soon it can be closed.

        Participant counts are only fetched once the ring is closable, so the
        caller can warn about the anonymity set size before closing it.
        """
        try:
            return await self._resolve(amount_tier, ring_index)
        except Exception as e:
            logger.error(f"Ring status query failed for {int(amount_tier)}/{ring_index}: {e}")
            raise err(WithdrawalState.UNKNOWN_ERROR, str(e)) from e

    async def _resolve(self, amount_tier: AmountTier, ring_index: int) -> RingState:
        ring_hash = await self.ledger.get_ring_hash(amount_tier, ring_index)
        if is_closed_hash(ring_hash):
            logger.info(f"Ring {int(amount_tier)}/{ring_index} is closed")
            return RingState(is_closed=True, ring_hash=bytes(ring_hash))

        blocks_left = int(await self.ledger.get_force_close_blocks_left(amount_tier, ring_index))
        deposited = withdrawn = 0
        if blocks_left == 0:
            deposited, withdrawn = await self.ledger.get_participants(amount_tier, ring_index)

        logger.info(
            f"Ring {int(amount_tier)}/{ring_index} is open "
            f"(blocks left={blocks_left}, deposited={deposited}, withdrawn={withdrawn})"
        )
        return RingState(
            is_closed=False,
            force_close_blocks_left=blocks_left,
            deposited=int(deposited),
            withdrawn=int(withdrawn),
        )
