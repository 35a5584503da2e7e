"""Withdrawal and force-close flows.

Each flow is a strict sequence of awaited steps: parse the token, read the
ring, find the caller's key, sign, submit. Every failure is converted into a
terminal state of the attempt that started the flow; nothing is raised to the
caller.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Optional

from . import abi
from .crypto.backend import CryptoBackend
from .dispatch import SubmissionDispatcher
from .errors import SubmissionFailed, WithdrawalError, err
from .ledger import Ledger
from .membership import MembershipMatcher
from .ring_status import RingStatusResolver
from .signing import SignatureRequestBuilder
from .state_machine import WithdrawalStateMachine, classify_submission_failure
from .token import parse_token
from .types import RingState, TxReceipt, WithdrawalAttempt, WithdrawalState

logger = logging.getLogger(__name__)


class WithdrawalWorkflow:
    def __init__(
        self,
        ledger: Ledger,
        crypto: CryptoBackend,
        dispatcher: SubmissionDispatcher,
        address: str,
        machine: Optional[WithdrawalStateMachine] = None,
    ):
        self.ledger = ledger
        self.address = address
        self.dispatcher = dispatcher
        self.machine = machine or WithdrawalStateMachine()
        self.resolver = RingStatusResolver(ledger)
        self.matcher = MembershipMatcher(crypto)
        self.signer = SignatureRequestBuilder(crypto)

    async def withdraw(self, raw_token: str) -> WithdrawalAttempt:
        generation = self.machine.begin()
        logger.info(f"Attempt {generation}: withdrawing to {self.address}")
        await self._settle(generation, self._withdraw(generation, raw_token), WithdrawalState.WITHDRAWN)
        return self.machine.snapshot

    async def force_close(self, raw_token: str) -> WithdrawalAttempt:
        generation = self.machine.begin()
        logger.info(f"Attempt {generation}: force closing ring")
        self.machine.apply(generation, WithdrawalState.FORCE_CLOSING_RING)
        await self._settle(generation, self._force_close(raw_token), WithdrawalState.SUCCESS_CLOSE_RING)
        return self.machine.snapshot

    async def status(self, raw_token: str) -> RingState:
        """Resolve the ring named by the token without starting an attempt.

        Raises :class:`WithdrawalError` for a corrupted token or a failed query.
        """
        token = parse_token(raw_token)
        return await self.resolver.resolve(token.amount_tier, token.ring_index)

    async def _settle(
        self,
        generation: int,
        steps: Awaitable[Optional[TxReceipt]],
        success_state: WithdrawalState,
    ) -> None:
        try:
            receipt = await steps
        except WithdrawalError as e:
            logger.info(f"Attempt {generation} stopped: {e}")
            self.machine.apply(generation, e.state, diagnostic=e.message)
            return
        except Exception as e:
            logger.error(f"Attempt {generation} failed: {e!r}")
            self.machine.apply(generation, WithdrawalState.UNKNOWN_ERROR, diagnostic=str(e))
            return

        if receipt is None:
            logger.warning(f"Attempt {generation} left pending, nothing was submitted")
            return
        self.machine.apply(generation, success_state, receipt=receipt)

    async def _withdraw(self, generation: int, raw_token: str) -> Optional[TxReceipt]:
        token = parse_token(raw_token)

        ring = await self.resolver.resolve(token.amount_tier, token.ring_index)
        self.machine.observe_ring(generation, ring)
        if not ring.is_closed:
            raise err(
                WithdrawalState.RING_NOT_CLOSED,
                f"ring can be closed in {ring.force_close_blocks_left} block(s)",
            )

        keys = await self.ledger.get_public_keys(token.amount_tier, token.ring_index)
        membership = self.matcher.match(keys, token.secret, self.address)
        signature = self.signer.sign_withdrawal(ring.ring_hash, self.address, membership)
        data = abi.encode_withdraw(self.address, token.amount_tier, token.ring_index, signature)

        try:
            return await self.dispatcher.submit(data, self.address)
        except SubmissionFailed as e:
            raise err(classify_submission_failure(e.diagnostic), e.diagnostic) from e

    async def _force_close(self, raw_token: str) -> Optional[TxReceipt]:
        token = parse_token(raw_token)

        ring_hash = await self.ledger.get_ring_hash(token.amount_tier, token.ring_index)
        keys = await self.ledger.get_public_keys(token.amount_tier, token.ring_index)
        membership = self.matcher.match(keys, token.secret, self.address, force_close=True)
        signature = self.signer.sign_close_ring(ring_hash, membership)
        data = abi.encode_force_close_ring(token.amount_tier, token.ring_index, signature)

        try:
            return await self.dispatcher.submit(data, self.address)
        except SubmissionFailed as e:
            logger.warning(f"Closing ring failed: {e.diagnostic}")
            raise err(WithdrawalState.FAILED_CLOSE_RING, e.diagnostic) from e
