"""Getting a signed call onto the ledger, directly or through a relayer."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import aiohttp

from .errors import SubmissionFailed
from .ledger import Ledger
from .types import SubmissionMode, TxReceipt

logger = logging.getLogger(__name__)


class Relayer(Protocol):
    async def submit(self, to: str, data: bytes) -> Optional[TxReceipt]:
        ...


class NullRelayer:
    """Placeholder until a relayer network exists; never submits anything."""

    async def submit(self, to: str, data: bytes) -> Optional[TxReceipt]:
        logger.warning("No relayer configured, payload was not submitted")
        return None


class HttpRelayer:
    """Posts the encoded call to a relayer endpoint that pays the gas."""

    def __init__(self, url: str, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout

    async def submit(self, to: str, data: bytes) -> Optional[TxReceipt]:
        client_timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.post(self.url, json={"to": to, "data": "0x" + data.hex()}) as resp:
                resp.raise_for_status()
                body = await resp.json(content_type=None)
        tx_hash = body.get("transaction_hash") if isinstance(body, dict) else None
        if not tx_hash:
            return None
        return TxReceipt(transaction_hash=tx_hash, raw=body)


class SubmissionDispatcher:
    def __init__(
        self,
        ledger: Ledger,
        relayer: Optional[Relayer] = None,
        use_relayer: bool = False,
    ):
        self.ledger = ledger
        self.relayer = relayer or NullRelayer()
        self.mode = SubmissionMode.RELAYER if use_relayer else SubmissionMode.DIRECT

    async def submit(self, data: bytes, sender: str) -> Optional[TxReceipt]:
        """Submit ``data`` to the contract.

        Returns the receipt, or ``None`` when the relayer did not take the
        payload. Direct broadcast failures raise :class:`SubmissionFailed`
        with the node's reason text untouched.
        """
        to = self.ledger.contract_address
        if self.mode == SubmissionMode.RELAYER:
            return await self._submit_relayer(to, data)
        return await self._submit_direct(to, data, sender)

    async def _submit_relayer(self, to: str, data: bytes) -> Optional[TxReceipt]:
        try:
            return await self.relayer.submit(to, data)
        except Exception as e:
            # TODO: surface relayer failures once a relayer protocol is settled.
            logger.warning(f"Relayer submission failed, ignoring: {e!r}")
            return None

    async def _submit_direct(self, to: str, data: bytes, sender: str) -> TxReceipt:
        try:
            gas = await self.ledger.estimate_gas(to, data)
            nonce = await self.ledger.get_transaction_count(sender)
            logger.info(f"Sending {len(data)}-byte call to {to} (gas={gas}, nonce={nonce})")
            return await self.ledger.send_transaction(
                {"from": sender, "to": to, "gas": gas, "data": data, "nonce": nonce}
            )
        except Exception as e:
            raise SubmissionFailed(str(e)) from e
