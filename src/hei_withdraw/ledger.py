"""Ledger access: the contract reads and the transaction calls the flow needs."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Any, Dict, List, Optional, Protocol, Tuple

import aiohttp

from . import abi
from .config import ClientConfig
from .errors import LedgerError
from .types import AmountTier, Point, TxReceipt

logger = logging.getLogger(__name__)


class Ledger(Protocol):
    contract_address: str

    async def get_ring_hash(self, amount_tier: AmountTier, ring_index: int) -> bytes:
        ...

    async def get_force_close_blocks_left(self, amount_tier: AmountTier, ring_index: int) -> int:
        ...

    async def get_participants(self, amount_tier: AmountTier, ring_index: int) -> Tuple[int, int]:
        ...

    async def get_public_keys(self, amount_tier: AmountTier, ring_index: int) -> List[Point]:
        ...

    async def estimate_gas(self, to: str, data: bytes) -> int:
        ...

    async def get_transaction_count(self, address: str) -> int:
        ...

    async def send_transaction(self, tx: Dict[str, Any]) -> TxReceipt:
        ...


def _unhex(value: Optional[str]) -> Optional[int]:
    return None if value is None else int(value, 16)


def _data(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


class JsonRpcLedger:
    """Ethereum JSON-RPC client for one Heiswap contract."""

    def __init__(self, config: ClientConfig):
        self.config = config
        self.contract_address = config.contract_address
        self.session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Initialize HTTP session."""
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self) -> "JsonRpcLedger":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _rpc(self, method: str, params: List[Any]) -> Any:
        if self.session is None:
            raise LedgerError("ledger session is not connected")
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            async with self.session.post(self.config.rpc_url, json=payload) as resp:
                body = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise LedgerError(f"{method} request failed: {e!r}") from e

        if body.get("error"):
            error = body["error"]
            raise LedgerError(error.get("message", str(error)), error.get("data"))
        return body.get("result")

    async def _call(self, data: bytes) -> bytes:
        result = await self._rpc(
            "eth_call", [{"to": self.contract_address, "data": "0x" + data.hex()}, "latest"]
        )
        return _data(result or "0x")

    # --- contract reads ---

    async def get_ring_hash(self, amount_tier: AmountTier, ring_index: int) -> bytes:
        raw = await self._call(abi.encode_ring_query(abi.GET_RING_HASH, amount_tier, ring_index))
        return abi.decode_bytes(raw)

    async def get_force_close_blocks_left(self, amount_tier: AmountTier, ring_index: int) -> int:
        raw = await self._call(
            abi.encode_ring_query(abi.GET_FORCE_CLOSE_BLOCKS_LEFT, amount_tier, ring_index)
        )
        return abi.decode_uint(raw)

    async def get_participants(self, amount_tier: AmountTier, ring_index: int) -> Tuple[int, int]:
        raw = await self._call(abi.encode_ring_query(abi.GET_PARTICIPANTS, amount_tier, ring_index))
        return abi.decode_uint_pair(raw)

    async def get_public_keys(self, amount_tier: AmountTier, ring_index: int) -> List[Point]:
        raw = await self._call(abi.encode_ring_query(abi.GET_PUBLIC_KEYS, amount_tier, ring_index))
        return abi.decode_points(raw)

    # --- transactions ---

    async def estimate_gas(self, to: str, data: bytes) -> int:
        return _unhex(await self._rpc("eth_estimateGas", [{"to": to, "data": "0x" + data.hex()}]))

    async def get_transaction_count(self, address: str) -> int:
        return _unhex(await self._rpc("eth_getTransactionCount", [address, "latest"]))

    async def send_transaction(self, tx: Dict[str, Any]) -> TxReceipt:
        """Broadcast through the node's unlocked account and wait for the receipt."""
        params = {
            "from": tx["from"],
            "to": tx["to"],
            "gas": hex(tx["gas"]),
            "data": "0x" + tx["data"].hex(),
            "nonce": hex(tx["nonce"]),
        }
        tx_hash = await self._rpc("eth_sendTransaction", [params])
        logger.info(f"Broadcast transaction {tx_hash}")
        return await self.wait_for_receipt(tx_hash)

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        deadline = time.monotonic() + self.config.receipt_timeout
        while True:
            raw = await self._rpc("eth_getTransactionReceipt", [tx_hash])
            if raw is not None:
                break
            if time.monotonic() >= deadline:
                raise LedgerError(f"no receipt for {tx_hash} after {self.config.receipt_timeout}s")
            await asyncio.sleep(self.config.receipt_poll_interval)

        receipt = TxReceipt(
            transaction_hash=raw.get("transactionHash", tx_hash),
            block_number=_unhex(raw.get("blockNumber")),
            gas_used=_unhex(raw.get("gasUsed")),
            status=_unhex(raw.get("status")),
            raw=raw,
        )
        if receipt.status == 0:
            raise LedgerError("Transaction has been reverted by the EVM", raw.get("revertReason"))
        return receipt
