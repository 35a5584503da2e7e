"""JSON-RPC ledger client and HTTP relayer against a local aiohttp server."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List

import aiohttp
import pytest
from aiohttp import test_utils, web

from fakes import ADDRESS, CONTRACT
from hei_withdraw import abi
from hei_withdraw.config import ClientConfig
from hei_withdraw.dispatch import HttpRelayer
from hei_withdraw.errors import LedgerError
from hei_withdraw.ledger import JsonRpcLedger
from hei_withdraw.types import AmountTier


def _word(v: int) -> bytes:
    return v.to_bytes(32, "big")


class FakeNode:
    """Answers JSON-RPC methods from a table of handlers."""

    def __init__(self, handlers: Dict[str, Callable[[List[Any]], Any]]):
        self.handlers = handlers
        self.requests: List[Dict[str, Any]] = []

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.requests.append(body)
        reply: Dict[str, Any] = {"jsonrpc": "2.0", "id": body["id"]}
        try:
            reply["result"] = self.handlers[body["method"]](body["params"])
        except LedgerError as e:
            reply["error"] = {"code": -32000, "message": e.message, "data": e.data}
        return web.json_response(reply)


async def _serve(handler: Callable[[web.Request], Awaitable[web.StreamResponse]]) -> test_utils.TestServer:
    app = web.Application()
    app.router.add_post("/", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


def _run_with_node(node: FakeNode, action: Callable[[JsonRpcLedger], Awaitable[Any]]) -> Any:
    async def run() -> Any:
        server = await _serve(node.handle)
        config = ClientConfig(
            rpc_url=str(server.make_url("/")),
            contract_address=CONTRACT,
            receipt_poll_interval=0.01,
            receipt_timeout=0.5,
        )
        try:
            async with JsonRpcLedger(config) as ledger:
                return await action(ledger)
        finally:
            await server.close()

    return asyncio.run(run())


def _eth_call(result: bytes) -> Callable[[List[Any]], str]:
    return lambda params: "0x" + result.hex()


def test_ring_hash_query() -> None:
    ring_hash = bytes(range(32))
    node = FakeNode({"eth_call": _eth_call(_word(32) + _word(32) + ring_hash)})

    result = _run_with_node(node, lambda ledger: ledger.get_ring_hash(AmountTier.TWO, 5))

    assert result == ring_hash
    call, block = node.requests[0]["params"]
    assert block == "latest"
    assert call["to"] == CONTRACT
    expected = abi.encode_ring_query(abi.GET_RING_HASH, AmountTier.TWO, 5)
    assert call["data"] == "0x" + expected.hex()


def test_open_ring_hash_is_empty() -> None:
    node = FakeNode({"eth_call": _eth_call(_word(32) + _word(0))})
    assert _run_with_node(node, lambda ledger: ledger.get_ring_hash(AmountTier.ONE, 0)) == b""


def test_counter_queries() -> None:
    node = FakeNode({"eth_call": _eth_call(_word(4) + _word(1))})

    async def action(ledger: JsonRpcLedger):
        return (
            await ledger.get_force_close_blocks_left(AmountTier.ONE, 0),
            await ledger.get_participants(AmountTier.ONE, 0),
        )

    assert _run_with_node(node, action) == (4, (4, 1))


def test_public_keys_query() -> None:
    points = [(5, 6), (0, 0)]
    node = FakeNode({"eth_call": _eth_call(abi.encode_points(points))})
    assert _run_with_node(node, lambda ledger: ledger.get_public_keys(AmountTier.ONE, 0)) == points


def test_gas_and_nonce() -> None:
    node = FakeNode({
        "eth_estimateGas": lambda params: "0x3d090",
        "eth_getTransactionCount": lambda params: "0x2",
    })

    async def action(ledger: JsonRpcLedger):
        return (
            await ledger.estimate_gas(CONTRACT, b"\x01"),
            await ledger.get_transaction_count(ADDRESS),
        )

    assert _run_with_node(node, action) == (250_000, 2)
    assert node.requests[0]["params"] == [{"to": CONTRACT, "data": "0x01"}]
    assert node.requests[1]["params"] == [ADDRESS, "latest"]


def test_send_waits_for_receipt() -> None:
    polls: List[int] = []

    def receipt(params: List[Any]) -> Any:
        polls.append(1)
        if len(polls) < 3:
            return None
        return {"transactionHash": params[0], "blockNumber": "0x10", "gasUsed": "0x5208", "status": "0x1"}

    node = FakeNode({"eth_sendTransaction": lambda params: "0xabc", "eth_getTransactionReceipt": receipt})
    tx = {"from": ADDRESS, "to": CONTRACT, "gas": 21000, "data": b"\xde\xad", "nonce": 3}

    result = _run_with_node(node, lambda ledger: ledger.send_transaction(tx))

    assert result.transaction_hash == "0xabc"
    assert (result.block_number, result.gas_used, result.status) == (16, 21000, 1)
    assert len(polls) == 3
    assert node.requests[0]["params"] == [
        {"from": ADDRESS, "to": CONTRACT, "gas": "0x5208", "data": "0xdead", "nonce": "0x3"}
    ]


def test_reverted_receipt_raises() -> None:
    node = FakeNode({
        "eth_sendTransaction": lambda params: "0xabc",
        "eth_getTransactionReceipt": lambda params: {"transactionHash": "0xabc", "status": "0x0"},
    })
    tx = {"from": ADDRESS, "to": CONTRACT, "gas": 1, "data": b"", "nonce": 0}
    with pytest.raises(LedgerError):
        _run_with_node(node, lambda ledger: ledger.send_transaction(tx))


def test_missing_receipt_times_out() -> None:
    node = FakeNode({"eth_getTransactionReceipt": lambda params: None})
    with pytest.raises(LedgerError, match="no receipt"):
        _run_with_node(node, lambda ledger: ledger.wait_for_receipt("0xabc"))


def test_rpc_error_carries_reason() -> None:
    def revert(params: List[Any]) -> Any:
        raise LedgerError("VM Exception while processing transaction: revert", "Signature has been used!")

    node = FakeNode({"eth_estimateGas": revert})
    with pytest.raises(LedgerError) as exc:
        _run_with_node(node, lambda ledger: ledger.estimate_gas(CONTRACT, b""))
    assert "Signature has been used!" in str(exc.value)
    assert exc.value.data == "Signature has been used!"


def test_unreachable_node() -> None:
    async def run() -> None:
        config = ClientConfig(rpc_url="http://127.0.0.1:1", contract_address=CONTRACT, request_timeout=2.0)
        async with JsonRpcLedger(config) as ledger:
            await ledger.get_ring_hash(AmountTier.ONE, 0)

    with pytest.raises(LedgerError, match="eth_call"):
        asyncio.run(run())


def test_requires_connect() -> None:
    ledger = JsonRpcLedger(ClientConfig(contract_address=CONTRACT))
    with pytest.raises(LedgerError):
        asyncio.run(ledger.get_ring_hash(AmountTier.ONE, 0))


def _run_relayer(handler: Callable[[web.Request], Awaitable[web.StreamResponse]], data: bytes) -> Any:
    async def run() -> Any:
        server = await _serve(handler)
        try:
            return await HttpRelayer(str(server.make_url("/")), timeout=2.0).submit(CONTRACT, data)
        finally:
            await server.close()

    return asyncio.run(run())


def test_http_relayer_returns_receipt() -> None:
    seen: List[Dict[str, Any]] = []

    async def handler(request: web.Request) -> web.Response:
        seen.append(await request.json())
        return web.json_response({"transaction_hash": "0x99"})

    receipt = _run_relayer(handler, b"\x0a\x0b")

    assert receipt.transaction_hash == "0x99"
    assert seen == [{"to": CONTRACT, "data": "0x0a0b"}]


def test_http_relayer_without_hash() -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.json_response({"queued": True})

    assert _run_relayer(handler, b"\x01") is None


def test_http_relayer_error_status() -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.Response(status=503)

    with pytest.raises(aiohttp.ClientResponseError):
        _run_relayer(handler, b"\x01")
