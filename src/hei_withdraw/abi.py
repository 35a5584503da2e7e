"""Contract call encoding (minimal Solidity ABI subset).

Covers exactly the Heiswap methods the withdrawal flow touches: static
``uint256``/``address`` words, the inline ``uint256[2]`` key image and one
trailing dynamic ``uint256[]`` of ring responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from .config import ADDRESS_SIZE, WORD_SIZE
from .crypto.altbn128 import keccak256
from .types import AmountTier, Point, RingSignature

ADDRESS = "address"
UINT = "uint256"
UINT_PAIR = "uint256[2]"
UINT_ARRAY = "uint256[]"

_HEAD_WORDS = {ADDRESS: 1, UINT: 1, UINT_PAIR: 2, UINT_ARRAY: 1}


@dataclass(frozen=True)
class Method:
    name: str
    params: Tuple[Tuple[str, str], ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(kind for _, kind in self.params)})"

    @property
    def selector(self) -> bytes:
        return keccak256(self.signature.encode("ascii"))[:4]


_RING = (("amount", UINT), ("index", UINT))
_PROOF = (("c0", UINT), ("key_image", UINT_PAIR), ("s", UINT_ARRAY))

GET_RING_HASH = Method("getRingHash", _RING)
GET_FORCE_CLOSE_BLOCKS_LEFT = Method("getForceCloseBlocksLeft", _RING)
GET_PARTICIPANTS = Method("getParticipants", _RING)
GET_PUBLIC_KEYS = Method("getPublicKeys", _RING)
FORCE_CLOSE_RING = Method("forceCloseRing", _RING + _PROOF)
WITHDRAW = Method("withdraw", (("receiver", ADDRESS),) + _RING + _PROOF)

METHODS = {
    m.selector: m
    for m in (
        GET_RING_HASH,
        GET_FORCE_CLOSE_BLOCKS_LEFT,
        GET_PARTICIPANTS,
        GET_PUBLIC_KEYS,
        FORCE_CLOSE_RING,
        WITHDRAW,
    )
}


def address_bytes(address: str) -> bytes:
    """Decode a ``0x``-prefixed hex address; empty input yields ``b""``."""
    raw = address[2:] if address[:2].lower() == "0x" else address
    value = bytes.fromhex(raw)
    if value and len(value) != ADDRESS_SIZE:
        raise ValueError(f"address must be {ADDRESS_SIZE} bytes, got {len(value)}")
    return value


@dataclass
class Writer:
    buf: bytearray

    def write_word(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(WORD_SIZE, "big", signed=False))


@dataclass
class Reader:
    data: bytes

    def word(self, offset: int) -> int:
        end = offset + WORD_SIZE
        if offset < 0 or end > len(self.data):
            raise ValueError(f"return data too short: need {end} bytes, have {len(self.data)}")
        return int.from_bytes(self.data[offset:end], "big")


def encode_call(method: Method, *args: Any) -> bytes:
    if len(args) != len(method.params):
        raise ValueError(f"{method.name} takes {len(method.params)} arguments")

    head_size = sum(_HEAD_WORDS[kind] for _, kind in method.params) * WORD_SIZE
    head = Writer(bytearray())
    tail = Writer(bytearray())
    for (_, kind), value in zip(method.params, args):
        if kind == ADDRESS:
            head.write_word(int.from_bytes(address_bytes(value), "big"))
        elif kind == UINT:
            head.write_word(value)
        elif kind == UINT_PAIR:
            head.write_word(value[0])
            head.write_word(value[1])
        else:
            head.write_word(head_size + len(tail.buf))
            tail.write_word(len(value))
            for v in value:
                tail.write_word(v)
    return method.selector + bytes(head.buf) + bytes(tail.buf)


def decode_call(data: bytes) -> Tuple[str, Dict[str, Any]]:
    """Decode a payload built by :func:`encode_call` back into named arguments."""
    method = METHODS.get(bytes(data[:4]))
    if method is None:
        raise ValueError(f"unknown selector {bytes(data[:4]).hex()}")

    r = Reader(bytes(data[4:]))
    out: Dict[str, Any] = {}
    pos = 0
    for name, kind in method.params:
        if kind == ADDRESS:
            out[name] = "0x" + r.word(pos).to_bytes(WORD_SIZE, "big")[-ADDRESS_SIZE:].hex()
        elif kind == UINT:
            out[name] = r.word(pos)
        elif kind == UINT_PAIR:
            out[name] = (r.word(pos), r.word(pos + WORD_SIZE))
        else:
            offset = r.word(pos)
            length = r.word(offset)
            out[name] = [r.word(offset + WORD_SIZE * (i + 1)) for i in range(length)]
        pos += _HEAD_WORDS[kind] * WORD_SIZE
    return method.name, out


# --- contract methods ---


def encode_ring_query(method: Method, amount_tier: AmountTier, ring_index: int) -> bytes:
    return encode_call(method, int(amount_tier), ring_index)


def encode_withdraw(
    recipient: str, amount_tier: AmountTier, ring_index: int, signature: RingSignature
) -> bytes:
    return encode_call(
        WITHDRAW,
        recipient,
        int(amount_tier),
        ring_index,
        signature.challenge,
        signature.key_image,
        list(signature.responses),
    )


def encode_force_close_ring(
    amount_tier: AmountTier, ring_index: int, signature: RingSignature
) -> bytes:
    return encode_call(
        FORCE_CLOSE_RING,
        int(amount_tier),
        ring_index,
        signature.challenge,
        signature.key_image,
        list(signature.responses),
    )


# --- return values ---


def decode_bytes(data: bytes) -> bytes:
    # Some nodes answer "0x" for an empty dynamic result.
    if not data:
        return b""
    r = Reader(bytes(data))
    offset = r.word(0)
    length = r.word(offset)
    start = offset + WORD_SIZE
    if start + length > len(data):
        raise ValueError("bytes value runs past return data")
    return bytes(data[start:start + length])


def decode_uint(data: bytes) -> int:
    return Reader(bytes(data)).word(0)


def decode_uint_pair(data: bytes) -> Tuple[int, int]:
    r = Reader(bytes(data))
    return r.word(0), r.word(WORD_SIZE)


def decode_points(data: bytes) -> List[Point]:
    """Decode a static ``uint256[2][N]``; N is implied by the data length."""
    if len(data) % (2 * WORD_SIZE):
        raise ValueError(f"point list length {len(data)} is not a multiple of {2 * WORD_SIZE}")
    r = Reader(bytes(data))
    return [
        (r.word(pos), r.word(pos + WORD_SIZE))
        for pos in range(0, len(data), 2 * WORD_SIZE)
    ]


def encode_points(points: Sequence[Point]) -> bytes:
    w = Writer(bytearray())
    for x, y in points:
        w.write_word(x)
        w.write_word(y)
    return bytes(w.buf)
