"""alt_bn128 ring signatures as verified by the Heiswap contract.

Hash to scalar is keccak-256 reduced modulo the group order; hash to point
is try-and-increment on the x coordinate. Every value fed to a hash is
serialized as 32-byte big-endian words, except raw byte strings which are
appended unchanged.
"""

from __future__ import annotations

import secrets
from typing import Callable, Sequence

from Crypto.Hash import keccak
from py_ecc.optimized_bn128 import (
    FQ,
    G1,
    Z1,
    add,
    curve_order,
    field_modulus,
    is_inf,
    multiply,
    normalize,
)

from ..config import WORD_SIZE
from ..types import PLACEHOLDER_POINT, Point, RingSignature

CURVE_B = 3


def keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


def serialize(*items: object) -> bytes:
    out = bytearray()
    for item in items:
        if isinstance(item, (bytes, bytearray)):
            out.extend(item)
        elif isinstance(item, str):
            out.extend(bytes.fromhex(item[2:] if item[:2].lower() == "0x" else item))
        elif isinstance(item, bool):
            raise TypeError("cannot serialize bool")
        elif isinstance(item, int):
            out.extend(item.to_bytes(WORD_SIZE, "big", signed=False))
        elif isinstance(item, (tuple, list)):
            out.extend(serialize(*item))
        else:
            raise TypeError(f"cannot serialize {type(item).__name__}")
    return bytes(out)


def hash_to_scalar(data: bytes) -> int:
    return int.from_bytes(keccak256(data), "big") % curve_order


def is_on_curve(point: Point) -> bool:
    x, y = point
    if not (0 <= x < field_modulus and 0 <= y < field_modulus):
        return False
    if (x, y) == PLACEHOLDER_POINT:
        return False
    return (y * y - x * x * x - CURVE_B) % field_modulus == 0


def hash_to_point(data: bytes) -> Point:
    x = hash_to_scalar(data) % field_modulus
    while True:
        beta = (x * x * x + CURVE_B) % field_modulus
        y = pow(beta, (field_modulus + 1) // 4, field_modulus)
        if (y * y) % field_modulus == beta:
            return (x, y)
        x = (x + 1) % field_modulus


def _lift(point: Point) -> tuple:
    if point == PLACEHOLDER_POINT:
        return Z1
    return (FQ(point[0]), FQ(point[1]), FQ.one())


def _lower(point: tuple) -> Point:
    if is_inf(point):
        return PLACEHOLDER_POINT
    x, y = normalize(point)
    return (x.n, y.n)


def point_mul(point: Point, scalar: int) -> Point:
    return _lower(multiply(_lift(point), scalar % curve_order))


def point_add(a: Point, b: Point) -> Point:
    return _lower(add(_lift(a), _lift(b)))


def base_mul(scalar: int) -> Point:
    return _lower(multiply(G1, scalar % curve_order))


def random_scalar() -> int:
    return secrets.randbelow(curve_order - 1) + 1


def _ring_link(
    public_keys: Sequence[Point],
    h: Point,
    key_image: Point,
    message: bytes,
    public_key: Point,
    response: int,
    challenge: int,
) -> int:
    z1 = point_add(base_mul(response), point_mul(public_key, challenge))
    z2 = point_add(point_mul(h, response), point_mul(key_image, challenge))
    return hash_to_scalar(serialize(public_keys, key_image, message, z1, z2))


def ring_sign(
    message: bytes,
    public_keys: Sequence[Point],
    secret_scalar: int,
    index: int,
    rng: Callable[[], int] = random_scalar,
) -> RingSignature:
    """Sign ``message`` as the owner of ``public_keys[index]``."""
    n = len(public_keys)
    if not 0 <= index < n:
        raise ValueError(f"signer index {index} outside ring of {n}")

    keys = [tuple(k) for k in public_keys]
    h = hash_to_point(serialize(keys))
    key_image = point_mul(h, secret_scalar)

    challenges = [0] * n
    responses = [0] * n

    u = rng()
    nxt = (index + 1) % n
    challenges[nxt] = hash_to_scalar(
        serialize(keys, key_image, message, base_mul(u), point_mul(h, u))
    )

    i = nxt
    while i != index:
        responses[i] = rng()
        challenges[(i + 1) % n] = _ring_link(
            keys, h, key_image, message, keys[i], responses[i], challenges[i]
        )
        i = (i + 1) % n

    responses[index] = (u - challenges[index] * secret_scalar) % curve_order
    return RingSignature(
        challenge=challenges[0],
        responses=tuple(responses),
        key_image=key_image,
    )


def ring_verify(
    message: bytes,
    public_keys: Sequence[Point],
    signature: RingSignature,
) -> bool:
    n = len(public_keys)
    if n == 0 or len(signature.responses) != n:
        return False
    if not is_on_curve(signature.key_image):
        return False

    keys = [tuple(k) for k in public_keys]
    h = hash_to_point(serialize(keys))
    c = signature.challenge
    for key, response in zip(keys, signature.responses):
        c = _ring_link(keys, h, signature.key_image, message, key, response, c)
    return c == signature.challenge


class AltBn128Backend:
    """Default crypto backend: the scheme the on-chain verifier implements."""

    def serialize(self, *items: object) -> bytes:
        return serialize(*items)

    def hash_to_scalar(self, data: bytes) -> int:
        return hash_to_scalar(data)

    def base_mul(self, scalar: int) -> Point:
        return base_mul(scalar)

    def is_on_curve(self, point: Point) -> bool:
        return is_on_curve(point)

    def ring_sign(
        self,
        message: bytes,
        public_keys: Sequence[Point],
        secret_scalar: int,
        index: int,
    ) -> RingSignature:
        return ring_sign(message, public_keys, secret_scalar, index)

    def ring_verify(
        self,
        message: bytes,
        public_keys: Sequence[Point],
        signature: RingSignature,
    ) -> bool:
        return ring_verify(message, public_keys, signature)
