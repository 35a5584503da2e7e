"""Interface the withdrawal flow expects from a ring-signature library."""

from __future__ import annotations

from typing import Protocol, Sequence

from ..types import Point, RingSignature


class CryptoBackend(Protocol):
    def serialize(self, *items: object) -> bytes:
        """Canonical byte encoding used as hash input."""

    def hash_to_scalar(self, data: bytes) -> int:
        ...

    def base_mul(self, scalar: int) -> Point:
        ...

    def is_on_curve(self, point: Point) -> bool:
        ...

    def ring_sign(
        self,
        message: bytes,
        public_keys: Sequence[Point],
        secret_scalar: int,
        index: int,
    ) -> RingSignature:
        ...

    def ring_verify(
        self,
        message: bytes,
        public_keys: Sequence[Point],
        signature: RingSignature,
    ) -> bool:
        ...
