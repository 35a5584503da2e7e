"""Locate the caller's stealth key inside a ring roster.

The contract returns a fixed-capacity roster padded with zero points. Once the
padding is removed, the remaining order is the ring order used both for the
membership search and for the signer index passed to the ring signature.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from .config import MIN_FORCE_CLOSE_PARTICIPANTS
from .crypto.backend import CryptoBackend
from .errors import err
from .types import PLACEHOLDER_POINT, Membership, Point, StealthKeypair, WithdrawalState

logger = logging.getLogger(__name__)


def is_placeholder(point: Point) -> bool:
    return tuple(point) == PLACEHOLDER_POINT


def filter_placeholders(points: Iterable[Point]) -> List[Point]:
    return [tuple(p) for p in points if not is_placeholder(p)]


def derive_stealth_keypair(secret: bytes, address: str, crypto: CryptoBackend) -> StealthKeypair:
    secret_scalar = crypto.hash_to_scalar(crypto.serialize(secret, address))
    return StealthKeypair(
        secret_scalar=secret_scalar,
        public_point=crypto.base_mul(secret_scalar),
    )


def find_member(points: Sequence[Point], public_point: Point) -> Optional[int]:
    for i, point in enumerate(points):
        if tuple(point) == tuple(public_point):
            return i
    return None


class MembershipMatcher:
    def __init__(self, crypto: CryptoBackend):
        self.crypto = crypto

    def match(
        self,
        points: Iterable[Point],
        secret: bytes,
        address: str,
        force_close: bool = False,
    ) -> Membership:
        """Find the caller's entry in ``points``.

        Closing a ring needs at least two members, otherwise the closer is
        trivially identified. A closed ring may be withdrawn from by its only
        member.
        """
        keys = filter_placeholders(points)

        if force_close and len(keys) < MIN_FORCE_CLOSE_PARTICIPANTS:
            raise err(
                WithdrawalState.RING_NOT_ENOUGH_PARTICIPANTS_TO_CLOSE,
                f"ring has {len(keys)} participant(s), "
                f"{MIN_FORCE_CLOSE_PARTICIPANTS} needed to close it",
            )
        if not keys:
            raise err(WithdrawalState.INVALID_RING, "ring has no public keys")
        for point in keys:
            if not self.crypto.is_on_curve(point):
                raise err(
                    WithdrawalState.INVALID_RING, f"ring public key is not a curve point: {point}"
                )

        keypair = derive_stealth_keypair(secret, address, self.crypto)
        index = find_member(keys, keypair.public_point)
        if index is None:
            raise err(
                WithdrawalState.INVALID_SIGNATURE,
                f"no key in this ring belongs to {address}",
            )

        logger.debug(f"Matched stealth key at ring position {index} of {len(keys)}")
        return Membership(index=index, keypair=keypair, public_keys=tuple(keys))
