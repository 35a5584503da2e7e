"""Ring signature requests for withdrawing and for closing a ring."""

from __future__ import annotations

import logging

from .abi import address_bytes
from .crypto.backend import CryptoBackend
from .types import Membership, RingSignature

logger = logging.getLogger(__name__)


def withdrawal_message(ring_hash: bytes, address: str) -> bytes:
    # A withdrawal proof is only valid for the recipient it names.
    return bytes(ring_hash) + address_bytes(address)


def close_ring_message(ring_hash: bytes) -> bytes:
    return bytes(ring_hash)


class SignatureRequestBuilder:
    def __init__(self, crypto: CryptoBackend):
        self.crypto = crypto

    def _sign(self, message: bytes, membership: Membership) -> RingSignature:
        logger.debug(f"Ring signing {len(message)}-byte message over {len(membership.public_keys)} keys")
        return self.crypto.ring_sign(
            message,
            membership.public_keys,
            membership.keypair.secret_scalar,
            membership.index,
        )

    def sign_withdrawal(self, ring_hash: bytes, address: str, membership: Membership) -> RingSignature:
        return self._sign(withdrawal_message(ring_hash, address), membership)

    def sign_close_ring(self, ring_hash: bytes, membership: Membership) -> RingSignature:
        return self._sign(close_ring_message(ring_hash), membership)
