"""Hei token parsing.

A token looks like ``hei-<amount>-<ring index>-<secret hex>`` and is the only
thing a depositor hands to whoever withdraws.
"""

from __future__ import annotations

import string

from .config import TOKEN_FIELD_COUNT, TOKEN_MARKER, TOKEN_SEPARATOR, WORD_SIZE
from .errors import WithdrawalError, err
from .types import AmountTier, WithdrawalState, WithdrawalToken

# Token fields are passed to the contract as uint256 words.
_UINT256_LIMIT = 1 << (8 * WORD_SIZE)


def _corrupted(message: str) -> WithdrawalError:
    return err(WithdrawalState.CORRUPTED_TOKEN, message)


def _parse_decimal(name: str, value: str) -> int:
    if not value.isdigit() or not value.isascii():
        raise _corrupted(f"{name} must be a non-negative decimal integer")
    try:
        number = int(value)
    except ValueError as exc:
        # Over the interpreter's digit limit.
        raise _corrupted(f"{name} is too long") from exc
    if number >= _UINT256_LIMIT:
        raise _corrupted(f"{name} does not fit in a uint256")
    return number


def _parse_secret(value: str) -> bytes:
    if value[:2].lower() == "0x":
        value = value[2:]
    if not value or len(value) % 2:
        raise _corrupted("secret must be a non-empty, even-length hex string")
    if any(c not in string.hexdigits for c in value):
        raise _corrupted("secret is not valid hex")
    return bytes.fromhex(value)


def parse_token(raw: str) -> WithdrawalToken:
    parts = raw.strip().split(TOKEN_SEPARATOR)
    if len(parts) != TOKEN_FIELD_COUNT + 1:
        raise _corrupted(f"expected {TOKEN_FIELD_COUNT} fields after the marker")

    marker, amount_str, index_str, secret_str = parts
    if marker != TOKEN_MARKER:
        raise _corrupted(f"token must start with {TOKEN_MARKER!r}")

    amount = _parse_decimal("amount", amount_str)
    try:
        tier = AmountTier(amount)
    except ValueError as exc:
        raise _corrupted(f"unsupported amount tier: {amount}") from exc

    return WithdrawalToken(
        amount_tier=tier,
        ring_index=_parse_decimal("ring index", index_str),
        secret=_parse_secret(secret_str),
    )


def format_token(token: WithdrawalToken) -> str:
    return TOKEN_SEPARATOR.join(
        (TOKEN_MARKER, str(int(token.amount_tier)), str(token.ring_index), token.secret.hex())
    )
