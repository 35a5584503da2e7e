"""Withdrawal client constants and runtime configuration.

Keep the constants aligned with the Heiswap contract (`Heiswap.sol`) and the
token format handed out by the deposit page.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

# Token format: "<marker>-<amount>-<ring index>-<secret hex>"
TOKEN_MARKER = "hei"
TOKEN_SEPARATOR = "-"
TOKEN_FIELD_COUNT = 3

# Encoding sizes
WORD_SIZE = 32
ADDRESS_SIZE = 20
RING_HASH_SIZE = 32  # a closed ring reports its 32-byte keccak hash

# Ring policy
MIN_FORCE_CLOSE_PARTICIPANTS = 2
SOMEWHAT_PRIVATE_MAX_DEPOSITS = 3

# Revert reasons emitted by the contract
REASON_SIGNATURE_USED = "Signature has been used!"
REASON_INVALID_SIGNATURE = "Invalid signature"
REASON_POOL_NOT_CLOSED = "Pool isn't closed"
REASON_POOL_DRAINED = "All ETH from current pool"

DEFAULT_EXPLORER_URL = "https://ropsten.etherscan.io/tx/"

_ENV_PREFIX = "HEI_"
_TRUTHY = ("true", "1", "yes")


@dataclass
class ClientConfig:
    """Runtime settings for talking to the ledger and the relayer."""

    rpc_url: str = "http://localhost:8545"
    contract_address: str = ""
    account_address: str = ""

    # Submission
    use_relayer: bool = False
    relayer_url: Optional[str] = None

    # Timeouts (seconds)
    request_timeout: float = 30.0
    receipt_poll_interval: float = 1.0
    receipt_timeout: float = 300.0

    explorer_url: str = DEFAULT_EXPLORER_URL

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from ``HEI_*`` environment variables."""
        config = cls()
        config._update(
            {
                f.name: os.environ[_ENV_PREFIX + f.name.upper()]
                for f in fields(cls)
                if _ENV_PREFIX + f.name.upper() in os.environ
            }
        )
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ClientConfig":
        """Load a YAML mapping on top of the environment configuration."""
        data = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        config = cls.from_env()
        config._update(data)
        return config

    def _update(self, values: Dict[str, Any]) -> None:
        known = {f.name: f for f in fields(self)}
        for name, raw in values.items():
            if name not in known:
                raise ValueError(f"unknown config key: {name}")
            setattr(self, name, _coerce(getattr(self, name), raw))


def _coerce(current: Any, raw: Any) -> Any:
    if raw is None or not isinstance(raw, str):
        return raw
    if isinstance(current, bool):
        return raw.lower() in _TRUTHY
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, int):
        return int(raw)
    return raw
