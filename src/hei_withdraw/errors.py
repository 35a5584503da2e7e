"""Withdrawal client exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .types import WithdrawalState


@dataclass(frozen=True)
class WithdrawalError(Exception):
    """An expected outcome that ends the current attempt in ``state``."""

    state: WithdrawalState
    message: str

    def __str__(self) -> str:
        return f"{self.state.name}({int(self.state)}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(("__traceback__", "__context__", "__cause__"))
_frozen_setattr = WithdrawalError.__setattr__


def _withdrawal_error_setattr(self: WithdrawalError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


WithdrawalError.__setattr__ = _withdrawal_error_setattr  # type: ignore[method-assign]


class LedgerError(RuntimeError):
    """Raised by a ledger client when a query or broadcast fails.

    ``str()`` carries the node's reason text and any revert data so that
    submission failures can be classified by what the contract reported.
    """

    def __init__(self, message: str, data: Optional[Any] = None):
        self.message = message
        self.data = data
        super().__init__(message if data is None else f"{message}: {data}")


class SubmissionFailed(RuntimeError):
    """Direct broadcast failed; ``diagnostic`` is the raw reason text."""

    def __init__(self, diagnostic: str):
        self.diagnostic = diagnostic
        super().__init__(diagnostic)


def err(state: WithdrawalState, message: str) -> WithdrawalError:
    return WithdrawalError(state=state, message=message)
