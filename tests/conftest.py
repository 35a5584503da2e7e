"""Shared pytest fixtures: fake ledger, dispatcher and workflow builders."""

from __future__ import annotations

from typing import Callable, Optional

import pytest

from fakes import ADDRESS, CRYPTO, FakeLedger
from hei_withdraw.crypto.altbn128 import AltBn128Backend
from hei_withdraw.dispatch import Relayer, SubmissionDispatcher
from hei_withdraw.state_machine import WithdrawalStateMachine
from hei_withdraw.workflow import WithdrawalWorkflow


@pytest.fixture
def crypto() -> AltBn128Backend:
    return CRYPTO


@pytest.fixture
def make_workflow() -> Callable[..., WithdrawalWorkflow]:
    """Build a workflow around a ledger, submitting directly unless told otherwise."""

    def _make_workflow(
        ledger: FakeLedger,
        address: str = ADDRESS,
        relayer: Optional[Relayer] = None,
        use_relayer: bool = False,
        machine: Optional[WithdrawalStateMachine] = None,
    ) -> WithdrawalWorkflow:
        dispatcher = SubmissionDispatcher(ledger, relayer, use_relayer=use_relayer)
        return WithdrawalWorkflow(ledger, CRYPTO, dispatcher, address, machine=machine)

    return _make_workflow
