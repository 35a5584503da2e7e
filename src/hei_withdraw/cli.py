"""Command line entry point: ``hei-withdraw``."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional, TypeVar

import click

from .config import ClientConfig
from .crypto.altbn128 import AltBn128Backend
from .dispatch import HttpRelayer, NullRelayer, SubmissionDispatcher
from .display import describe, describe_ring
from .errors import WithdrawalError
from .ledger import JsonRpcLedger
from .types import WithdrawalAttempt, WithdrawalState
from .workflow import WithdrawalWorkflow

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

T = TypeVar("T")

_SUCCESS = frozenset({WithdrawalState.WITHDRAWN, WithdrawalState.SUCCESS_CLOSE_RING})


def _load_config(
    config_path: Optional[str],
    rpc_url: Optional[str],
    contract: Optional[str],
    address: Optional[str],
    use_relayer: Optional[bool],
    relayer_url: Optional[str],
) -> ClientConfig:
    # Load config from file or environment, then override with CLI args
    config = ClientConfig.from_yaml(config_path) if config_path else ClientConfig.from_env()

    if rpc_url:
        config.rpc_url = rpc_url
    if contract:
        config.contract_address = contract
    if address:
        config.account_address = address
    if use_relayer is not None:
        config.use_relayer = use_relayer
    if relayer_url:
        config.relayer_url = relayer_url

    if not config.contract_address:
        raise click.UsageError("no contract address (use --contract or HEI_CONTRACT_ADDRESS)")
    if not config.account_address:
        raise click.UsageError("no account address (use --address or HEI_ACCOUNT_ADDRESS)")
    return config


def _run(config: ClientConfig, action: Callable[[WithdrawalWorkflow], Awaitable[T]]) -> T:
    async def run() -> T:
        async with JsonRpcLedger(config) as ledger:
            relayer = (
                HttpRelayer(config.relayer_url, timeout=config.request_timeout)
                if config.relayer_url
                else NullRelayer()
            )
            dispatcher = SubmissionDispatcher(ledger, relayer, use_relayer=config.use_relayer)
            workflow = WithdrawalWorkflow(
                ledger, AltBn128Backend(), dispatcher, config.account_address
            )
            return await action(workflow)

    return asyncio.run(run())


def _finish(config: ClientConfig, attempt: WithdrawalAttempt) -> None:
    click.echo(describe(attempt, config.account_address, config.explorer_url))
    sys.exit(0 if attempt.state in _SUCCESS else 1)


@click.group()
@click.option("--config", "config_path", default=None, help="YAML config file")
@click.option("--rpc-url", default=None, help="Ethereum JSON-RPC endpoint URL")
@click.option("--contract", default=None, help="Heiswap contract address")
@click.option("--address", default=None, help="Account that signs and receives the withdrawal")
@click.option(
    "--use-relayer/--direct",
    default=None,
    help="Submit through the relayer instead of broadcasting directly",
)
@click.option("--relayer-url", default=None, help="Relayer endpoint URL")
@click.option("--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Optional[str],
    rpc_url: Optional[str],
    contract: Optional[str],
    address: Optional[str],
    use_relayer: Optional[bool],
    relayer_url: Optional[str],
    verbose: bool,
) -> None:
    """Withdraw ETH from a Heiswap pool with a Hei token."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    ctx.obj = _load_config(config_path, rpc_url, contract, address, use_relayer, relayer_url)


@main.command()
@click.argument("token")
@click.pass_obj
def withdraw(config: ClientConfig, token: str) -> None:
    """Withdraw the deposit behind TOKEN."""
    _finish(config, _run(config, lambda wf: wf.withdraw(token)))


@main.command("close-ring")
@click.argument("token")
@click.pass_obj
def close_ring(config: ClientConfig, token: str) -> None:
    """Force close the ring TOKEN belongs to."""
    _finish(config, _run(config, lambda wf: wf.force_close(token)))


@main.command()
@click.argument("token")
@click.pass_obj
def status(config: ClientConfig, token: str) -> None:
    """Show whether the ring behind TOKEN can be withdrawn from."""
    try:
        ring = _run(config, lambda wf: wf.status(token))
    except WithdrawalError as e:
        logger.error(f"Status failed: {e}")
        click.echo(describe(WithdrawalAttempt(state=e.state, diagnostic=e.message)))
        sys.exit(1)
    click.echo(describe_ring(ring))


if __name__ == "__main__":
    main()
