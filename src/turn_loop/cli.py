"""turn-loop CLI: Click group with a ``run`` subcommand."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import click

from responses_api.errors import FatalTransportError
from responses_api.items import MessageItem
from responses_api.transport import HttpTransport, Transport
from turn_loop import __version__
from turn_loop.collaborators import format_command
from turn_loop.config import AgentConfig
from turn_loop.orchestrator import AgentLoop
from turn_loop.retry import RetryPolicy
from turn_loop.turns import RunResult


logger = logging.getLogger(__name__)


def build_transport() -> Transport:
    return HttpTransport.from_env()


def _install_sigint(loop: asyncio.AbstractEventLoop, handler) -> bool:
    """Route Ctrl-C to *handler*. False when the loop cannot take signals."""
    try:
        loop.add_signal_handler(signal.SIGINT, handler)
    except (NotImplementedError, RuntimeError) as exc:
        logger.debug("SIGINT handler unavailable (%s); Ctrl-C will interrupt instead of cancelling", exc)
        return False
    return True


async def _run_once(agent: AgentLoop, prompt: str) -> RunResult:
    loop = asyncio.get_running_loop()
    installed = _install_sigint(loop, agent.cancel)
    try:
        return await agent.run([MessageItem.user(prompt)])
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


@click.group()
@click.version_option(version=__version__, prog_name="turn-loop")
def cli() -> None:
    """turn-loop - streaming, cancellable agent turns against the Responses API."""


@cli.command()
@click.argument("prompt")
@click.option("--model", default=None, help="Model name (default: $TURN_LOOP_MODEL)")
@click.option("--instructions", default=None, help="System instructions")
@click.option("--max-attempts", type=int, default=None, help="Attempt ceiling for transient failures")
@click.option("--verbose", "-v", is_flag=True, help="Log turn activity to stderr")
def run(
    prompt: str,
    model: str | None,
    instructions: str | None,
    max_attempts: int | None,
    verbose: bool,
) -> None:
    """Send PROMPT and print each item as it arrives. Ctrl-C cancels."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    retry = RetryPolicy(max_attempts=max_attempts) if max_attempts is not None else None
    config = AgentConfig.from_env(model=model, instructions=instructions, retry=retry)

    try:
        transport = build_transport()
    except FatalTransportError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    agent = AgentLoop(
        transport,
        config,
        on_item=lambda item: click.echo(format_command(item)),
    )

    try:
        result = asyncio.run(_run_once(agent, prompt))
    except FatalTransportError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"[{result.status.value}] response={result.response_id or '-'}", err=True)
