import asyncio
import logging
from collections.abc import Sequence
from typing import Optional

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from wrapper_relayer.app.config import RelayerConfig, load_config
from wrapper_relayer.app.domain.errors import ConfigurationError
from wrapper_relayer.app.domain.models import EventAttempt
from wrapper_relayer.app.infrastructure.db.migrations import upgrade_to_head
from wrapper_relayer.app.interface.tasks import (
    relayer_status_task,
    retry_stuck_task,
    run_relayer_task,
)


load_dotenv()

logger = logging.getLogger("wrapper_relayer")

app = typer.Typer()
relayer_app = typer.Typer(help="cli for the ethscription wrapper relayer.")
app.add_typer(relayer_app, name="relayer")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def _config_or_exit() -> RelayerConfig:
    try:
        return load_config()
    except ConfigurationError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1)


@relayer_app.command("run")
def run(
    max_cycles: Optional[int] = typer.Option(None, "--max-cycles", help="Stop after N poll cycles."),
    skip_migrations: bool = typer.Option(False, "--skip-migrations"),
) -> None:
    """Start the relay loop."""
    config = _config_or_exit()
    if not skip_migrations:
        upgrade_to_head(config)
    try:
        asyncio.run(run_relayer_task(config=config, max_cycles=max_cycles))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1)


@relayer_app.command("migrate")
def migrate() -> None:
    """Apply database migrations."""
    upgrade_to_head(_config_or_exit())


@relayer_app.command("status")
def status() -> None:
    """Show cursors, processed counts and stuck events."""
    config = _config_or_exit()
    report = asyncio.run(relayer_status_task(config=config))

    for chain, block in report.cursors.items():
        typer.echo(f"{chain.value:<9} cursor={block} processed={report.processed.get(chain, 0)}")

    if not report.stuck:
        typer.echo("no stuck events")
        return

    typer.echo(f"{len(report.stuck)} stuck event(s):")
    for a in report.stuck:
        typer.echo(
            f"  {a.chain.value} block={a.block_number} tx={a.tx_hash} log={a.log_index} "
            f"{a.event_type.value} id={a.ethscription_id} attempts={a.attempts} error={a.last_error}"
        )


def _pick_stuck(stuck: Sequence[EventAttempt]) -> Sequence[EventAttempt]:
    return inquirer.checkbox(
        message="Select stuck events to retry:",
        choices=[
            {
                "name": f"{a.chain.value} #{a.block_number} {a.event_type.value} {a.ethscription_id} ({a.attempts} attempts)",
                "value": a,
            }
            for a in stuck
        ],
        pointer="❯",
        instruction="Space to toggle, Enter to confirm",
    ).execute()


@relayer_app.command("retry-stuck")
def retry_stuck(
    retry_all: bool = typer.Option(False, "--all", help="Retry every stuck event without prompting."),
) -> None:
    """Give stuck events one more try."""
    config = _config_or_exit()

    chosen: Optional[Sequence[EventAttempt]] = None
    if not retry_all:
        # InquirerPy starts its own event loop
        stuck = asyncio.run(relayer_status_task(config=config)).stuck
        if not stuck:
            typer.echo("nothing to retry")
            return
        chosen = _pick_stuck(stuck)
        if not chosen:
            typer.echo("nothing selected")
            return

    outcomes = asyncio.run(retry_stuck_task(config=config, attempts=chosen))
    summary = ", ".join(f"{o.value}={n}" for o, n in sorted(outcomes.items()))
    typer.echo(summary or "nothing to retry")


if __name__ == "__main__":
    LOGO = r"""
    Ethscriptions Wrapper Relayer
      appchain Deposited -> mainnet mint
      mainnet Burned     -> appchain withdraw
    """
    typer.echo(LOGO)
    app()
