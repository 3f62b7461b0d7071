"""
run_alerts_cycle.py

Cron / manual entry point for the daily alert job.

  python run_alerts_cycle.py all
  python run_alerts_cycle.py user <user-id> [--force]
"""

import asyncio
import json
import sys

import click
from loguru import logger

from services.alert_service import build_default_job, run_all_alerts_cycle


@click.group()
def cli() -> None:
    """Daily flight alert job."""


@cli.command()
@click.argument("user_id")
@click.option("--force", is_flag=True, help="Send even if the user already got today's email")
def user(user_id: str, force: bool) -> None:
    """Run the daily digest for one user."""
    try:
        result = asyncio.run(build_default_job().run_for_user(user_id, force_send=force))
    except Exception as e:
        logger.exception(f"[alerts] daily run for {user_id} failed: {e}")
        sys.exit(1)
    click.echo(json.dumps(result.to_dict(), indent=2))
    if result.status == "failed":
        sys.exit(1)


@cli.command(name="all")
def run_all() -> None:
    """Run the daily digest for every user with active daily alerts."""
    try:
        results = asyncio.run(run_all_alerts_cycle())
    except Exception as e:
        logger.exception(f"[alerts] alerts cycle failed: {e}")
        sys.exit(1)
    sent = sum(1 for r in results if r.status == "sent")
    click.echo(f"users={len(results)} sent={sent}")


if __name__ == "__main__":
    cli()
