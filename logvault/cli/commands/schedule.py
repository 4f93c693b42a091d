"""Schedule command - run a single scheduler tick."""

import asyncio

import cyclopts

from logvault.application.di import create_container
from logvault.cli.console import get_console
from logvault.cli.util import prepare
from logvault.config import Config
from logvault.domain.archive.schedule import ZoneScheduler
from logvault.util.di.scope import Scope

app = cyclopts.App(name="schedule", help="Run the zone scheduler once")


@app.default
def schedule(config_file: str | None = None) -> None:
    """Enqueue pulls for due sources and expiries for every tenant, then exit.

    Args:
        config_file: YAML config file (defaults to LOGVAULT_CONFIG_FILE).
    """
    config = prepare(config_file)
    pulls, expiries = asyncio.run(run_tick(config))
    get_console().success(f"Enqueued {pulls} pulls and {expiries} expiries")


async def run_tick(config: Config) -> tuple[int, int]:
    container = create_container(config)
    try:
        async with container(scope=Scope.UOW) as scope:
            scheduler = await scope.get(ZoneScheduler)
            return await scheduler.tick()
    finally:
        await container.close()
