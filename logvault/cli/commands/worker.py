"""Worker command - run the task workers and the zone scheduler."""

import asyncio
import logging
import signal

import cyclopts
import logfire

from logvault.application.di import create_container
from logvault.cli.console import get_console
from logvault.cli.util import prepare
from logvault.config import Config
from logvault.infrastructure.event.worker import WorkerPool

logger = logging.getLogger(__name__)

app = cyclopts.App(name="worker", help="Run task workers and the scheduler")


@app.default
def worker(config_file: str | None = None, drain_timeout: float = 30.0) -> None:
    """Run the worker pool until interrupted (SIGINT/SIGTERM).

    Args:
        config_file: YAML config file (defaults to LOGVAULT_CONFIG_FILE).
        drain_timeout: Seconds to let in-flight tasks finish on shutdown.
    """
    config = prepare(config_file)
    logfire.instrument_httpx()

    console = get_console()
    console.info(f"Data directory: {config.data_dir.expanduser()}")
    asyncio.run(run_worker(config, drain_timeout=drain_timeout))
    console.success("Worker stopped")


async def run_worker(config: Config, *, drain_timeout: float = 30.0) -> None:
    container = create_container(config)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        pool = await container.get(WorkerPool)
        await pool.start()
        try:
            await stop.wait()
            logger.info("Shutdown requested, draining workers")
        finally:
            await pool.stop(timeout=drain_timeout)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await container.close()
