"""Main CLI application using Cyclopts."""

import cyclopts

from logvault import __version__
from logvault.cli.commands import audit, migrate, schedule, worker

app = cyclopts.App(
    name="logvault",
    help="LogVault - compliance archiver for edge logs",
    version=__version__,
)

app.command(worker.app, name="worker")
app.command(schedule.app, name="schedule")
app.command(audit.app, name="audit-chain")
app.command(migrate.app, name="migrate")


def main() -> None:
    app()
