"""Terminal output for the CLI, on top of rich.

Results go to stdout, failures to stderr.
"""

from collections.abc import Iterable
from typing import Any

from rich.console import Console as RichConsole
from rich.table import Table

from logvault.domain.archive.chain import ChainAudit


class Console:
    def __init__(self, *, force_terminal: bool | None = None) -> None:
        self._out = RichConsole(force_terminal=force_terminal)
        self._err = RichConsole(force_terminal=force_terminal, stderr=True)

    def success(self, message: str) -> None:
        self._out.print(f"[green]✓[/green] {message}")

    def error(self, message: str, *, hint: str | None = None) -> None:
        self._err.print(f"[red]✗[/red] {message}")
        if hint:
            self._err.print(f"  [dim]{hint}[/dim]")

    def info(self, message: str) -> None:
        self._out.print(f"[dim]{message}[/dim]")

    def status(self, message: str) -> Any:
        """Spinner context manager for blocking steps."""
        return self._out.status(message)

    def config_errors(self, errors: Iterable[dict[str, Any]]) -> None:
        """Report pydantic validation errors one field per line."""
        self.error("Invalid configuration")
        for err in errors:
            loc = ".".join(str(x) for x in err.get("loc", ())) or "config"
            self._err.print(f"  [dim]{loc}:[/dim] {err.get('msg', 'Unknown error')}")

    def chain_audit(self, source_id: object, audit: ChainAudit) -> None:
        """Summarise a chain audit; a broken chain gets a detail table on stderr."""
        if audit.ok:
            self.success(f"Chain of source {source_id} intact: {audit.checked} links checked")
            return

        self.error(f"Chain of source {source_id} broken after {audit.checked} good links")
        link = audit.broken_at
        if link is None:
            return
        table = Table(show_header=True, header_style="bold")
        table.add_column("job")
        table.add_column("digest")
        table.add_column("stored hash")
        table.add_column("expected hash")
        table.add_row(str(link.job_id), link.digest, link.chain_hash, audit.expected_hash or "")
        self._err.print(table)


_default: Console | None = None


def get_console() -> Console:
    global _default
    if _default is None:
        _default = Console()
    return _default
