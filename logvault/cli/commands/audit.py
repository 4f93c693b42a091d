"""Audit command - recompute a source's integrity chain."""

import asyncio
import sys
from uuid import UUID

import cyclopts

from logvault.application.di import create_container
from logvault.cli.console import get_console
from logvault.cli.util import prepare
from logvault.config import Config
from logvault.domain.archive.chain import ChainAudit
from logvault.domain.archive.service import ArchiveService
from logvault.domain.shared.model.value import SourceId
from logvault.util.di.scope import Scope

app = cyclopts.App(name="audit-chain", help="Verify a source's hash chain")


@app.default
def audit_chain(source_id: UUID, config_file: str | None = None) -> None:
    """Recompute every link of a source's chain from stored digests.

    Exits non-zero if a link does not match.

    Args:
        source_id: Source whose chain to audit.
        config_file: YAML config file (defaults to LOGVAULT_CONFIG_FILE).
    """
    config = prepare(config_file)
    audit = asyncio.run(run_audit(config, SourceId(source_id)))
    get_console().chain_audit(source_id, audit)
    if not audit.ok:
        sys.exit(1)


async def run_audit(config: Config, source_id: SourceId) -> ChainAudit:
    container = create_container(config)
    try:
        async with container(scope=Scope.UOW) as scope:
            service = await scope.get(ArchiveService)
            return await service.audit_chain(source_id)
    finally:
        await container.close()
