"""Composition root.

Builds the gateway components from a Config. Nothing here is a module-level
singleton: every server, CLI command and test builds its own Gateway.

Provides:
- Gateway: The wired component set
- build_gateway: Factory from configuration
"""

from dataclasses import dataclass

import structlog

from gateway.core.config import Config, load_config
from gateway.core.dispatcher import Dispatcher
from gateway.core.persistence.audit import AuditTrail
from gateway.core.proposals import (
    Clock,
    ExpirySweeper,
    JsonFileBackend,
    ProposalBackend,
    ProposalStore,
)
from gateway.core.safety.approval import ApprovalCoordinator
from gateway.core.safety.firewall import ContentScanner, PatternScanner
from gateway.core.safety.followup import FollowupScheduler
from gateway.tools.base import ToolRegistry
from gateway.tools.catalog import build_registry
from gateway.tools.client import CrmClient

logger = structlog.get_logger()


@dataclass
class Gateway:
    config: Config
    client: CrmClient
    registry: ToolRegistry
    store: ProposalStore
    sweeper: ExpirySweeper
    audit: AuditTrail
    coordinator: ApprovalCoordinator
    followup: FollowupScheduler
    dispatcher: Dispatcher

    def start(self) -> None:
        self.sweeper.start()

    async def close(self) -> None:
        await self.sweeper.stop()
        await self.client.close()
        await self.audit.close()


async def build_gateway(
    config: Config | None = None,
    *,
    client: CrmClient | None = None,
    registry: ToolRegistry | None = None,
    clock: Clock | None = None,
    backend: ProposalBackend | None = None,
    audit: AuditTrail | None = None,
    scanner: ContentScanner | None = None,
) -> Gateway:
    """Wire every component.

    Each keyword argument replaces the component that would otherwise be
    built from ``config``.
    """
    config = config or load_config()
    client = client or CrmClient.from_config(config)
    registry = registry or build_registry(client)
    if backend is None and config.proposal_store_path:
        backend = JsonFileBackend(config.proposal_store_path)
    audit = audit or await AuditTrail.open(config.audit_database_url)

    store = ProposalStore(ttl_seconds=config.proposal_ttl_seconds, backend=backend, clock=clock)
    coordinator = ApprovalCoordinator(store, registry, audit=audit, dry_run=config.dry_run)
    followup = FollowupScheduler(
        client,
        assignee=config.followup_assignee,
        contact_id=config.followup_contact_id,
        dry_run=config.dry_run,
        audit=audit,
    )
    dispatcher = Dispatcher(
        registry,
        coordinator,
        followup,
        scanner=scanner or PatternScanner(),
        dry_run=config.dry_run,
    )

    logger.info(
        "gateway_built",
        tools=len(registry.available()),
        ttl_seconds=config.proposal_ttl_seconds,
        persistent=backend is not None,
        audit_ledger=audit.session_factory is not None,
        dry_run=config.dry_run,
    )
    return Gateway(
        config=config,
        client=client,
        registry=registry,
        store=store,
        sweeper=ExpirySweeper(store),
        audit=audit,
        coordinator=coordinator,
        followup=followup,
        dispatcher=dispatcher,
    )
