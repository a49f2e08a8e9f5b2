"""
Ledgerline Bootstrap — Platform Wiring
======================================
Builds every component from one PlatformSettings instance, then
runs the startup self-check. Nothing is wired lazily: if
build_platform() returns, the dispatcher can serve requests.

Order matters:
1. Ledger runtime (repository, event contracts, emitter, clock)
2. Engine services (each declares its event contracts)
3. Query side (computed properties, timeline projectors)
4. Dispatcher (strategies, manifests, targets)
5. Self-check
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Optional

from core.bootstrap.self_check import run_bootstrap_checks
from core.config.platform import PlatformSettings
from core.dispatch.dispatcher import ProcessDispatcher
from core.dispatch.resolver import ManifestSource, StrategyResolver
from core.dispatch.targets import TargetRegistry
from core.events.contracts import EventContractRegistry
from core.events.emitter import CompletionTriggerEmitter, EventEmitter
from core.events.monitor import DeliveryMonitor
from core.events.reconciliation import EventReconciler
from core.events.sinks import EventSink, NullEventSink, WebhookEventSink
from core.ledger.handler import LedgerRuntime
from core.ledger.queries import ComputedPropertyRegistry, LedgerQueries
from core.ledger.repository import EntityRepository, InMemoryEntityRepository
from core.manifest.store import (
    ManifestSnapshot,
    RefreshableManifestStore,
    StaticManifestStore,
    yaml_directory_loader,
)
from core.strategies.bandit import BanditCounterStore
from core.strategies.registry import StrategyRegistry, build_default_registry
from core.time.clock import Clock, SystemClock
from engines.contract.machine import CONTRACT
from engines.contract.projections import ContractTimelineProjector, register_contract_properties
from engines.contract.services import ContractService
from engines.processes.lifecycle_management import (
    PriceIncreaseHandling,
    register_lifecycle_targets,
)
from engines.reference.services import ReferenceService
from engines.task.projections import register_task_properties
from engines.task.services import TaskService

logger = logging.getLogger("ledgerline.bootstrap")


@dataclass
class Platform:
    settings: PlatformSettings
    repository: EntityRepository
    event_contracts: EventContractRegistry
    delivery_monitor: DeliveryMonitor
    emitter: EventEmitter
    trigger_emitter: CompletionTriggerEmitter
    runtime: LedgerRuntime
    contract_service: ContractService
    task_service: TaskService
    reference_service: ReferenceService
    computed: ComputedPropertyRegistry
    queries: LedgerQueries
    reconciler: EventReconciler
    strategies: StrategyRegistry
    targets: TargetRegistry
    manifests: ManifestSource
    resolver: StrategyResolver
    dispatcher: ProcessDispatcher


def _sink_for(url: Optional[str], channel: str) -> EventSink:
    if url:
        return WebhookEventSink(url)
    logger.warning(f"No {channel} URL configured; {channel} messages will be discarded.")
    return NullEventSink()


def _manifest_source(settings: PlatformSettings) -> ManifestSource:
    if settings.manifest_dir:
        return RefreshableManifestStore(yaml_directory_loader(settings.manifest_dir))
    logger.warning("No manifest directory configured; no processes will be dispatchable.")
    return StaticManifestStore(ManifestSnapshot.build(()))


def build_platform(
    settings: Optional[PlatformSettings] = None,
    *,
    repository: Optional[EntityRepository] = None,
    clock: Optional[Clock] = None,
    event_sink: Optional[EventSink] = None,
    trigger_sink: Optional[EventSink] = None,
    manifests: Optional[ManifestSource] = None,
    counter_store: Optional[BanditCounterStore] = None,
    executor: Optional[Executor] = None,
    check_persistence: bool = False,
) -> Platform:
    """
    Explicit arguments override what settings would build; tests pass
    in-memory sinks and a FixedClock, deployments pass nothing.
    """
    settings = settings or PlatformSettings()
    repository = repository if repository is not None else InMemoryEntityRepository()
    clock = clock or SystemClock()

    # ── Ledger runtime ────────────────────────────────────────
    event_contracts = EventContractRegistry()
    delivery_monitor = DeliveryMonitor(
        name="events",
        failure_threshold=settings.delivery_failure_alert_threshold,
        window_size=settings.delivery_window_size,
        min_samples=settings.delivery_min_samples,
    )
    emitter = EventEmitter(
        event_sink if event_sink is not None else _sink_for(settings.event_sink_url, "event sink"),
        timeout=settings.event_sink_timeout_seconds,
        monitor=delivery_monitor,
        executor=executor,
    )
    trigger_emitter = CompletionTriggerEmitter(
        trigger_sink if trigger_sink is not None
        else _sink_for(settings.task_trigger_url, "task trigger"),
        timeout=settings.task_trigger_timeout_seconds,
        monitor=DeliveryMonitor(
            name="task_triggers",
            failure_threshold=settings.delivery_failure_alert_threshold,
            window_size=settings.delivery_window_size,
            min_samples=settings.delivery_min_samples,
        ),
        executor=executor,
    )
    runtime = LedgerRuntime(
        repository=repository,
        contracts=event_contracts,
        emitter=emitter,
        clock=clock,
        max_attempts=settings.command_max_attempts,
    )

    # ── Engines ───────────────────────────────────────────────
    contract_service = ContractService(runtime, default_notice_days=settings.default_notice_days)
    task_service = TaskService(
        runtime,
        allow_direct_completion=settings.task_allow_direct_completion,
        completion_trigger=trigger_emitter,
    )
    reference_service = ReferenceService(runtime)

    # ── Queries ───────────────────────────────────────────────
    computed = ComputedPropertyRegistry()
    register_contract_properties(
        computed,
        cancellation_window_days=settings.cancellation_window_days,
        default_notice_days=settings.default_notice_days,
    )
    register_task_properties(computed)
    queries = LedgerQueries(
        repository,
        clock,
        computed=computed,
        projectors={
            CONTRACT: ContractTimelineProjector(
                renewal_horizon=settings.renewal_horizon,
                default_notice_days=settings.default_notice_days,
            ),
        },
    )
    reconciler = EventReconciler(
        repository, event_contracts, emitter=emitter, event_source=runtime.event_source
    )

    # ── Dispatcher ────────────────────────────────────────────
    strategies = build_default_registry(counter_store)
    targets = TargetRegistry()
    register_lifecycle_targets(
        targets,
        PriceIncreaseHandling(
            contract_service,
            task_service,
            clock,
            default_notice_days=settings.default_notice_days,
        ),
    )
    manifests = manifests if manifests is not None else _manifest_source(settings)
    resolver = StrategyResolver(manifests, strategies)
    dispatcher = ProcessDispatcher(resolver, targets)

    run_bootstrap_checks(
        manifests.current(), strategies, targets, check_persistence=check_persistence
    )
    logger.info(
        f"Ledgerline platform ready: {len(manifests.current().process_names())} processes, "
        f"{len(targets.addresses())} targets"
    )

    return Platform(
        settings=settings,
        repository=repository,
        event_contracts=event_contracts,
        delivery_monitor=delivery_monitor,
        emitter=emitter,
        trigger_emitter=trigger_emitter,
        runtime=runtime,
        contract_service=contract_service,
        task_service=task_service,
        reference_service=reference_service,
        computed=computed,
        queries=queries,
        reconciler=reconciler,
        strategies=strategies,
        targets=targets,
        manifests=manifests,
        resolver=resolver,
        dispatcher=dispatcher,
    )
