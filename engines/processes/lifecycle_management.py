"""
Ledgerline Processes — Lifecycle Management
===========================================
Execution targets for lifecycle_management/handle-price-increase.

Both variants record the provider's price increase on the contract
and open a follow-up task. They differ in who picks the task up:

    v1  review task left OPEN for a human, priority HIGH
    v2  task assigned straight to the switching agent (AI), due on
        the contract's cancellation deadline

Which variant runs is manifest data; nothing here knows about
rollout percentages.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Mapping

from core.dispatch.targets import TargetRegistry
from core.ledger.snapshot import EntitySnapshot
from core.time.clock import Clock
from engines.contract.commands import ReportPriceIncreaseRequest
from engines.contract.machine import CONTRACT
from engines.contract.services import ContractService
from engines.contract.terms import cancellation_deadline
from engines.task.commands import AssignTaskRequest, CreateTaskRequest
from engines.task.services import TaskService

PROCESS_NAME = "lifecycle_management/handle-price-increase"

TARGET_PRICE_INCREASE_V1 = "lifecycle_management.handle_price_increase.v1"
TARGET_PRICE_INCREASE_V2 = "lifecycle_management.handle_price_increase.v2"

SWITCHING_AGENT_ID = "switching-agent"


class PriceIncreaseHandling:
    def __init__(
        self,
        contracts: ContractService,
        tasks: TaskService,
        clock: Clock,
        *,
        default_notice_days: int = 30,
    ):
        self._contracts = contracts
        self._tasks = tasks
        self._clock = clock
        self._default_notice_days = default_notice_days

    def _record_increase(self, input_args: Mapping[str, Any], trace_id: str) -> EntitySnapshot:
        request = ReportPriceIncreaseRequest(
            entity_id=input_args["contract_id"],
            new_monthly_fee=Decimal(str(input_args["new_monthly_fee"])),
            effective_date=date.fromisoformat(input_args["effective_date"]),
            source=input_args.get("source"),
        )
        return self._contracts.report_price_increase(request, trace_id=trace_id)

    def _task_request(
        self, contract: EntitySnapshot, variant_id: str, trace_id: str, **overrides
    ) -> CreateTaskRequest:
        fields = {
            "entity_id": f"price-increase:{contract.entity_id}:{trace_id}",
            "title": f"Review price increase on contract {contract.entity_id}",
            "description": (
                f"Monthly fee rises from {contract.attribute('monthly_fee')} to "
                f"{contract.attribute('pending_monthly_fee')} on "
                f"{contract.attribute('price_change_effective_on')}."
            ),
            "priority": "HIGH",
            "context": {
                "entity_refs": [{"entity_type": CONTRACT, "entity_id": contract.entity_id}],
                "process": {
                    "process_name": PROCESS_NAME,
                    "variant_id": variant_id,
                    "trace_id": trace_id,
                },
            },
        }
        fields.update(overrides)
        return CreateTaskRequest(**fields)

    def v1(self, input_args: Mapping[str, Any], trace_id: str) -> dict:
        contract = self._record_increase(input_args, trace_id)
        task = self._tasks.create_task(
            self._task_request(contract, "v1", trace_id), trace_id=trace_id
        )
        return {
            "variant": "v1",
            "contract": contract.to_dict(include_history=False),
            "task_id": task.entity_id,
            "task_status": task.status,
        }

    def v2(self, input_args: Mapping[str, Any], trace_id: str) -> dict:
        contract = self._record_increase(input_args, trace_id)
        deadline = cancellation_deadline(
            contract.attributes, self._clock.now_utc().date(), self._default_notice_days
        )
        request = self._task_request(
            contract, "v2", trace_id,
            title=f"Find a better offer for contract {contract.entity_id}",
            due_date=deadline,
        )
        task = self._tasks.create_task(request, trace_id=trace_id)
        task = self._tasks.assign_task(
            AssignTaskRequest(
                entity_id=task.entity_id,
                assignee_type="AI",
                assignee_id=SWITCHING_AGENT_ID,
            ),
            trace_id=trace_id,
        )
        return {
            "variant": "v2",
            "contract": contract.to_dict(include_history=False),
            "task_id": task.entity_id,
            "task_status": task.status,
        }


def register_lifecycle_targets(targets: TargetRegistry, handling: PriceIncreaseHandling) -> None:
    targets.register(TARGET_PRICE_INCREASE_V1, handling.v1)
    targets.register(TARGET_PRICE_INCREASE_V2, handling.v2)
