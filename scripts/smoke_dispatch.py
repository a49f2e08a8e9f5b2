"""
Manual smoke runner for the Ledgerline dispatcher.

Builds an in-memory platform from the repository's manifests, registers
one active contract per user and dispatches the price-increase process
for each, printing which variant handled it.

Usage:
    python scripts/smoke_dispatch.py
    python scripts/smoke_dispatch.py --users 20 --manifest-dir manifests
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

from core.bootstrap import build_platform
from core.config import PlatformSettings
from core.dispatch.trace import new_trace_id
from core.events.sinks import InMemoryEventSink
from engines.contract.commands import ConfirmActivationRequest, RegisterPendingContractRequest

PROCESS_NAME = "lifecycle_management/handle-price-increase"


def _print_case(label: str, payload: dict) -> None:
    print(f"\n[{label}]")
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def run(manifest_dir: str, users: int) -> None:
    sink = InMemoryEventSink()
    platform = build_platform(
        PlatformSettings(manifest_dir=manifest_dir),
        event_sink=sink,
        trigger_sink=InMemoryEventSink(),
    )
    today = date.today()
    variants: dict[str, int] = {}

    for number in range(1, users + 1):
        user_id = f"user-{number}"
        contract_id = f"contract-{number}"
        trace_id = new_trace_id()
        platform.contract_service.register_pending_contract(
            RegisterPendingContractRequest(
                entity_id=contract_id,
                user_id=user_id,
                provider_id="provider-1",
                product_name="Green Power 12",
                monthly_fee=Decimal("39.90"),
                start_date=today - timedelta(days=200),
            ),
            trace_id=trace_id,
        )
        platform.contract_service.confirm_activation(
            ConfirmActivationRequest(entity_id=contract_id,
                                     activation_date=today - timedelta(days=200)),
            trace_id=trace_id,
        )
        result = platform.dispatcher.dispatch(
            PROCESS_NAME,
            caller_context={"user_id": user_id},
            input_args={
                "contract_id": contract_id,
                "new_monthly_fee": 44.5,
                "effective_date": (today + timedelta(days=45)).isoformat(),
            },
            trace_id=trace_id,
        )
        variants[result["variant"]] = variants.get(result["variant"], 0) + 1
        if number == 1:
            _print_case("first-dispatch", result)

    _print_case("variant-split", variants)
    _print_case(
        "delivery",
        {
            "events_delivered": len(sink.messages),
            "missing_after_reconciliation": len(
                platform.reconciler.reconcile(sink.delivered_ids()).missing
            ),
        },
    )


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--manifest-dir",
        default=str(Path(__file__).resolve().parent.parent / "manifests"),
        help="Directory of process manifests.",
    )
    parser.add_argument("--users", type=int, default=10, help="Number of users to route.")
    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)
    run(args.manifest_dir, args.users)


if __name__ == "__main__":
    main()
