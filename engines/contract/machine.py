"""
Ledgerline Contract Engine — State Machine
==========================================

    PENDING_ACTIVATION ──ConfirmActivation──────────► ACTIVE
    PENDING_ACTIVATION ──ReportActivationFailure────► ERRORED
    ACTIVE ──────────────InitiateUserCancellation───► CANCELLATION_PENDING
    CANCELLATION_PENDING ─ConfirmProviderTermination► TERMINATED
    CANCELLATION_PENDING ─ReportTerminationFailure──► ERRORED
    ACTIVE ──────────────ExpireContract─────────────► EXPIRED
    TERMINATED | EXPIRED ─ArchiveContract───────────► ARCHIVED

Status-preserving commands append history and emit, nothing else.
"""

from __future__ import annotations

from core.ledger.state_machine import EntityStateMachine, command, creation
from engines.contract import events as ev

CONTRACT = "Contract"

PENDING_ACTIVATION = "PENDING_ACTIVATION"
ACTIVE = "ACTIVE"
CANCELLATION_PENDING = "CANCELLATION_PENDING"
TERMINATED = "TERMINATED"
EXPIRED = "EXPIRED"
ERRORED = "ERRORED"
ARCHIVED = "ARCHIVED"

CONTRACT_STATES = frozenset({
    PENDING_ACTIVATION, ACTIVE, CANCELLATION_PENDING,
    TERMINATED, EXPIRED, ERRORED, ARCHIVED,
})


def _cmd(name, allowed_from, to_status, event_type):
    return command(name, allowed_from, to_status, event_type, ev.CONTEXT_KEYS[event_type])


CONTRACT_MACHINE = EntityStateMachine(
    entity_type=CONTRACT,
    states=CONTRACT_STATES,
    initial_status=PENDING_ACTIVATION,
    commands=(
        creation(
            "RegisterPendingContract", PENDING_ACTIVATION,
            ev.CONTRACT_REGISTERED_V1, ev.CONTEXT_KEYS[ev.CONTRACT_REGISTERED_V1],
        ),
        _cmd("ConfirmActivation", {PENDING_ACTIVATION}, ACTIVE, ev.CONTRACT_ACTIVATED_V1),
        _cmd("ReportActivationFailure", {PENDING_ACTIVATION}, ERRORED,
             ev.CONTRACT_ACTIVATION_FAILED_V1),
        _cmd("InitiateUserCancellation", {ACTIVE}, CANCELLATION_PENDING,
             ev.CONTRACT_CANCELLATION_INITIATED_V1),
        _cmd("ConfirmProviderTermination", {CANCELLATION_PENDING}, TERMINATED,
             ev.CONTRACT_TERMINATED_V1),
        _cmd("ReportTerminationFailure", {CANCELLATION_PENDING}, ERRORED,
             ev.CONTRACT_TERMINATION_FAILED_V1),
        _cmd("ExpireContract", {ACTIVE}, EXPIRED, ev.CONTRACT_EXPIRED_V1),
        _cmd("ArchiveContract", {TERMINATED, EXPIRED}, ARCHIVED, ev.CONTRACT_ARCHIVED_V1),
        # ── status-preserving ─────────────────────────────
        _cmd("ReportPriceIncrease", {ACTIVE, CANCELLATION_PENDING}, None,
             ev.CONTRACT_PRICE_INCREASE_REPORTED_V1),
        _cmd("AcceptNewTerms", {ACTIVE}, None, ev.CONTRACT_TERMS_ACCEPTED_V1),
        _cmd("CorrectContractAttribute",
             {PENDING_ACTIVATION, ACTIVE, CANCELLATION_PENDING, ERRORED}, None,
             ev.CONTRACT_ATTRIBUTE_CORRECTED_V1),
        _cmd("ApplyManualCredit", {ACTIVE, CANCELLATION_PENDING, TERMINATED, EXPIRED}, None,
             ev.CONTRACT_CREDIT_APPLIED_V1),
    ),
)
