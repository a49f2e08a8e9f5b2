"""
Ledgerline Contract Engine — Application Service
================================================
One handler per contract command, all on the shared
apply-with-precondition primitive (core.ledger.handler).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping

from core.ledger.handler import (
    CommandHandler,
    CreationHandler,
    LedgerRuntime,
    declare_machine_events,
)
from core.ledger.snapshot import SYSTEM_ACTOR, EntitySnapshot
from core.time.temporal import add_months
from engines.contract import policies
from engines.contract.commands import (
    AcceptNewTermsRequest,
    ApplyManualCreditRequest,
    ArchiveContractRequest,
    ConfirmActivationRequest,
    ConfirmProviderTerminationRequest,
    CorrectContractAttributeRequest,
    ExpireContractRequest,
    InitiateUserCancellationRequest,
    RegisterPendingContractRequest,
    ReportActivationFailureRequest,
    ReportPriceIncreaseRequest,
    ReportTerminationFailureRequest,
)
from engines.contract.machine import CONTRACT_MACHINE
from engines.contract.terms import cancellation_deadline, current_term_end, flag, money


# ── Mutators: (snapshot, request, now) -> attribute updates ───

def _activated(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    updates: Dict[str, Any] = {"activated_on": request.activation_date}
    if request.provider_reference:
        updates["provider_reference"] = request.provider_reference
    return updates


def _errored(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {"error_reason": request.reason, "errored_on": now.date()}


def _terminated(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {"terminated_on": request.termination_date}


def _expired(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {"expired_on": request.expired_on}


def _archived(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {"archived_on": now.date()}


def _price_increase_reported(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {
        "pending_monthly_fee": request.new_monthly_fee,
        "price_change_effective_on": request.effective_date,
    }


def _terms_accepted(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {
        "monthly_fee": snapshot.attribute("pending_monthly_fee"),
        "monthly_fee_effective_on": snapshot.attribute("price_change_effective_on"),
        "pending_monthly_fee": None,
        "price_change_effective_on": None,
        "terms_accepted_on": request.accepted_on,
    }


def _corrected(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {request.attribute: request.new_value}


def _credited(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    balance = money(snapshot.attributes, "credit_balance") or Decimal("0")
    return {"credit_balance": balance + request.amount}


def _price_increase_context(request, attributes: Mapping[str, Any]) -> dict:
    return {
        "user_id": attributes.get("user_id"),
        "provider_id": attributes.get("provider_id"),
        "current_monthly_fee": attributes.get("monthly_fee"),
        "new_monthly_fee": request.new_monthly_fee,
        "effective_date": request.effective_date,
    }


class ContractService:
    """
    Usage:
        contracts = ContractService(runtime)
        contracts.register_pending_contract(RegisterPendingContractRequest(...), trace_id=t)
        contracts.confirm_activation(ConfirmActivationRequest(...), trace_id=t)
    """

    def __init__(self, runtime: LedgerRuntime, *, default_notice_days: int = 30):
        declare_machine_events(runtime.contracts, CONTRACT_MACHINE)
        self._default_notice_days = default_notice_days
        machine = CONTRACT_MACHINE

        self._register = CreationHandler(
            runtime, machine, initial_attributes=self._initial_attributes
        )
        self._handlers: Dict[str, CommandHandler] = {
            "ConfirmActivation": CommandHandler(
                runtime, machine, "ConfirmActivation", mutate=_activated),
            "ReportActivationFailure": CommandHandler(
                runtime, machine, "ReportActivationFailure", mutate=_errored),
            "InitiateUserCancellation": CommandHandler(
                runtime, machine, "InitiateUserCancellation", mutate=self._cancellation_requested),
            "ConfirmProviderTermination": CommandHandler(
                runtime, machine, "ConfirmProviderTermination",
                validate=policies.termination_not_before_activation, mutate=_terminated),
            "ReportTerminationFailure": CommandHandler(
                runtime, machine, "ReportTerminationFailure", mutate=_errored),
            "ExpireContract": CommandHandler(
                runtime, machine, "ExpireContract",
                validate=policies.expiry_not_before_activation, mutate=_expired),
            "ArchiveContract": CommandHandler(
                runtime, machine, "ArchiveContract", mutate=_archived),
            "ReportPriceIncrease": CommandHandler(
                runtime, machine, "ReportPriceIncrease",
                validate=policies.price_must_increase, mutate=_price_increase_reported,
                context=_price_increase_context),
            "AcceptNewTerms": CommandHandler(
                runtime, machine, "AcceptNewTerms",
                validate=policies.pending_price_change_required, mutate=_terms_accepted),
            "CorrectContractAttribute": CommandHandler(
                runtime, machine, "CorrectContractAttribute",
                validate=policies.correction_must_match_stored_value, mutate=_corrected),
            "ApplyManualCredit": CommandHandler(
                runtime, machine, "ApplyManualCredit", mutate=_credited),
        }

    def _initial_attributes(self, request: RegisterPendingContractRequest, now: datetime) -> dict:
        attributes = request.to_payload()
        attributes.pop("entity_id")
        if attributes["notice_period_days"] is None:
            attributes["notice_period_days"] = self._default_notice_days
        attributes["credit_balance"] = Decimal("0")
        return attributes

    def _cancellation_requested(self, snapshot: EntitySnapshot, request, now: datetime) -> dict:
        terms = snapshot.attributes
        requested_on = request.requested_on
        end = current_term_end(terms, requested_on)
        deadline = cancellation_deadline(terms, requested_on, self._default_notice_days)
        if end is not None and deadline is not None and requested_on > deadline \
                and flag(terms, "auto_renew"):
            # Missed the notice deadline: the contract runs one more term.
            end = add_months(end, int(terms.get("renewal_term_months") or 12))
        return {
            "cancellation_requested_on": requested_on,
            "cancellation_reason": request.reason,
            "expected_end_date": end,
        }

    # ── Generic entry point ───────────────────────────────────

    @property
    def command_names(self) -> tuple[str, ...]:
        return (self._register.command_name,) + tuple(self._handlers)

    def handle(self, command_name: str, request, *, trace_id: str,
               actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        if command_name == self._register.command_name:
            return self._register(request, trace_id=trace_id, actor_id=actor_id)
        try:
            handler = self._handlers[command_name]
        except KeyError:
            raise ValueError(f"Unknown contract command '{command_name}'.") from None
        return handler(request, trace_id=trace_id, actor_id=actor_id)

    # ── Named commands ────────────────────────────────────────

    def register_pending_contract(self, request: RegisterPendingContractRequest, *,
                                  trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self._register(request, trace_id=trace_id, actor_id=actor_id)

    def confirm_activation(self, request: ConfirmActivationRequest, *,
                           trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("ConfirmActivation", request, trace_id=trace_id, actor_id=actor_id)

    def report_activation_failure(self, request: ReportActivationFailureRequest, *,
                                  trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("ReportActivationFailure", request, trace_id=trace_id,
                           actor_id=actor_id)

    def initiate_user_cancellation(self, request: InitiateUserCancellationRequest, *,
                                   trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("InitiateUserCancellation", request, trace_id=trace_id,
                           actor_id=actor_id)

    def confirm_provider_termination(self, request: ConfirmProviderTerminationRequest, *,
                                     trace_id: str,
                                     actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("ConfirmProviderTermination", request, trace_id=trace_id,
                           actor_id=actor_id)

    def report_termination_failure(self, request: ReportTerminationFailureRequest, *,
                                   trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("ReportTerminationFailure", request, trace_id=trace_id,
                           actor_id=actor_id)

    def expire_contract(self, request: ExpireContractRequest, *,
                        trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("ExpireContract", request, trace_id=trace_id, actor_id=actor_id)

    def archive_contract(self, request: ArchiveContractRequest, *,
                         trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("ArchiveContract", request, trace_id=trace_id, actor_id=actor_id)

    def report_price_increase(self, request: ReportPriceIncreaseRequest, *,
                              trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("ReportPriceIncrease", request, trace_id=trace_id, actor_id=actor_id)

    def accept_new_terms(self, request: AcceptNewTermsRequest, *,
                         trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("AcceptNewTerms", request, trace_id=trace_id, actor_id=actor_id)

    def correct_contract_attribute(self, request: CorrectContractAttributeRequest, *,
                                   trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("CorrectContractAttribute", request, trace_id=trace_id,
                           actor_id=actor_id)

    def apply_manual_credit(self, request: ApplyManualCreditRequest, *,
                            trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("ApplyManualCredit", request, trace_id=trace_id, actor_id=actor_id)
