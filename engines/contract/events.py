"""
Ledgerline Contract Engine — Event Types and Context Contracts
==============================================================
Engine: Contract (utility supply contracts)

Context keys are deliberately lean: identifiers and the handful of
values a downstream reactor needs to route without calling back.
"""

from __future__ import annotations

CONTRACT_REGISTERED_V1 = "contract.lifecycle.registered.v1"
CONTRACT_ACTIVATED_V1 = "contract.lifecycle.activated.v1"
CONTRACT_ACTIVATION_FAILED_V1 = "contract.activation.failed.v1"
CONTRACT_CANCELLATION_INITIATED_V1 = "contract.cancellation.initiated.v1"
CONTRACT_TERMINATED_V1 = "contract.lifecycle.terminated.v1"
CONTRACT_TERMINATION_FAILED_V1 = "contract.termination.failed.v1"
CONTRACT_EXPIRED_V1 = "contract.lifecycle.expired.v1"
CONTRACT_ARCHIVED_V1 = "contract.lifecycle.archived.v1"
CONTRACT_PRICE_INCREASE_REPORTED_V1 = "contract.price.increase_reported.v1"
CONTRACT_TERMS_ACCEPTED_V1 = "contract.terms.accepted.v1"
CONTRACT_ATTRIBUTE_CORRECTED_V1 = "contract.attribute.corrected.v1"
CONTRACT_CREDIT_APPLIED_V1 = "contract.credit.applied.v1"

CONTRACT_EVENT_TYPES = (
    CONTRACT_REGISTERED_V1,
    CONTRACT_ACTIVATED_V1,
    CONTRACT_ACTIVATION_FAILED_V1,
    CONTRACT_CANCELLATION_INITIATED_V1,
    CONTRACT_TERMINATED_V1,
    CONTRACT_TERMINATION_FAILED_V1,
    CONTRACT_EXPIRED_V1,
    CONTRACT_ARCHIVED_V1,
    CONTRACT_PRICE_INCREASE_REPORTED_V1,
    CONTRACT_TERMS_ACCEPTED_V1,
    CONTRACT_ATTRIBUTE_CORRECTED_V1,
    CONTRACT_CREDIT_APPLIED_V1,
)

_PARTIES = ("user_id", "provider_id")

CONTEXT_KEYS = {
    CONTRACT_REGISTERED_V1: _PARTIES + ("offer_id", "start_date"),
    CONTRACT_ACTIVATED_V1: _PARTIES + ("activation_date",),
    CONTRACT_ACTIVATION_FAILED_V1: _PARTIES + ("reason",),
    CONTRACT_CANCELLATION_INITIATED_V1: _PARTIES + ("requested_on",),
    CONTRACT_TERMINATED_V1: _PARTIES + ("termination_date",),
    CONTRACT_TERMINATION_FAILED_V1: _PARTIES + ("reason",),
    CONTRACT_EXPIRED_V1: _PARTIES + ("expired_on",),
    CONTRACT_ARCHIVED_V1: _PARTIES,
    CONTRACT_PRICE_INCREASE_REPORTED_V1: _PARTIES + (
        "current_monthly_fee", "new_monthly_fee", "effective_date",
    ),
    CONTRACT_TERMS_ACCEPTED_V1: _PARTIES + ("monthly_fee",),
    CONTRACT_ATTRIBUTE_CORRECTED_V1: _PARTIES + ("attribute",),
    CONTRACT_CREDIT_APPLIED_V1: _PARTIES + ("amount",),
}
