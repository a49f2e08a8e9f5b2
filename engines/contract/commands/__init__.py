"""
Ledgerline Contract Engine — Commands
=====================================
One frozen request per intent-named command. __post_init__ checks
the payload shape; rules that need the stored entity live in
engines.contract.policies.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from core.ledger.errors import LedgerValidationError
from engines.contract.terms import TERM_MINIMUMS, check_term

CORRECTABLE_ATTRIBUTES = frozenset({
    "product_name",
    "provider_reference",
    "meter_point_id",
    "offer_id",
    "start_date",
    "term_months",
    "notice_period_days",
    "renewal_term_months",
    "auto_renew",
})


def _require_text(value: Any, field: str, command: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise LedgerValidationError(field, "must be a non-empty string", command=command)


def _require_date(value: Any, field: str, command: str) -> None:
    if not isinstance(value, date):
        raise LedgerValidationError(field, "must be a date", command=command)


def _require_positive_amount(value: Any, field: str, command: str) -> None:
    if not isinstance(value, Decimal):
        raise LedgerValidationError(field, "must be a Decimal amount", command=command)
    if value <= 0:
        raise LedgerValidationError(field, "must be positive", command=command)


def _require_int(value: Any, field: str, command: str, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise LedgerValidationError(field, f"must be an integer >= {minimum}", command=command)


def _check_corrected_value(attribute: str, value: Any, command: str) -> None:
    if attribute == "product_name":
        _require_text(value, "new_value", command)
    elif attribute == "start_date":
        _require_date(value, "new_value", command)
    elif attribute in TERM_MINIMUMS or attribute == "auto_renew":
        try:
            check_term(attribute, value, command)
        except LedgerValidationError as exc:
            raise LedgerValidationError("new_value", exc.reason, command=command) from exc
    elif value is not None:
        _require_text(value, "new_value", command)


class _Request:
    def to_payload(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RegisterPendingContractRequest(_Request):
    """Record a contract the provider has not confirmed yet."""
    entity_id: str
    user_id: str
    provider_id: str
    product_name: str
    monthly_fee: Decimal
    start_date: date
    term_months: int = 12
    notice_period_days: Optional[int] = None
    auto_renew: bool = True
    renewal_term_months: int = 12
    offer_id: Optional[str] = None
    meter_point_id: Optional[str] = None

    def __post_init__(self):
        name = "RegisterPendingContract"
        _require_text(self.entity_id, "entity_id", name)
        _require_text(self.user_id, "user_id", name)
        _require_text(self.provider_id, "provider_id", name)
        _require_text(self.product_name, "product_name", name)
        _require_positive_amount(self.monthly_fee, "monthly_fee", name)
        _require_date(self.start_date, "start_date", name)
        _require_int(self.term_months, "term_months", name, minimum=1)
        _require_int(self.renewal_term_months, "renewal_term_months", name, minimum=1)
        if self.notice_period_days is not None:
            _require_int(self.notice_period_days, "notice_period_days", name, minimum=0)
        if not isinstance(self.auto_renew, bool):
            raise LedgerValidationError("auto_renew", "must be a boolean", command=name)


@dataclass(frozen=True)
class ConfirmActivationRequest(_Request):
    entity_id: str
    activation_date: date
    provider_reference: Optional[str] = None

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "ConfirmActivation")
        _require_date(self.activation_date, "activation_date", "ConfirmActivation")


@dataclass(frozen=True)
class ReportActivationFailureRequest(_Request):
    entity_id: str
    reason: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "ReportActivationFailure")
        _require_text(self.reason, "reason", "ReportActivationFailure")


@dataclass(frozen=True)
class InitiateUserCancellationRequest(_Request):
    entity_id: str
    requested_on: date
    reason: Optional[str] = None

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "InitiateUserCancellation")
        _require_date(self.requested_on, "requested_on", "InitiateUserCancellation")


@dataclass(frozen=True)
class ConfirmProviderTerminationRequest(_Request):
    entity_id: str
    termination_date: date

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "ConfirmProviderTermination")
        _require_date(self.termination_date, "termination_date", "ConfirmProviderTermination")


@dataclass(frozen=True)
class ReportTerminationFailureRequest(_Request):
    entity_id: str
    reason: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "ReportTerminationFailure")
        _require_text(self.reason, "reason", "ReportTerminationFailure")


@dataclass(frozen=True)
class ExpireContractRequest(_Request):
    entity_id: str
    expired_on: date

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "ExpireContract")
        _require_date(self.expired_on, "expired_on", "ExpireContract")


@dataclass(frozen=True)
class ArchiveContractRequest(_Request):
    entity_id: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "ArchiveContract")


@dataclass(frozen=True)
class ReportPriceIncreaseRequest(_Request):
    """A provider announced a higher fee. Recorded as pending until accepted."""
    entity_id: str
    new_monthly_fee: Decimal
    effective_date: date
    source: Optional[str] = None

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "ReportPriceIncrease")
        _require_positive_amount(self.new_monthly_fee, "new_monthly_fee", "ReportPriceIncrease")
        _require_date(self.effective_date, "effective_date", "ReportPriceIncrease")


@dataclass(frozen=True)
class AcceptNewTermsRequest(_Request):
    entity_id: str
    accepted_on: date

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "AcceptNewTerms")
        _require_date(self.accepted_on, "accepted_on", "AcceptNewTerms")


@dataclass(frozen=True)
class CorrectContractAttributeRequest(_Request):
    """Fix a recorded value. old_value must match what the Ledger holds."""
    entity_id: str
    attribute: str
    old_value: Any
    new_value: Any
    reason: str

    def __post_init__(self):
        name = "CorrectContractAttribute"
        _require_text(self.entity_id, "entity_id", name)
        _require_text(self.reason, "reason", name)
        if self.attribute not in CORRECTABLE_ATTRIBUTES:
            raise LedgerValidationError(
                "attribute",
                f"'{self.attribute}' is not correctable; "
                f"allowed: {sorted(CORRECTABLE_ATTRIBUTES)}",
                command=name,
            )
        _check_corrected_value(self.attribute, self.new_value, name)
        if self.old_value == self.new_value:
            raise LedgerValidationError("new_value", "must differ from old_value", command=name)


@dataclass(frozen=True)
class ApplyManualCreditRequest(_Request):
    entity_id: str
    amount: Decimal
    reason: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "ApplyManualCredit")
        _require_positive_amount(self.amount, "amount", "ApplyManualCredit")
        _require_text(self.reason, "reason", "ApplyManualCredit")
