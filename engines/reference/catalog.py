"""
Ledgerline Reference Engine — Entity Catalog
============================================
Declarative definitions for the reference entities the Ledger owns
next to contracts and tasks:

    User             PENDING_VERIFICATION → ACTIVE ⇄ SUSPENDED → CLOSED
    Address          ACTIVE → RETIRED
    MeterPoint       REGISTERED → ACTIVE → DECOMMISSIONED
    ProviderProfile  ACTIVE ⇄ SUSPENDED
    OfferDefinition  DRAFT → PUBLISHED → WITHDRAWN

Each command lists the payload fields it requires and accepts.
stores=False keeps a command's fields in history only (reasons).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, Mapping, Optional, Tuple

from core.ledger.errors import LedgerValidationError
from core.ledger.snapshot import EntitySnapshot
from core.ledger.state_machine import EntityStateMachine, command, creation

USER = "User"
ADDRESS = "Address"
METER_POINT = "MeterPoint"
PROVIDER_PROFILE = "ProviderProfile"
OFFER_DEFINITION = "OfferDefinition"

COMMODITIES = ("ELECTRICITY", "GAS")


@dataclass(frozen=True)
class ReferenceCommand:
    name: str
    required: Tuple[str, ...] = ()
    optional: Tuple[str, ...] = ()
    stores: bool = True
    # validate(snapshot or None, fields, now); snapshot is None on creation
    validate: Optional[Callable[[Optional[EntitySnapshot], Mapping, datetime], None]] = None
    # mutate(snapshot, fields, now) -> attribute updates; default merges the fields
    mutate: Optional[Callable[[EntitySnapshot, Mapping, datetime], Mapping]] = None

    @property
    def accepted(self) -> frozenset[str]:
        return frozenset(self.required) | frozenset(self.optional)


@dataclass(frozen=True)
class ReferenceEntity:
    machine: EntityStateMachine
    commands: Mapping[str, ReferenceCommand] = field(default_factory=dict)

    @property
    def entity_type(self) -> str:
        return self.machine.entity_type

    def __post_init__(self):
        declared = {spec.name for spec in self.machine.commands}
        if set(self.commands) != declared:
            raise ValueError(
                f"{self.entity_type}: catalog commands {sorted(self.commands)} "
                f"do not match machine commands {sorted(declared)}."
            )


def _commands(*items: ReferenceCommand) -> Dict[str, ReferenceCommand]:
    return {item.name: item for item in items}


# ── Field validators ──────────────────────────────────────────

def _valid_email(snapshot, fields: Mapping, now: datetime) -> None:
    email = fields.get("email")
    if email is not None and "@" not in str(email):
        raise LedgerValidationError("email", "must be an email address")


def _valid_commodity(snapshot, fields: Mapping, now: datetime) -> None:
    if fields.get("commodity") not in COMMODITIES:
        raise LedgerValidationError("commodity", f"must be one of {list(COMMODITIES)}")


def _valid_offer_fee(snapshot, fields: Mapping, now: datetime) -> None:
    fee = fields.get("monthly_fee")
    if not isinstance(fee, Decimal) or fee <= 0:
        raise LedgerValidationError("monthly_fee", "must be a positive Decimal amount")


def _reading_recorded(snapshot, fields: Mapping, now: datetime) -> dict:
    return {
        "last_reading_value": fields["reading_value"],
        "last_read_on": fields["read_on"],
        "reading_count": int(snapshot.attribute("reading_count") or 0) + 1,
    }


def _reading_must_not_decrease(snapshot, fields: Mapping, now: datetime) -> None:
    value = fields.get("reading_value")
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)) or value < 0:
        raise LedgerValidationError("reading_value", "must be a non-negative number")
    if not isinstance(fields.get("read_on"), date):
        raise LedgerValidationError("read_on", "must be a date")
    previous = snapshot.attribute("last_reading_value") if snapshot else None
    if previous is not None and Decimal(str(value)) < Decimal(str(previous)):
        raise LedgerValidationError(
            "reading_value", f"must not be lower than the last reading {previous}"
        )


# ── Catalog ───────────────────────────────────────────────────

USER_ENTITY = ReferenceEntity(
    machine=EntityStateMachine(
        entity_type=USER,
        states=frozenset({"PENDING_VERIFICATION", "ACTIVE", "SUSPENDED", "CLOSED"}),
        initial_status="PENDING_VERIFICATION",
        commands=(
            creation("RegisterUser", "PENDING_VERIFICATION", "user.lifecycle.registered.v1"),
            command("VerifyUser", {"PENDING_VERIFICATION"}, "ACTIVE",
                    "user.lifecycle.verified.v1"),
            command("SuspendUser", {"ACTIVE"}, "SUSPENDED",
                    "user.lifecycle.suspended.v1", ("reason",)),
            command("ReinstateUser", {"SUSPENDED"}, "ACTIVE", "user.lifecycle.reinstated.v1"),
            command("CloseUser", {"ACTIVE", "SUSPENDED"}, "CLOSED",
                    "user.lifecycle.closed.v1", ("reason",)),
            command("UpdateUserProfile", {"PENDING_VERIFICATION", "ACTIVE", "SUSPENDED"}, None,
                    "user.profile.updated.v1"),
        ),
    ),
    commands=_commands(
        ReferenceCommand("RegisterUser", required=("email", "display_name"),
                         optional=("phone",), validate=_valid_email),
        ReferenceCommand("VerifyUser"),
        ReferenceCommand("SuspendUser", required=("reason",), stores=False),
        ReferenceCommand("ReinstateUser"),
        ReferenceCommand("CloseUser", required=("reason",), stores=False),
        ReferenceCommand("UpdateUserProfile", optional=("email", "display_name", "phone"),
                         validate=_valid_email),
    ),
)

_ADDRESS_FIELDS = ("street", "postal_code", "city", "country")

ADDRESS_ENTITY = ReferenceEntity(
    machine=EntityStateMachine(
        entity_type=ADDRESS,
        states=frozenset({"ACTIVE", "RETIRED"}),
        initial_status="ACTIVE",
        commands=(
            creation("RegisterAddress", "ACTIVE", "address.lifecycle.registered.v1",
                     ("user_id",)),
            command("RetireAddress", {"ACTIVE"}, "RETIRED", "address.lifecycle.retired.v1"),
            command("CorrectAddress", {"ACTIVE"}, None, "address.details.corrected.v1"),
        ),
    ),
    commands=_commands(
        ReferenceCommand("RegisterAddress", required=_ADDRESS_FIELDS + ("user_id",)),
        ReferenceCommand("RetireAddress"),
        ReferenceCommand("CorrectAddress", optional=_ADDRESS_FIELDS),
    ),
)

METER_POINT_ENTITY = ReferenceEntity(
    machine=EntityStateMachine(
        entity_type=METER_POINT,
        states=frozenset({"REGISTERED", "ACTIVE", "DECOMMISSIONED"}),
        initial_status="REGISTERED",
        commands=(
            creation("RegisterMeterPoint", "REGISTERED", "meterpoint.lifecycle.registered.v1",
                     ("address_id", "commodity")),
            command("ActivateMeterPoint", {"REGISTERED"}, "ACTIVE",
                    "meterpoint.lifecycle.activated.v1"),
            command("DecommissionMeterPoint", {"ACTIVE"}, "DECOMMISSIONED",
                    "meterpoint.lifecycle.decommissioned.v1"),
            command("RecordMeterReading", {"ACTIVE"}, None, "meterpoint.reading.recorded.v1",
                    ("reading_value", "read_on")),
        ),
    ),
    commands=_commands(
        ReferenceCommand("RegisterMeterPoint", required=("meter_number", "address_id", "commodity"),
                         validate=_valid_commodity),
        ReferenceCommand("ActivateMeterPoint"),
        ReferenceCommand("DecommissionMeterPoint", optional=("reason",), stores=False),
        ReferenceCommand("RecordMeterReading", required=("reading_value", "read_on"),
                         validate=_reading_must_not_decrease, mutate=_reading_recorded),
    ),
)

PROVIDER_PROFILE_ENTITY = ReferenceEntity(
    machine=EntityStateMachine(
        entity_type=PROVIDER_PROFILE,
        states=frozenset({"ACTIVE", "SUSPENDED"}),
        initial_status="ACTIVE",
        commands=(
            creation("RegisterProvider", "ACTIVE", "provider.lifecycle.registered.v1"),
            command("SuspendProvider", {"ACTIVE"}, "SUSPENDED",
                    "provider.lifecycle.suspended.v1", ("reason",)),
            command("ReinstateProvider", {"SUSPENDED"}, "ACTIVE",
                    "provider.lifecycle.reinstated.v1"),
        ),
    ),
    commands=_commands(
        ReferenceCommand("RegisterProvider", required=("name",), optional=("website",)),
        ReferenceCommand("SuspendProvider", required=("reason",), stores=False),
        ReferenceCommand("ReinstateProvider"),
    ),
)

OFFER_DEFINITION_ENTITY = ReferenceEntity(
    machine=EntityStateMachine(
        entity_type=OFFER_DEFINITION,
        states=frozenset({"DRAFT", "PUBLISHED", "WITHDRAWN"}),
        initial_status="DRAFT",
        commands=(
            creation("DraftOffer", "DRAFT", "offer.lifecycle.drafted.v1", ("provider_id",)),
            command("PublishOffer", {"DRAFT"}, "PUBLISHED", "offer.lifecycle.published.v1",
                    ("provider_id",)),
            command("WithdrawOffer", {"PUBLISHED"}, "WITHDRAWN", "offer.lifecycle.withdrawn.v1",
                    ("provider_id", "reason")),
        ),
    ),
    commands=_commands(
        ReferenceCommand("DraftOffer", required=("provider_id", "name", "monthly_fee"),
                         optional=("term_months",), validate=_valid_offer_fee),
        ReferenceCommand("PublishOffer"),
        ReferenceCommand("WithdrawOffer", required=("reason",), stores=False),
    ),
)

REFERENCE_ENTITIES: Dict[str, ReferenceEntity] = {
    entity.entity_type: entity
    for entity in (
        USER_ENTITY,
        ADDRESS_ENTITY,
        METER_POINT_ENTITY,
        PROVIDER_PROFILE_ENTITY,
        OFFER_DEFINITION_ENTITY,
    )
}
