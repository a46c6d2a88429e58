"""Authorization guard for workflow transitions.

Every table maps an edge ``(current, target)`` to the roles allowed to take it
and the relation each role needs to the entity. Nothing here touches the
database; callers build an :class:`ActorRelation` from the loaded entity and
turn a ``False`` answer into a 403.
"""
import enum
from typing import NamedTuple

from models.bookings import BookingStatus
from models.finances import InvoiceStatus
from models.job import JobCardStatus
from utils.auth import Role


class EntityKind(str, enum.Enum):
    BOOKING = "booking"
    JOBCARD = "jobcard"
    INVOICE = "invoice"


class ActorRelation(NamedTuple):
    is_owner: bool = False
    is_assigned_mechanic: bool = False
    via_assignment: bool = False


# Relation requirements
ANY = "any"
OWNER = "owner"
ASSIGNED = "assigned"
COORDINATOR = "coordinator"

_REQUIREMENTS = {
    ANY: lambda relation: True,
    OWNER: lambda relation: relation.is_owner,
    ASSIGNED: lambda relation: relation.is_assigned_mechanic,
    COORDINATOR: lambda relation: relation.via_assignment,
}

_STAFF = {Role.ADMIN: ANY, Role.MECHANIC: ANY}
_CARD_HOLDERS = {Role.ADMIN: ANY, Role.MECHANIC: ASSIGNED}

BOOKING_TRANSITIONS = {
    (BookingStatus.PENDING, BookingStatus.APPROVED): _STAFF,
    (BookingStatus.PENDING, BookingStatus.REJECTED): _STAFF,
    (BookingStatus.APPROVED, BookingStatus.CONFIRMED): _STAFF,
    (BookingStatus.APPROVED, BookingStatus.ASSIGNED): {Role.ADMIN: COORDINATOR},
    (BookingStatus.CONFIRMED, BookingStatus.ASSIGNED): {Role.ADMIN: COORDINATOR},
    (BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS): {Role.MECHANIC: ASSIGNED},
    (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED): {Role.MECHANIC: ASSIGNED, Role.ADMIN: ANY},
}
for _status in (BookingStatus.PENDING, BookingStatus.APPROVED, BookingStatus.CONFIRMED,
                BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS):
    BOOKING_TRANSITIONS[(_status, BookingStatus.CANCELLED)] = {Role.CUSTOMER: OWNER, Role.ADMIN: ANY}

JOBCARD_TRANSITIONS = {
    (JobCardStatus.PENDING, JobCardStatus.IN_PROGRESS): _CARD_HOLDERS,
    (JobCardStatus.IN_PROGRESS, JobCardStatus.COMPLETED): _CARD_HOLDERS,
    (JobCardStatus.PENDING, JobCardStatus.CANCELLED): _CARD_HOLDERS,
    (JobCardStatus.IN_PROGRESS, JobCardStatus.CANCELLED): _CARD_HOLDERS,
}

INVOICE_TRANSITIONS = {
    (InvoiceStatus.UNPAID, InvoiceStatus.PAID): {Role.ADMIN: ANY, Role.MECHANIC: ASSIGNED, Role.CUSTOMER: OWNER},
    (InvoiceStatus.UNPAID, InvoiceStatus.CANCELLED): {Role.ADMIN: ANY},
}

TRANSITIONS = {
    EntityKind.BOOKING: BOOKING_TRANSITIONS,
    EntityKind.JOBCARD: JOBCARD_TRANSITIONS,
    EntityKind.INVOICE: INVOICE_TRANSITIONS,
}

# Mutations that leave status alone (reschedule, ledger entries, progress)
EDIT_RIGHTS = {
    EntityKind.BOOKING: {Role.CUSTOMER: OWNER, Role.ADMIN: ANY},
    EntityKind.JOBCARD: _CARD_HOLDERS,
}

# Who may look at an entity at all
READ_RIGHTS = {
    EntityKind.BOOKING: {Role.CUSTOMER: OWNER, Role.MECHANIC: ANY, Role.ADMIN: ANY},
    EntityKind.JOBCARD: {Role.CUSTOMER: OWNER, Role.MECHANIC: ASSIGNED, Role.ADMIN: ANY},
    EntityKind.INVOICE: {Role.CUSTOMER: OWNER, Role.MECHANIC: ASSIGNED, Role.ADMIN: ANY},
}

TERMINAL_STATUSES = {
    EntityKind.BOOKING: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED}),
    EntityKind.JOBCARD: frozenset({JobCardStatus.COMPLETED, JobCardStatus.CANCELLED}),
    EntityKind.INVOICE: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
}


def _allowed(rules, role, relation):
    requirement = rules.get(role)
    if requirement is None:
        return False
    return _REQUIREMENTS[requirement](relation or ActorRelation())


def is_edge(entity_kind, current_status, target_status):
    return (current_status, target_status) in TRANSITIONS[entity_kind]


def is_terminal(entity_kind, status):
    return status in TERMINAL_STATUSES[entity_kind]


def can_transition(role, entity_kind, current_status, target_status, relation=None):
    rules = TRANSITIONS[entity_kind].get((current_status, target_status))
    if rules is None:
        return False
    return _allowed(rules, role, relation)


def can_edit(role, entity_kind, relation=None):
    return _allowed(EDIT_RIGHTS[entity_kind], role, relation)


def can_read(role, entity_kind, relation=None):
    return _allowed(READ_RIGHTS[entity_kind], role, relation)


def relation_to_booking(principal, booking, via_assignment=False):
    return ActorRelation(
        is_owner=booking.customer_id == principal.user_id,
        is_assigned_mechanic=booking.mechanic_id is not None and booking.mechanic_id == principal.user_id,
        via_assignment=via_assignment,
    )


def relation_to_job_card(principal, job_card):
    return ActorRelation(
        is_owner=job_card.customer_id is not None and job_card.customer_id == principal.user_id,
        is_assigned_mechanic=job_card.mechanic_id is not None and job_card.mechanic_id == principal.user_id,
    )


def relation_to_invoice(principal, invoice):
    mechanic_id = invoice.jobcard.mechanic_id if invoice.jobcard is not None else None
    return ActorRelation(
        is_owner=invoice.customer_id is not None and invoice.customer_id == principal.user_id,
        is_assigned_mechanic=mechanic_id is not None and mechanic_id == principal.user_id,
    )
