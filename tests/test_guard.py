import itertools

import pytest

from models.bookings import BookingStatus
from models.finances import InvoiceStatus
from models.job import JobCardStatus
from utils.auth import Role
from workflow import guard
from workflow.guard import ActorRelation, EntityKind

EVERYTHING = ActorRelation(is_owner=True, is_assigned_mechanic=True, via_assignment=True)
NOTHING = ActorRelation()


@pytest.mark.parametrize("entity_kind,statuses", [
    (EntityKind.BOOKING, BookingStatus),
    (EntityKind.JOBCARD, JobCardStatus),
    (EntityKind.INVOICE, InvoiceStatus),
])
def test_edges_missing_from_the_table_are_refused_for_everyone(entity_kind, statuses):
    for role, current, target in itertools.product(Role, statuses, statuses):
        if guard.is_edge(entity_kind, current, target):
            continue
        assert not guard.can_transition(role, entity_kind, current, target, EVERYTHING)


@pytest.mark.parametrize("status", [BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED])
def test_terminal_booking_statuses_are_closed(status):
    assert guard.is_terminal(EntityKind.BOOKING, status)
    assert not any(guard.is_edge(EntityKind.BOOKING, status, target) for target in BookingStatus)


def test_staff_approve_and_reject_pending_bookings():
    for role in (Role.ADMIN, Role.MECHANIC):
        for target in (BookingStatus.APPROVED, BookingStatus.REJECTED):
            assert guard.can_transition(role, EntityKind.BOOKING, BookingStatus.PENDING, target, NOTHING)
    assert not guard.can_transition(
        Role.CUSTOMER, EntityKind.BOOKING, BookingStatus.PENDING, BookingStatus.APPROVED, EVERYTHING)


def test_customer_cancels_only_own_booking():
    own = ActorRelation(is_owner=True)
    for status in (BookingStatus.PENDING, BookingStatus.APPROVED, BookingStatus.CONFIRMED,
                   BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS):
        assert guard.can_transition(Role.CUSTOMER, EntityKind.BOOKING, status, BookingStatus.CANCELLED, own)
        assert not guard.can_transition(Role.CUSTOMER, EntityKind.BOOKING, status, BookingStatus.CANCELLED, NOTHING)
        assert guard.can_transition(Role.ADMIN, EntityKind.BOOKING, status, BookingStatus.CANCELLED, NOTHING)
        assert not guard.can_transition(Role.MECHANIC, EntityKind.BOOKING, status, BookingStatus.CANCELLED, EVERYTHING)


def test_assigned_status_only_reachable_through_assignment():
    direct = ActorRelation(is_owner=True, is_assigned_mechanic=True)
    coordinated = ActorRelation(via_assignment=True)
    for current in (BookingStatus.APPROVED, BookingStatus.CONFIRMED):
        assert not guard.can_transition(Role.ADMIN, EntityKind.BOOKING, current, BookingStatus.ASSIGNED, direct)
        assert guard.can_transition(Role.ADMIN, EntityKind.BOOKING, current, BookingStatus.ASSIGNED, coordinated)
        assert not guard.can_transition(Role.MECHANIC, EntityKind.BOOKING, current, BookingStatus.ASSIGNED, coordinated)
    assert not guard.is_edge(EntityKind.BOOKING, BookingStatus.PENDING, BookingStatus.ASSIGNED)


def test_only_the_assigned_mechanic_starts_work_on_a_booking():
    mine = ActorRelation(is_assigned_mechanic=True)
    assert guard.can_transition(
        Role.MECHANIC, EntityKind.BOOKING, BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS, mine)
    assert not guard.can_transition(
        Role.MECHANIC, EntityKind.BOOKING, BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS, NOTHING)
    assert not guard.can_transition(
        Role.ADMIN, EntityKind.BOOKING, BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS, EVERYTHING)
    assert guard.can_transition(
        Role.ADMIN, EntityKind.BOOKING, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, NOTHING)


def test_job_card_transitions_belong_to_assigned_mechanic_or_admin():
    mine = ActorRelation(is_assigned_mechanic=True)
    edges = [
        (JobCardStatus.PENDING, JobCardStatus.IN_PROGRESS),
        (JobCardStatus.IN_PROGRESS, JobCardStatus.COMPLETED),
        (JobCardStatus.PENDING, JobCardStatus.CANCELLED),
        (JobCardStatus.IN_PROGRESS, JobCardStatus.CANCELLED),
    ]
    for current, target in edges:
        assert guard.can_transition(Role.MECHANIC, EntityKind.JOBCARD, current, target, mine)
        assert guard.can_transition(Role.ADMIN, EntityKind.JOBCARD, current, target, NOTHING)
        assert not guard.can_transition(Role.MECHANIC, EntityKind.JOBCARD, current, target, NOTHING)
        assert not guard.can_transition(Role.CUSTOMER, EntityKind.JOBCARD, current, target, EVERYTHING)
    assert not guard.is_edge(EntityKind.JOBCARD, JobCardStatus.PENDING, JobCardStatus.COMPLETED)


def test_customers_have_read_only_access_to_job_cards():
    own = ActorRelation(is_owner=True)
    assert guard.can_read(Role.CUSTOMER, EntityKind.JOBCARD, own)
    assert not guard.can_edit(Role.CUSTOMER, EntityKind.JOBCARD, own)


def test_invoice_payment_rules():
    own = ActorRelation(is_owner=True)
    mine = ActorRelation(is_assigned_mechanic=True)
    assert guard.can_transition(Role.CUSTOMER, EntityKind.INVOICE, InvoiceStatus.UNPAID, InvoiceStatus.PAID, own)
    assert not guard.can_transition(
        Role.CUSTOMER, EntityKind.INVOICE, InvoiceStatus.UNPAID, InvoiceStatus.PAID, NOTHING)
    assert guard.can_transition(Role.MECHANIC, EntityKind.INVOICE, InvoiceStatus.UNPAID, InvoiceStatus.PAID, mine)
    assert not guard.can_transition(
        Role.MECHANIC, EntityKind.INVOICE, InvoiceStatus.UNPAID, InvoiceStatus.PAID, NOTHING)
    assert not guard.can_read(Role.MECHANIC, EntityKind.INVOICE, NOTHING)
    assert guard.can_transition(Role.ADMIN, EntityKind.INVOICE, InvoiceStatus.UNPAID, InvoiceStatus.CANCELLED)
    assert not guard.can_transition(
        Role.MECHANIC, EntityKind.INVOICE, InvoiceStatus.UNPAID, InvoiceStatus.CANCELLED, EVERYTHING)


def test_missing_relation_counts_as_no_relation():
    assert not guard.can_transition(
        Role.CUSTOMER, EntityKind.BOOKING, BookingStatus.PENDING, BookingStatus.CANCELLED)
    assert guard.can_transition(Role.ADMIN, EntityKind.BOOKING, BookingStatus.PENDING, BookingStatus.CANCELLED)
