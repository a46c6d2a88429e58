"""Booking state machine.

Every transition runs in one transaction: load, check the edge, ask the
guard, then a conditional write keyed on the status that was read.
"""
import logging
from datetime import datetime

from database.db import conditional_update, db, fetch, transaction
from models.accounts import Vehicle
from models.bookings import Booking, BookingStatus
from models.job import JobCard, JobCardStatus
from utils.errors import Conflict, Forbidden, InvalidTransition, ValidationFailed
from workflow import guard
from workflow.invoicing import generate_for_job_card
from workflow.ledger import to_money

logger = logging.getLogger(__name__)

RESCHEDULABLE = (BookingStatus.PENDING, BookingStatus.APPROVED)


def parse_status(value):
    try:
        return BookingStatus(value)
    except ValueError:
        raise ValidationFailed(f"Invalid status: {value}")


def _parse_date(value):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationFailed("Valid booking date is required (YYYY-MM-DD)")


def _parse_time(value):
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError):
        raise ValidationFailed("Valid time is required (HH:MM)")


def check_transition(principal, booking, target, via_assignment=False):
    current = booking.status
    if not guard.is_edge(guard.EntityKind.BOOKING, current, target):
        raise InvalidTransition(f"Cannot move booking from {current.value} to {target.value}")
    relation = guard.relation_to_booking(principal, booking, via_assignment=via_assignment)
    if not guard.can_transition(principal.role, guard.EntityKind.BOOKING, current, target, relation):
        logger.warning("Denied booking %s %s -> %s for %s %s",
                       booking.id, current.value, target.value, principal.role.value, principal.user_id)
        raise Forbidden("Unauthorized")


def _carry_to_job_card(booking, target, now):
    """Move the booking's job card along with it.

    Starting or completing a booking drives its card the same way, and
    completing bills it. A card that is not in step is a 409.
    """
    job_card = JobCard.query.filter_by(booking_id=booking.id).first()
    if job_card is None:
        return
    current = job_card.status
    if target == BookingStatus.CANCELLED:
        if current not in (JobCardStatus.PENDING, JobCardStatus.IN_PROGRESS):
            return
        conditional_update(JobCard, job_card.id, current,
                           status=JobCardStatus.CANCELLED, updated_at=now)
    elif target == BookingStatus.IN_PROGRESS:
        if current != JobCardStatus.PENDING:
            raise Conflict(f"Job card {job_card.id} is {current.value} and cannot be started")
        conditional_update(JobCard, job_card.id, current,
                           status=JobCardStatus.IN_PROGRESS, started_at=now, updated_at=now)
    elif target == BookingStatus.COMPLETED:
        if current != JobCardStatus.IN_PROGRESS:
            raise Conflict(f"Job card {job_card.id} is {current.value} and cannot be completed")
        conditional_update(JobCard, job_card.id, current,
                           status=JobCardStatus.COMPLETED, completed_at=now,
                           percent_complete=100, updated_at=now)
        db.session.refresh(job_card)
        generate_for_job_card(job_card)
    else:
        return
    logger.info("Job card %s: %s -> %s along with booking %s",
                job_card.id, current.value, target.value, booking.id)


def transition(principal, booking_id, target):
    with transaction():
        booking = fetch(Booking, booking_id, "Booking")
        previous = booking.status
        check_transition(principal, booking, target)

        now = datetime.utcnow()
        conditional_update(Booking, booking.id, previous, status=target, updated_at=now)
        _carry_to_job_card(booking, target, now)
        db.session.refresh(booking)

    logger.info("Booking %s: %s -> %s by %s %s",
                booking_id, previous.value, target.value, principal.role.value, principal.user_id)
    return booking


def approve(principal, booking_id):
    return transition(principal, booking_id, BookingStatus.APPROVED)


def reject(principal, booking_id):
    return transition(principal, booking_id, BookingStatus.REJECTED)


def confirm(principal, booking_id):
    return transition(principal, booking_id, BookingStatus.CONFIRMED)


def cancel(principal, booking_id):
    return transition(principal, booking_id, BookingStatus.CANCELLED)


def update_status(principal, booking_id, status):
    return transition(principal, booking_id, parse_status(status))


def reschedule(principal, booking_id, date, time):
    with transaction():
        booking = fetch(Booking, booking_id, "Booking")
        booking_date = _parse_date(date)
        booking_time = _parse_time(time)
        relation = guard.relation_to_booking(principal, booking)
        if not guard.can_edit(principal.role, guard.EntityKind.BOOKING, relation):
            raise Forbidden("Unauthorized")
        if booking.status not in RESCHEDULABLE:
            raise InvalidTransition(f"A {booking.status.value} booking cannot be rescheduled")

        conditional_update(Booking, booking.id, RESCHEDULABLE,
                           booking_date=booking_date, booking_time=booking_time,
                           updated_at=datetime.utcnow())
        db.session.refresh(booking)

    logger.info("Booking %s rescheduled to %s %s", booking_id, date, time)
    return booking


def create_booking(principal, data):
    required = ("vehicle_id", "service_type", "booking_date", "booking_time")
    if not all(data.get(field) not in (None, "") for field in required):
        raise ValidationFailed("Missing required fields")
    service_type = str(data["service_type"]).strip()
    if not service_type:
        raise ValidationFailed("Service type is required")
    try:
        vehicle_id = int(data["vehicle_id"])
    except (TypeError, ValueError):
        raise ValidationFailed("Valid vehicle ID is required")
    booking_date = _parse_date(data["booking_date"])
    booking_time = _parse_time(data["booking_time"])
    estimated_cost = data.get("estimated_cost")
    estimated_cost = to_money(estimated_cost, "estimated cost") if estimated_cost not in (None, "") else 0

    with transaction():
        vehicle = db.session.get(Vehicle, vehicle_id)
        if vehicle is None or vehicle.customer_id != principal.user_id:
            raise ValidationFailed("Invalid vehicle ID")
        now = datetime.utcnow()
        booking = Booking(
            customer_id=principal.user_id,
            vehicle_id=vehicle.id,
            service_type=service_type,
            booking_date=booking_date,
            booking_time=booking_time,
            notes=data.get("notes", ""),
            estimated_cost=estimated_cost,
            status=BookingStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        db.session.add(booking)

    logger.info("Booking %s created by customer %s", booking.id, principal.user_id)
    return booking


def get_booking(principal, booking_id):
    booking = fetch(Booking, booking_id, "Booking")
    relation = guard.relation_to_booking(principal, booking)
    if not guard.can_read(principal.role, guard.EntityKind.BOOKING, relation):
        raise Forbidden("Unauthorized")
    return booking


def list_bookings(status=None, customer_id=None, mechanic_id=None):
    query = Booking.query
    if status:
        query = query.filter(Booking.status == parse_status(status))
    if customer_id is not None:
        query = query.filter(Booking.customer_id == customer_id)
    if mechanic_id is not None:
        query = query.filter(Booking.mechanic_id == mechanic_id)
    return query.order_by(Booking.booking_date.desc(), Booking.booking_time.desc()).all()
