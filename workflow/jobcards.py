"""Job card state machine and the administrative job-card operations.

``complete`` is the only place an invoice is ever created.
"""
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from database.db import conditional_update, db, fetch, transaction
from models.accounts import User, Vehicle
from models.bookings import Booking, BookingStatus
from models.job import JobCard, JobCardStatus, JobPriority
from utils.auth import Role
from utils.errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationFailed
from workflow import guard
from workflow.invoicing import generate_for_job_card
from workflow.ledger import CENT, to_money

logger = logging.getLogger(__name__)


def parse_status(value):
    try:
        return JobCardStatus(value)
    except ValueError:
        raise ValidationFailed(f"Invalid status: {value}")


def _check_transition(principal, job_card, target):
    current = job_card.status
    if not guard.is_edge(guard.EntityKind.JOBCARD, current, target):
        raise InvalidTransition(f"Cannot move job card from {current.value} to {target.value}")
    relation = guard.relation_to_job_card(principal, job_card)
    if not guard.can_transition(principal.role, guard.EntityKind.JOBCARD, current, target, relation):
        logger.warning("Denied job card %s %s -> %s for %s %s",
                       job_card.id, current.value, target.value, principal.role.value, principal.user_id)
        raise Forbidden("Access denied. You can only update job cards assigned to you.")


def _check_editable(principal, job_card):
    relation = guard.relation_to_job_card(principal, job_card)
    if not guard.can_edit(principal.role, guard.EntityKind.JOBCARD, relation):
        raise Forbidden("Access denied. You can only update job cards assigned to you.")


def _follow_with_booking(job_card, expected, target, now):
    """Carry a job-card transition over to its booking, if it is still in ``expected``."""
    if job_card.booking_id is None:
        return
    booking = db.session.get(Booking, job_card.booking_id)
    if booking is None or booking.status not in expected:
        return
    conditional_update(Booking, booking.id, booking.status, status=target, updated_at=now)
    logger.info("Booking %s: %s -> %s following job card %s",
                booking.id, booking.status.value, target.value, job_card.id)


def _log_transition(principal, jobcard_id, previous, target):
    logger.info("Job card %s: %s -> %s by %s %s",
                jobcard_id, previous.value, target.value, principal.role.value, principal.user_id)


def start(principal, jobcard_id):
    with transaction():
        job_card = fetch(JobCard, jobcard_id, "Job card")
        previous = job_card.status
        _check_transition(principal, job_card, JobCardStatus.IN_PROGRESS)

        now = datetime.utcnow()
        conditional_update(JobCard, job_card.id, previous,
                           status=JobCardStatus.IN_PROGRESS, started_at=now, updated_at=now)
        _follow_with_booking(job_card, (BookingStatus.ASSIGNED,), BookingStatus.IN_PROGRESS, now)
        db.session.refresh(job_card)

    _log_transition(principal, jobcard_id, previous, JobCardStatus.IN_PROGRESS)
    return job_card


def complete(principal, jobcard_id, notes=None):
    """Finish the work and bill it. Returns ``(job_card, invoice)``.

    Completing a card twice is harmless: the second call hands back the card
    and its existing invoice without writing anything.
    """
    with transaction():
        job_card = fetch(JobCard, jobcard_id, "Job card")
        previous = job_card.status
        if previous == JobCardStatus.COMPLETED:
            _check_editable(principal, job_card)
            invoice = job_card.invoice or generate_for_job_card(job_card)
            return job_card, invoice
        _check_transition(principal, job_card, JobCardStatus.COMPLETED)

        now = datetime.utcnow()
        values = {
            "status": JobCardStatus.COMPLETED,
            "completed_at": now,
            "percent_complete": 100,
            "updated_at": now,
        }
        if notes:
            values["progress_notes"] = notes
        conditional_update(JobCard, job_card.id, previous, **values)
        db.session.refresh(job_card)
        invoice = generate_for_job_card(job_card)
        _follow_with_booking(job_card, (BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS),
                             BookingStatus.COMPLETED, now)

    _log_transition(principal, jobcard_id, previous, JobCardStatus.COMPLETED)
    return job_card, invoice


def cancel(principal, jobcard_id):
    with transaction():
        job_card = fetch(JobCard, jobcard_id, "Job card")
        previous = job_card.status
        _check_transition(principal, job_card, JobCardStatus.CANCELLED)
        conditional_update(JobCard, job_card.id, previous,
                           status=JobCardStatus.CANCELLED, updated_at=datetime.utcnow())
        db.session.refresh(job_card)

    _log_transition(principal, jobcard_id, previous, JobCardStatus.CANCELLED)
    return job_card


def update_status(principal, jobcard_id, status):
    target = parse_status(status)
    if target == JobCardStatus.IN_PROGRESS:
        return start(principal, jobcard_id)
    if target == JobCardStatus.COMPLETED:
        return complete(principal, jobcard_id)[0]
    if target == JobCardStatus.CANCELLED:
        return cancel(principal, jobcard_id)
    raise InvalidTransition("A job card cannot be moved back to pending")


def _parse_percent(value):
    if isinstance(value, bool):
        raise ValidationFailed("Percent complete must be between 0 and 100")
    try:
        percent = int(str(value))
    except (TypeError, ValueError):
        raise ValidationFailed("Percent complete must be between 0 and 100")
    if not 0 <= percent <= 100:
        raise ValidationFailed("Percent complete must be between 0 and 100")
    return percent


def update_progress(principal, jobcard_id, percent_complete, notes=None):
    with transaction():
        job_card = fetch(JobCard, jobcard_id, "Job card")
        percent = _parse_percent(percent_complete)
        _check_editable(principal, job_card)
        if job_card.status != JobCardStatus.IN_PROGRESS:
            raise InvalidTransition("Progress can only be updated while the job card is in progress")
        if percent < job_card.percent_complete:
            raise ValidationFailed(
                f"Percent complete cannot go back from {job_card.percent_complete} to {percent}")

        values = {"percent_complete": percent, "updated_at": datetime.utcnow()}
        if notes is not None:
            values["progress_notes"] = notes
        conditional_update(JobCard, job_card.id, JobCardStatus.IN_PROGRESS, **values)
        db.session.refresh(job_card)

    logger.info("Job card %s progress %s%%", jobcard_id, percent)
    return job_card


def _optional_user(user_id, role, label):
    if user_id in (None, ""):
        return None
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        raise ValidationFailed(f"{label} ID must be a valid number")
    if user is None or user.role != role:
        raise ValidationFailed(f"Invalid {label.lower()} ID or user is not a {role.value}")
    return user


def _parse_priority(value):
    if value in (None, ""):
        return JobPriority.MEDIUM
    try:
        return JobPriority(value)
    except ValueError:
        raise ValidationFailed("Priority must be one of: low, medium, high")


def _parse_hours(value):
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        raise ValidationFailed("Estimated hours must be a valid positive number")
    try:
        hours = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationFailed("Estimated hours must be a valid positive number")
    # Numeric(5, 2)
    if not hours.is_finite() or not 0 <= hours < 1000:
        raise ValidationFailed("Estimated hours must be a valid positive number")
    return hours.quantize(CENT, rounding=ROUND_HALF_UP)


def create_job_card(principal, data):
    """Open a job card outside the booking flow (walk-ins, internal work)."""
    if principal.role != Role.ADMIN:
        raise Forbidden("Unauthorized")
    if data.get("booking_id") not in (None, ""):
        raise ValidationFailed("Job cards for bookings are opened by assigning a mechanic")
    try:
        vehicle_id = int(data.get("vehicle_id"))
    except (TypeError, ValueError):
        raise ValidationFailed("Vehicle ID is required")
    labor_cost = data.get("labor_cost")
    labor_cost = to_money(labor_cost, "labor cost") if labor_cost not in (None, "") else to_money(0)
    priority = _parse_priority(data.get("priority"))
    estimated_hours = _parse_hours(data.get("estimated_hours"))

    with transaction():
        vehicle = db.session.get(Vehicle, vehicle_id)
        if vehicle is None:
            raise ValidationFailed("Invalid vehicle ID")
        customer = _optional_user(data.get("customer_id"), Role.CUSTOMER, "Customer")
        mechanic = _optional_user(data.get("mechanic_id"), Role.MECHANIC, "Mechanic")
        now = datetime.utcnow()
        job_card = JobCard(
            vehicle_id=vehicle.id,
            customer_id=customer.id if customer else None,
            mechanic_id=mechanic.id if mechanic else None,
            labor_cost=labor_cost,
            total_cost=labor_cost,
            priority=priority,
            estimated_hours=estimated_hours,
            notes=data.get("notes", ""),
            status=JobCardStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        db.session.add(job_card)

    logger.info("Job card %s created by admin %s", job_card.id, principal.user_id)
    return job_card


def add_mechanic(principal, jobcard_id, mechanic_id):
    """Give a free-standing job card its mechanic.

    Cards opened from a booking get theirs through booking assignment. A card
    that already has a mechanic is a 409.
    """
    if principal.role != Role.ADMIN:
        raise Forbidden("Unauthorized")
    with transaction():
        job_card = fetch(JobCard, jobcard_id, "Job card")
        if isinstance(mechanic_id, bool):
            raise ValidationFailed("Valid mechanic ID is required")
        try:
            mechanic_id = int(mechanic_id)
        except (TypeError, ValueError):
            raise ValidationFailed("Valid mechanic ID is required")
        if job_card.booking_id is not None:
            raise ValidationFailed("Assign the booking to change the mechanic of its job card")
        if guard.is_terminal(guard.EntityKind.JOBCARD, job_card.status):
            raise InvalidTransition(f"Job card is {job_card.status.value}; no mechanic can be added")
        if job_card.mechanic_id is not None:
            raise Conflict("Job card already has a mechanic")

        mechanic = db.session.get(User, mechanic_id)
        if mechanic is None:
            raise NotFound("Mechanic not found")
        if mechanic.role != Role.MECHANIC:
            raise ValidationFailed("User is not a mechanic")

        conditional_update(JobCard, job_card.id, job_card.status, JobCard.mechanic_id.is_(None),
                           mechanic_id=mechanic.id, updated_at=datetime.utcnow())
        db.session.refresh(job_card)

    logger.info("Job card %s assigned to mechanic %s by admin %s", jobcard_id, mechanic_id, principal.user_id)
    return job_card


def delete_job_card(principal, jobcard_id):
    """Remove an unbilled job card with its tasks and parts.

    A completed or invoiced card is a 409. A linked booking drops its mechanic
    and, if work had not finished, goes back to ``approved`` so it can be
    assigned again.
    """
    if principal.role != Role.ADMIN:
        raise Forbidden("Unauthorized")
    with transaction():
        job_card = fetch(JobCard, jobcard_id, "Job card")
        if job_card.status == JobCardStatus.COMPLETED or job_card.invoice is not None:
            raise Conflict("A completed or invoiced job card cannot be deleted")
        if job_card.booking_id is not None:
            booking = db.session.get(Booking, job_card.booking_id)
            if booking is not None:
                values = {"mechanic_id": None, "updated_at": datetime.utcnow()}
                if booking.status in (BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS):
                    values["status"] = BookingStatus.APPROVED
                conditional_update(Booking, booking.id, booking.status, **values)
        db.session.delete(job_card)

    logger.info("Job card %s deleted by admin %s", jobcard_id, principal.user_id)


def _check_readable(principal, job_card):
    relation = guard.relation_to_job_card(principal, job_card)
    if not guard.can_read(principal.role, guard.EntityKind.JOBCARD, relation):
        raise Forbidden("Access denied. You can only access job cards assigned to you.")


def get_job_card(principal, jobcard_id):
    job_card = fetch(JobCard, jobcard_id, "Job card")
    _check_readable(principal, job_card)
    return job_card


def get_job_card_for_booking(principal, booking_id):
    job_card = JobCard.query.filter_by(booking_id=booking_id).first()
    if job_card is None:
        raise NotFound("Job card not found for this booking")
    _check_readable(principal, job_card)
    return job_card


def list_job_cards(principal, status=None, mechanic_id=None):
    query = JobCard.query
    if principal.role == Role.MECHANIC:
        mechanic_id = principal.user_id
    if mechanic_id is not None:
        query = query.filter(JobCard.mechanic_id == mechanic_id)
    if status:
        query = query.filter(JobCard.status == parse_status(status))
    return query.order_by(JobCard.created_at.desc()).all()
