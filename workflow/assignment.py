import logging
from datetime import datetime

from database.db import conditional_update, db, fetch, transaction
from models.accounts import User
from models.bookings import Booking, BookingStatus
from models.job import JobCard, JobCardStatus
from utils.auth import Role
from utils.errors import Conflict, NotFound, ValidationFailed
from workflow.bookings import check_transition

logger = logging.getLogger(__name__)


def _open_job_card(booking, mechanic_id, now):
    job_card = JobCard(
        booking_id=booking.id,
        customer_id=booking.customer_id,
        vehicle_id=booking.vehicle_id,
        mechanic_id=mechanic_id,
        status=JobCardStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    db.session.add(job_card)
    db.session.flush()
    return job_card


def assign_mechanic(principal, booking_id, mechanic_id):
    """Bind a booking to a mechanic and open its job card in one transaction.

    Returns ``(booking, job_card)``. A booking that already has a job card is a
    409; nothing is overwritten.
    """
    if isinstance(mechanic_id, bool):
        raise ValidationFailed("Valid mechanic ID is required")
    try:
        mechanic_id = int(mechanic_id)
    except (TypeError, ValueError):
        raise ValidationFailed("Valid mechanic ID is required")

    with transaction():
        booking = fetch(Booking, booking_id, "Booking")
        previous = booking.status
        already_carded = JobCard.query.filter_by(booking_id=booking.id).first() is not None
        if previous == BookingStatus.ASSIGNED or already_carded:
            raise Conflict("Booking is already assigned to a mechanic")
        check_transition(principal, booking, BookingStatus.ASSIGNED, via_assignment=True)

        mechanic = db.session.get(User, mechanic_id)
        if mechanic is None:
            raise NotFound("Mechanic not found")
        if mechanic.role != Role.MECHANIC:
            raise ValidationFailed("User is not a mechanic")

        now = datetime.utcnow()
        conditional_update(Booking, booking.id, previous,
                           status=BookingStatus.ASSIGNED, mechanic_id=mechanic.id, updated_at=now)
        job_card = _open_job_card(booking, mechanic.id, now)
        db.session.refresh(booking)

    logger.info("Booking %s assigned to mechanic %s by admin %s; job card %s opened",
                booking_id, mechanic_id, principal.user_id, job_card.id)
    return booking, job_card
