"""Cost ledger: labor tasks and spare parts booked against a job card.

``JobCard.total_cost`` is always recomputed from the rows, never incremented,
so it equals ``labor_cost + sum(task_cost) + sum(spare part total_price)``
after every write.
"""
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import update

from database.db import conditional_update, db, fetch, transaction
from models.business import Part
from models.job import JobCard, JobCardSparePart, JobCardStatus, JobCardTask
from utils.errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationFailed
from workflow import guard

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Numeric(10, 2) holds at most eight integer digits
MAX_AMOUNT = Decimal("100000000")
OPEN_STATUSES = (JobCardStatus.PENDING, JobCardStatus.IN_PROGRESS)


def to_money(value, field="amount"):
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationFailed(f"Valid {field} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f"Valid {field} is required")
    if not amount.is_finite() or amount < 0:
        raise ValidationFailed(f"Valid {field} is required")
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount >= MAX_AMOUNT:
        raise ValidationFailed(f"{field.capitalize()} must be less than {MAX_AMOUNT}")
    return amount


def _money(value):
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def parts_total(job_card):
    return sum((_money(p.total_price) for p in job_card.spare_parts), Decimal("0.00"))


def labor_total(job_card):
    return _money(job_card.labor_cost) + sum((_money(t.task_cost) for t in job_card.tasks), Decimal("0.00"))


def compute_total(job_card):
    return labor_total(job_card) + parts_total(job_card)


def _check_open(principal, job_card):
    relation = guard.relation_to_job_card(principal, job_card)
    if not guard.can_edit(principal.role, guard.EntityKind.JOBCARD, relation):
        raise Forbidden("Access denied. You can only update job cards assigned to you.")
    if guard.is_terminal(guard.EntityKind.JOBCARD, job_card.status):
        raise InvalidTransition(f"Job card is {job_card.status.value}; costs can no longer be added")


def _check_capacity(amount):
    if amount >= MAX_AMOUNT:
        raise ValidationFailed(f"Job card total cannot reach {MAX_AMOUNT}")


def _persist_total(job_card, now):
    db.session.flush()
    total = compute_total(job_card)
    _check_capacity(total)
    # Re-checks the status so a concurrent complete/cancel wins cleanly
    conditional_update(JobCard, job_card.id, OPEN_STATUSES, total_cost=total, updated_at=now)
    db.session.refresh(job_card)
    return total


def add_task(principal, jobcard_id, task_name, task_cost):
    with transaction():
        job_card = fetch(JobCard, jobcard_id, "Job card")
        name = (task_name or "").strip() if isinstance(task_name, str) else ""
        if not name:
            raise ValidationFailed("Task name is required")
        cost = to_money(task_cost, "task cost")
        _check_open(principal, job_card)

        now = datetime.utcnow()
        job_card.tasks.append(JobCardTask(task_name=name, task_cost=cost, created_at=now))
        total = _persist_total(job_card, now)

    logger.info("Job card %s: task '%s' (%s) added, total now %s", jobcard_id, name, cost, total)
    return job_card


def _parse_positive_int(value, message):
    if isinstance(value, bool):
        raise ValidationFailed(message)
    try:
        number = int(str(value))
    except (TypeError, ValueError):
        raise ValidationFailed(message)
    if number < 1:
        raise ValidationFailed(message)
    return number


def add_spare_part(principal, jobcard_id, part_id, quantity):
    """Book ``quantity`` units of a catalog part at today's catalog price."""
    with transaction():
        job_card = fetch(JobCard, jobcard_id, "Job card")
        part_id = _parse_positive_int(part_id, "Valid part ID is required")
        quantity = _parse_positive_int(quantity, "Valid quantity is required")
        _check_open(principal, job_card)

        part = db.session.get(Part, part_id)
        if part is None:
            raise NotFound("Part not found")
        if part.quantity < quantity:
            raise ValidationFailed("Insufficient stock")

        now = datetime.utcnow()
        unit_price = _money(part.price)
        total_price = (unit_price * quantity).quantize(CENT, rounding=ROUND_HALF_UP)
        _check_capacity(total_price)
        job_card.spare_parts.append(JobCardSparePart(
            part_id=part.id,
            quantity=quantity,
            unit_price=unit_price,
            total_price=total_price,
            created_at=now,
        ))

        result = db.session.execute(
            update(Part)
            .where(Part.id == part.id, Part.quantity >= quantity)
            .values(quantity=Part.quantity - quantity, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise Conflict("Insufficient stock")
        total = _persist_total(job_card, now)

    logger.info("Job card %s: %s x part %s at %s added, total now %s",
                jobcard_id, quantity, part_id, unit_price, total)
    return job_card
