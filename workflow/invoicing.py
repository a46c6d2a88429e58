import logging
from datetime import datetime

from database.db import conditional_update, db, fetch, transaction
from models.bookings import Booking
from models.finances import Invoice, InvoiceStatus
from models.job import JobCard
from utils.auth import Role
from utils.errors import Forbidden, InvalidTransition, NotFound, ValidationFailed
from workflow import guard, ledger

logger = logging.getLogger(__name__)


def generate_for_job_card(job_card):
    """Bill a completed job card.

    Runs inside the caller's transaction. A job card already holding an
    invoice gets that invoice back and nothing new is written.
    """
    existing = Invoice.query.filter_by(jobcard_id=job_card.id).first()
    if existing is not None:
        logger.info("Job card %s already invoiced as %s", job_card.id, existing.id)
        return existing

    parts_total = ledger.parts_total(job_card)
    labor_total = ledger.labor_total(job_card)
    now = datetime.utcnow()
    invoice = Invoice(
        jobcard_id=job_card.id,
        customer_id=job_card.customer_id,
        parts_total=parts_total,
        labor_total=labor_total,
        grand_total=parts_total + labor_total,
        status=InvoiceStatus.UNPAID,
        created_at=now,
        updated_at=now,
    )
    db.session.add(invoice)
    db.session.flush()
    logger.info("Invoice %s created for job card %s: parts=%s labor=%s grand=%s",
                invoice.id, job_card.id, parts_total, labor_total, invoice.grand_total)
    return invoice


def _check_readable(principal, invoice):
    relation = guard.relation_to_invoice(principal, invoice)
    if not guard.can_read(principal.role, guard.EntityKind.INVOICE, relation):
        raise Forbidden("Unauthorized")


def get_invoice(principal, invoice_id):
    invoice = fetch(Invoice, invoice_id, "Invoice")
    _check_readable(principal, invoice)
    return invoice


def get_invoice_for_booking(principal, booking_id):
    fetch(Booking, booking_id, "Booking")
    invoice = (
        Invoice.query.join(JobCard, Invoice.jobcard_id == JobCard.id)
        .filter(JobCard.booking_id == booking_id)
        .first()
    )
    if invoice is None:
        raise NotFound("Invoice not found for this booking")
    _check_readable(principal, invoice)
    return invoice


def list_invoices(principal, status=None):
    query = Invoice.query
    if principal.role == Role.CUSTOMER:
        query = query.filter(Invoice.customer_id == principal.user_id)
    elif principal.role == Role.MECHANIC:
        query = query.join(JobCard, Invoice.jobcard_id == JobCard.id).filter(
            JobCard.mechanic_id == principal.user_id)
    if status:
        try:
            query = query.filter(Invoice.status == InvoiceStatus(status))
        except ValueError:
            raise ValidationFailed(f"Invalid status: {status}")
    return query.order_by(Invoice.created_at.desc()).all()


def record_payment(principal, invoice_id, status, payment_method=None):
    try:
        target = InvoiceStatus(status)
    except ValueError:
        raise ValidationFailed("Valid status is required")

    with transaction():
        invoice = fetch(Invoice, invoice_id, "Invoice")
        previous = invoice.status
        if not guard.is_edge(guard.EntityKind.INVOICE, previous, target):
            raise InvalidTransition(f"Cannot move invoice from {previous.value} to {target.value}")
        relation = guard.relation_to_invoice(principal, invoice)
        if not guard.can_transition(principal.role, guard.EntityKind.INVOICE, previous, target, relation):
            raise Forbidden("Unauthorized")

        now = datetime.utcnow()
        values = {"status": target, "updated_at": now}
        if payment_method:
            values["payment_method"] = payment_method
        if target == InvoiceStatus.PAID:
            values["paid_at"] = now
            values.setdefault("payment_method", "cash")
        conditional_update(Invoice, invoice.id, previous, **values)
        db.session.refresh(invoice)

    logger.info("Invoice %s: %s -> %s by %s %s",
                invoice_id, previous.value, target.value, principal.role.value, principal.user_id)
    return invoice
