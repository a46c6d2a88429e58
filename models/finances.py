import enum
from datetime import datetime
from sqlalchemy import Numeric
from database.db import db


class InvoiceStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    CANCELLED = "cancelled"


class Invoice(db.Model):
    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)
    jobcard_id = db.Column(db.Integer, db.ForeignKey('jobcards.id'), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    parts_total = db.Column(Numeric(10, 2), nullable=False, default=0)
    labor_total = db.Column(Numeric(10, 2), nullable=False, default=0)
    grand_total = db.Column(Numeric(10, 2), nullable=False)
    status = db.Column(
        db.Enum(InvoiceStatus, name="invoice_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=InvoiceStatus.UNPAID,
        index=True,
    )
    payment_method = db.Column(db.String(50))
    paid_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "jobcard_id": self.jobcard_id,
            "customer_id": self.customer_id,
            "parts_total": float(self.parts_total),
            "labor_total": float(self.labor_total),
            "grand_total": float(self.grand_total),
            "status": self.status.value,
            "payment_method": self.payment_method,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
