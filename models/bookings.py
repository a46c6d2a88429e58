import enum
from datetime import datetime
from sqlalchemy import Numeric
from database.db import db


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False)
    mechanic_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    service_type = db.Column(db.String(255), nullable=False)
    booking_date = db.Column(db.Date, nullable=False)
    booking_time = db.Column(db.Time, nullable=False)
    status = db.Column(
        db.Enum(BookingStatus, name="booking_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    estimated_cost = db.Column(Numeric(10, 2), default=0)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)
    vehicle = db.relationship('Vehicle', lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "vehicle_id": self.vehicle_id,
            "mechanic_id": self.mechanic_id,
            "service_type": self.service_type,
            "booking_date": self.booking_date.strftime("%Y-%m-%d") if self.booking_date else None,
            "booking_time": self.booking_time.strftime("%H:%M") if self.booking_time else None,
            "status": self.status.value,
            "estimated_cost": float(self.estimated_cost) if self.estimated_cost is not None else 0.0,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f"<Booking {self.id} {self.status.value}>"
