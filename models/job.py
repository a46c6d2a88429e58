import enum
from datetime import datetime
from sqlalchemy import Numeric
from database.db import db


class JobCardStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class JobPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class JobCard(db.Model):
    __tablename__ = 'jobcards'

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'), nullable=True, unique=True)  # one card per booking
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), nullable=False)
    mechanic_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    status = db.Column(
        db.Enum(JobCardStatus, name="jobcard_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobCardStatus.PENDING,
    )
    labor_cost = db.Column(Numeric(10, 2), nullable=False, default=0)
    total_cost = db.Column(Numeric(10, 2), nullable=False, default=0)
    priority = db.Column(
        db.Enum(JobPriority, name="jobcard_priority", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobPriority.MEDIUM,
    )
    estimated_hours = db.Column(Numeric(5, 2))
    percent_complete = db.Column(db.Integer, nullable=False, default=0)
    progress_notes = db.Column(db.Text)
    notes = db.Column(db.Text)
    started_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    booking = db.relationship('Booking', lazy=True)
    tasks = db.relationship('JobCardTask', backref='jobcard', lazy=True,
                            cascade="all, delete-orphan", order_by='JobCardTask.id')
    spare_parts = db.relationship('JobCardSparePart', backref='jobcard', lazy=True,
                                  cascade="all, delete-orphan", order_by='JobCardSparePart.id')
    invoice = db.relationship('Invoice', backref='jobcard', uselist=False, lazy=True)

    def to_dict(self, detail=False):
        data = {
            "id": self.id,
            "booking_id": self.booking_id,
            "customer_id": self.customer_id,
            "vehicle_id": self.vehicle_id,
            "mechanic_id": self.mechanic_id,
            "status": self.status.value,
            "labor_cost": float(self.labor_cost or 0),
            "total_cost": float(self.total_cost or 0),
            "priority": self.priority.value if self.priority else JobPriority.MEDIUM.value,
            "estimated_hours": float(self.estimated_hours) if self.estimated_hours is not None else None,
            "percent_complete": self.percent_complete,
            "progress_notes": self.progress_notes,
            "notes": self.notes,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }
        if detail:
            data["tasks"] = [t.to_dict() for t in self.tasks]
            data["parts"] = [p.to_dict() for p in self.spare_parts]
        return data

    def __repr__(self):
        return f'<JobCard {self.id} {self.status.value}>'


class JobCardTask(db.Model):
    __tablename__ = 'jobcard_tasks'

    id = db.Column(db.Integer, primary_key=True)
    jobcard_id = db.Column(db.Integer, db.ForeignKey('jobcards.id'), nullable=False, index=True)
    task_name = db.Column(db.String(255), nullable=False)
    task_cost = db.Column(Numeric(10, 2), nullable=False)
    status = db.Column(
        db.Enum(TaskStatus, name="task_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TaskStatus.PENDING,
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "jobcard_id": self.jobcard_id,
            "task_name": self.task_name,
            "task_cost": float(self.task_cost),
            "status": self.status.value
        }


class JobCardSparePart(db.Model):
    __tablename__ = 'jobcard_spareparts'

    id = db.Column(db.Integer, primary_key=True)
    jobcard_id = db.Column(db.Integer, db.ForeignKey('jobcards.id'), nullable=False, index=True)
    part_id = db.Column(db.Integer, db.ForeignKey('parts.id'), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(Numeric(10, 2), nullable=False)   # catalog price when used
    total_price = db.Column(Numeric(10, 2), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    part = db.relationship('Part', lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "jobcard_id": self.jobcard_id,
            "part_id": self.part_id,
            "part_name": self.part.name if self.part else None,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
            "total_price": float(self.total_price)
        }
