from datetime import datetime
from sqlalchemy import Numeric
from database.db import db

class Part(db.Model):
    """Spare-parts catalog entry. Job cards copy ``price`` at the time of use."""
    __tablename__ = "parts"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    part_number = db.Column(db.String(100), unique=True)
    price = db.Column(Numeric(10, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "part_number": self.part_number,
            "price": float(self.price) if self.price is not None else None,
            "quantity": self.quantity
        }
