from datetime import date, time
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app import create_app
from database.db import db
from models.accounts import User, Vehicle
from models.bookings import Booking, BookingStatus
from models.business import Part
from models.job import JobCard, JobCardStatus
from utils.auth import Role, generate_token


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def people(app):
    """Admin #1, mechanic #2, customer #3, second customer #4, second mechanic #5."""
    admin = User(id=1, name="Ada Admin", email="admin@example.com", role=Role.ADMIN)
    mechanic = User(id=2, name="Max Mechanic", email="mechanic@example.com", role=Role.MECHANIC)
    customer = User(id=3, name="Cora Customer", email="cora@example.com", role=Role.CUSTOMER)
    other_customer = User(id=4, name="Otto Other", email="otto@example.com", role=Role.CUSTOMER)
    other_mechanic = User(id=5, name="Mia Mechanic", email="mia@example.com", role=Role.MECHANIC)
    db.session.add_all([admin, mechanic, customer, other_customer, other_mechanic])
    db.session.flush()

    vehicle = Vehicle(id=1, customer_id=customer.id, make="Toyota", model="Corolla",
                      year=2018, vin="JT2BF22K1W0123456")
    other_vehicle = Vehicle(id=2, customer_id=other_customer.id, make="Honda", model="Civic",
                            year=2016, vin="2HGFC2F59GH123456")
    parts = [
        Part(id=1, name="Brake pad set", part_number="BP-200", price=Decimal("45.00"), quantity=4),
        Part(id=2, name="Air filter", part_number="AF-110", price=Decimal("18.50"), quantity=6),
        Part(id=3, name="Oil filter", part_number="OF-100", price=Decimal("12.99"), quantity=10),
    ]
    db.session.add_all([vehicle, other_vehicle, *parts])
    db.session.commit()
    return SimpleNamespace(
        admin=admin,
        mechanic=mechanic,
        customer=customer,
        other_customer=other_customer,
        other_mechanic=other_mechanic,
        vehicle=vehicle,
        other_vehicle=other_vehicle,
    )


@pytest.fixture
def headers(people):
    """Bearer headers keyed by the attribute names used in ``people``."""
    def build(user):
        return {"Authorization": f"Bearer {generate_token(user)}"}

    return SimpleNamespace(
        admin=build(people.admin),
        mechanic=build(people.mechanic),
        customer=build(people.customer),
        other_customer=build(people.other_customer),
        other_mechanic=build(people.other_mechanic),
    )


@pytest.fixture
def make_booking(people):
    def make(status=BookingStatus.PENDING, customer=None, mechanic=None, booking_id=None):
        customer = customer or people.customer
        vehicle = people.vehicle if customer.id == people.customer.id else people.other_vehicle
        booking = Booking(
            id=booking_id,
            customer_id=customer.id,
            vehicle_id=vehicle.id,
            mechanic_id=mechanic.id if mechanic else None,
            service_type="Oil change",
            booking_date=date(2026, 11, 2),
            booking_time=time(9, 30),
            status=status,
        )
        db.session.add(booking)
        db.session.commit()
        return booking
    return make


@pytest.fixture
def make_job_card(people, make_booking):
    """A booking assigned to the first mechanic together with its job card."""
    def make(status=JobCardStatus.PENDING, booking_status=BookingStatus.ASSIGNED, mechanic=None):
        mechanic = mechanic or people.mechanic
        booking = make_booking(status=booking_status, mechanic=mechanic)
        job_card = JobCard(
            booking_id=booking.id,
            customer_id=booking.customer_id,
            vehicle_id=booking.vehicle_id,
            mechanic_id=mechanic.id,
            status=status,
        )
        db.session.add(job_card)
        db.session.commit()
        return job_card
    return make
