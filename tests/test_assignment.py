from sqlalchemy.exc import SQLAlchemyError

from database.db import db
from models.bookings import Booking, BookingStatus
from models.job import JobCard
from workflow import assignment


def test_assigning_opens_exactly_one_job_card(client, headers, make_booking):
    booking = make_booking(status=BookingStatus.APPROVED)
    response = client.put(f'/bookings/{booking.id}/assign', json={"mechanicId": 2}, headers=headers.admin)
    assert response.status_code == 200
    body = response.get_json()
    assert body["booking"]["status"] == "assigned"
    assert body["booking"]["mechanic_id"] == 2
    assert body["jobcard"]["booking_id"] == booking.id
    assert body["jobcard"]["mechanic_id"] == 2
    assert body["jobcard"]["customer_id"] == 3
    assert body["jobcard"]["status"] == "pending"
    assert JobCard.query.filter_by(booking_id=booking.id).count() == 1


def test_confirmed_bookings_can_be_assigned(client, headers, make_booking):
    booking = make_booking(status=BookingStatus.CONFIRMED)
    response = client.put(f'/bookings/{booking.id}/assign', json={"mechanic_id": 5}, headers=headers.admin)
    assert response.status_code == 200


def test_assigning_twice_is_a_conflict(client, headers, make_booking):
    booking = make_booking(status=BookingStatus.APPROVED)
    assert client.put(f'/bookings/{booking.id}/assign', json={"mechanicId": 2},
                      headers=headers.admin).status_code == 200

    response = client.put(f'/bookings/{booking.id}/assign', json={"mechanicId": 5}, headers=headers.admin)
    assert response.status_code == 409
    assert JobCard.query.filter_by(booking_id=booking.id).count() == 1
    assert db.session.get(Booking, booking.id).mechanic_id == 2


def test_pending_booking_cannot_be_assigned(client, headers, make_booking):
    booking = make_booking()
    response = client.put(f'/bookings/{booking.id}/assign', json={"mechanicId": 2}, headers=headers.admin)
    assert response.status_code == 400
    assert JobCard.query.count() == 0


def test_only_admins_assign(client, headers, make_booking):
    booking = make_booking(status=BookingStatus.APPROVED)
    response = client.put(f'/bookings/{booking.id}/assign', json={"mechanicId": 2}, headers=headers.mechanic)
    assert response.status_code == 403


def test_assignee_must_be_a_mechanic(client, headers, make_booking):
    booking = make_booking(status=BookingStatus.APPROVED)
    assert client.put(f'/bookings/{booking.id}/assign', json={"mechanicId": 3},
                      headers=headers.admin).status_code == 400
    assert client.put(f'/bookings/{booking.id}/assign', json={"mechanicId": 77},
                      headers=headers.admin).status_code == 404
    assert client.put(f'/bookings/{booking.id}/assign', json={},
                      headers=headers.admin).status_code == 400
    booking = db.session.get(Booking, booking.id)
    assert booking.status == BookingStatus.APPROVED
    assert booking.mechanic_id is None


def test_failed_job_card_insert_leaves_the_booking_untouched(client, headers, make_booking, monkeypatch):
    booking = make_booking(status=BookingStatus.APPROVED)

    def broken_insert(*args, **kwargs):
        raise SQLAlchemyError("insert failed")

    monkeypatch.setattr(assignment, "_open_job_card", broken_insert)
    response = client.put(f'/bookings/{booking.id}/assign', json={"mechanicId": 2}, headers=headers.admin)
    assert response.status_code == 500
    assert response.get_json() == {"error": "Server error"}

    booking = db.session.get(Booking, booking.id)
    assert booking.status == BookingStatus.APPROVED
    assert booking.mechanic_id is None
    assert JobCard.query.count() == 0
