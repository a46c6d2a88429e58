from database.db import db
from models.bookings import Booking, BookingStatus
from models.business import Part
from models.finances import Invoice
from models.job import JobCard


def test_booking_to_paid_invoice(client, headers, make_booking):
    """Booking #5 goes from request to a paid invoice for 75.98."""
    make_booking(booking_id=5)

    response = client.put('/bookings/5/approve', headers=headers.admin)
    assert response.get_json()["booking"]["status"] == "approved"

    response = client.put('/bookings/5/assign', json={"mechanicId": 2}, headers=headers.admin)
    assert response.status_code == 200
    jobcard_id = response.get_json()["jobcard"]["id"]

    assert client.put(f'/jobcards/{jobcard_id}/start', headers=headers.mechanic).status_code == 200
    assert db.session.get(Booking, 5).status == BookingStatus.IN_PROGRESS

    response = client.put(f'/jobcards/{jobcard_id}/add-task',
                          json={"task_name": "Oil change", "task_cost": 50}, headers=headers.mechanic)
    assert response.get_json()["jobcard"]["total_cost"] == 50.0

    response = client.put(f'/jobcards/{jobcard_id}/add-sparepart',
                          json={"part_id": 3, "quantity": 2}, headers=headers.mechanic)
    assert response.get_json()["jobcard"]["total_cost"] == 75.98

    response = client.put(f'/jobcards/{jobcard_id}/update-progress',
                          json={"percentComplete": 80}, headers=headers.mechanic)
    assert response.status_code == 200

    response = client.put(f'/jobcards/{jobcard_id}/complete', headers=headers.mechanic)
    assert response.status_code == 200
    invoice = response.get_json()["invoice"]
    assert invoice["parts_total"] == 25.98
    assert invoice["labor_total"] == 50.0
    assert invoice["grand_total"] == 75.98
    assert invoice["status"] == "unpaid"

    booking = db.session.get(Booking, 5)
    assert booking.status == BookingStatus.COMPLETED
    assert booking.mechanic_id == 2
    assert JobCard.query.filter_by(booking_id=5).count() == 1
    assert db.session.get(Part, 3).quantity == 8

    response = client.put(f'/invoices/{invoice["id"]}/payment', json={"status": "paid"},
                          headers=headers.customer)
    assert response.get_json()["invoice"]["status"] == "paid"
    assert Invoice.query.count() == 1
