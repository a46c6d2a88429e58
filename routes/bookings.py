from flask import Blueprint, jsonify, request
from utils.auth import Role, require_principal
from workflow import assignment, bookings

bookings_bp = Blueprint('bookings', __name__)

@bookings_bp.route('', methods=['POST'])
@require_principal(Role.CUSTOMER)
def create_booking(principal):
    data = request.get_json(silent=True) or {}
    booking = bookings.create_booking(principal, data)
    return jsonify({"message": "Booking created successfully", "booking": booking.to_dict()}), 201

@bookings_bp.route('', methods=['GET'])
@require_principal(Role.ADMIN, Role.MECHANIC)
def get_all_bookings(principal):
    results = bookings.list_bookings(status=request.args.get('status'))
    return jsonify({"bookings": [b.to_dict() for b in results]})

@bookings_bp.route('/customer', methods=['GET'])
@require_principal(Role.CUSTOMER)
def get_customer_bookings(principal):
    results = bookings.list_bookings(status=request.args.get('status'), customer_id=principal.user_id)
    return jsonify({"bookings": [b.to_dict() for b in results]})

@bookings_bp.route('/mechanic', methods=['GET'])
@require_principal(Role.MECHANIC)
def get_mechanic_bookings(principal):
    results = bookings.list_bookings(status=request.args.get('status'), mechanic_id=principal.user_id)
    return jsonify({"bookings": [b.to_dict() for b in results]})

@bookings_bp.route('/<int:booking_id>', methods=['GET'])
@require_principal()
def get_booking(principal, booking_id):
    booking = bookings.get_booking(principal, booking_id)
    return jsonify({"booking": booking.to_dict()})

@bookings_bp.route('/<int:booking_id>/approve', methods=['PUT'])
@require_principal(Role.ADMIN, Role.MECHANIC)
def approve_booking(principal, booking_id):
    booking = bookings.approve(principal, booking_id)
    return jsonify({"message": "Booking approved", "booking": booking.to_dict()}), 200

@bookings_bp.route('/<int:booking_id>/reject', methods=['PUT'])
@require_principal(Role.ADMIN, Role.MECHANIC)
def reject_booking(principal, booking_id):
    booking = bookings.reject(principal, booking_id)
    return jsonify({"message": "Booking rejected", "booking": booking.to_dict()}), 200

@bookings_bp.route('/<int:booking_id>/confirm', methods=['PUT'])
@require_principal(Role.ADMIN, Role.MECHANIC)
def confirm_booking(principal, booking_id):
    booking = bookings.confirm(principal, booking_id)
    return jsonify({"message": "Booking confirmed", "booking": booking.to_dict()}), 200

@bookings_bp.route('/<int:booking_id>/cancel', methods=['PUT'])
@require_principal(Role.CUSTOMER, Role.ADMIN)
def cancel_booking(principal, booking_id):
    booking = bookings.cancel(principal, booking_id)
    return jsonify({"message": "Booking cancelled", "booking": booking.to_dict()}), 200

@bookings_bp.route('/<int:booking_id>/reschedule', methods=['PUT'])
@require_principal(Role.CUSTOMER, Role.ADMIN)
def reschedule_booking(principal, booking_id):
    data = request.get_json(silent=True) or {}
    # Accepts {"date", "time"} or the nested {"newDateTime": {...}} shape
    new_date_time = data.get('newDateTime') or data
    booking = bookings.reschedule(principal, booking_id, new_date_time.get('date'), new_date_time.get('time'))
    return jsonify({"message": "Booking rescheduled", "booking": booking.to_dict()}), 200

@bookings_bp.route('/<int:booking_id>/assign', methods=['PUT'])
@require_principal(Role.ADMIN)
def assign_booking(principal, booking_id):
    data = request.get_json(silent=True) or {}
    mechanic_id = data.get('mechanicId', data.get('mechanic_id'))
    booking, job_card = assignment.assign_mechanic(principal, booking_id, mechanic_id)
    return jsonify({
        "message": "Booking assigned to mechanic and job card created",
        "booking": booking.to_dict(),
        "jobcard": job_card.to_dict()
    }), 200

@bookings_bp.route('/<int:booking_id>/status', methods=['PUT'])
@require_principal(Role.MECHANIC, Role.ADMIN)
def update_booking_status(principal, booking_id):
    data = request.get_json(silent=True) or {}
    booking = bookings.update_status(principal, booking_id, data.get('status'))
    return jsonify({"message": "Booking status updated", "booking": booking.to_dict()}), 200
