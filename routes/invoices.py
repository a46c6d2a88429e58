from flask import Blueprint, jsonify, request
from utils.auth import Role, require_principal
from workflow import invoicing

invoices_bp = Blueprint('invoices', __name__)

@invoices_bp.route('', methods=['GET'])
@require_principal()
def list_invoices(principal):
    results = invoicing.list_invoices(principal, status=request.args.get('status'))
    return jsonify({"invoices": [i.to_dict() for i in results]})

@invoices_bp.route('/<int:invoice_id>', methods=['GET'])
@require_principal()
def get_invoice(principal, invoice_id):
    invoice = invoicing.get_invoice(principal, invoice_id)
    job_card = invoice.jobcard
    return jsonify({
        "invoice": invoice.to_dict(),
        "tasks": [t.to_dict() for t in job_card.tasks],
        "parts": [p.to_dict() for p in job_card.spare_parts]
    })

@invoices_bp.route('/booking/<int:booking_id>', methods=['GET'])
@require_principal()
def get_invoice_by_booking(principal, booking_id):
    invoice = invoicing.get_invoice_for_booking(principal, booking_id)
    return jsonify({"invoice": invoice.to_dict()})

@invoices_bp.route('/<int:invoice_id>/payment', methods=['PUT'])
@require_principal()
def update_payment_status(principal, invoice_id):
    data = request.get_json(silent=True) or {}
    invoice = invoicing.record_payment(principal, invoice_id, data.get('status'), data.get('payment_method'))
    return jsonify({"message": "Payment status updated successfully", "invoice": invoice.to_dict()}), 200
