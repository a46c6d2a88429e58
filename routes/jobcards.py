from flask import Blueprint, jsonify, request
from utils.auth import Role, require_principal
from workflow import jobcards, ledger

jobcards_bp = Blueprint('jobcards', __name__)

@jobcards_bp.route('', methods=['POST'])
@require_principal(Role.ADMIN)
def create_jobcard(principal):
    data = request.get_json(silent=True) or {}
    job_card = jobcards.create_job_card(principal, data)
    return jsonify({"message": "Job card created successfully", "jobcard": job_card.to_dict()}), 201

@jobcards_bp.route('', methods=['GET'])
@require_principal(Role.ADMIN, Role.MECHANIC)
def get_jobcards(principal):
    mechanic_id = request.args.get('mechanic_id', type=int)
    results = jobcards.list_job_cards(principal, status=request.args.get('status'), mechanic_id=mechanic_id)
    return jsonify({"jobcards": [j.to_dict() for j in results]})

@jobcards_bp.route('/<int:jobcard_id>', methods=['GET'])
@require_principal(Role.ADMIN, Role.MECHANIC)
def get_jobcard(principal, jobcard_id):
    job_card = jobcards.get_job_card(principal, jobcard_id)
    return jsonify({"jobcard": job_card.to_dict(detail=True)})

@jobcards_bp.route('/booking/<int:booking_id>', methods=['GET'])
@require_principal(Role.ADMIN, Role.MECHANIC)
def get_jobcard_by_booking(principal, booking_id):
    job_card = jobcards.get_job_card_for_booking(principal, booking_id)
    return jsonify({"jobcard": job_card.to_dict(detail=True)})

@jobcards_bp.route('/<int:jobcard_id>/start', methods=['PUT'])
@require_principal(Role.MECHANIC, Role.ADMIN)
def start_jobcard(principal, jobcard_id):
    job_card = jobcards.start(principal, jobcard_id)
    return jsonify({"message": "Job card started", "jobcard": job_card.to_dict()}), 200

@jobcards_bp.route('/<int:jobcard_id>/add-mechanic', methods=['PUT'])
@require_principal(Role.ADMIN)
def add_mechanic(principal, jobcard_id):
    data = request.get_json(silent=True) or {}
    mechanic_id = data.get('mechanicId', data.get('mechanic_id'))
    job_card = jobcards.add_mechanic(principal, jobcard_id, mechanic_id)
    return jsonify({"message": "Mechanic assigned successfully", "jobcard": job_card.to_dict()}), 200

@jobcards_bp.route('/<int:jobcard_id>/update-status', methods=['PUT'])
@require_principal(Role.MECHANIC, Role.ADMIN)
def update_jobcard_status(principal, jobcard_id):
    data = request.get_json(silent=True) or {}
    job_card = jobcards.update_status(principal, jobcard_id, data.get('status'))
    return jsonify({"message": "Job card status updated successfully", "jobcard": job_card.to_dict()}), 200

@jobcards_bp.route('/<int:jobcard_id>/add-task', methods=['PUT'])
@require_principal(Role.MECHANIC, Role.ADMIN)
def add_task(principal, jobcard_id):
    data = request.get_json(silent=True) or {}
    job_card = ledger.add_task(principal, jobcard_id, data.get('task_name'), data.get('task_cost'))
    return jsonify({"message": "Task added successfully", "jobcard": job_card.to_dict(detail=True)}), 200

@jobcards_bp.route('/<int:jobcard_id>/add-sparepart', methods=['PUT'])
@require_principal(Role.MECHANIC, Role.ADMIN)
def add_sparepart(principal, jobcard_id):
    data = request.get_json(silent=True) or {}
    job_card = ledger.add_spare_part(principal, jobcard_id, data.get('part_id'), data.get('quantity'))
    return jsonify({"message": "Spare part added successfully", "jobcard": job_card.to_dict(detail=True)}), 200

@jobcards_bp.route('/<int:jobcard_id>/update-progress', methods=['PUT'])
@require_principal(Role.MECHANIC, Role.ADMIN)
def update_progress(principal, jobcard_id):
    data = request.get_json(silent=True) or {}
    percent = data.get('percentComplete', data.get('percent_complete'))
    job_card = jobcards.update_progress(principal, jobcard_id, percent, data.get('notes'))
    return jsonify({"message": "Job card progress updated successfully", "jobcard": job_card.to_dict()}), 200

@jobcards_bp.route('/<int:jobcard_id>/complete', methods=['PUT'])
@require_principal(Role.MECHANIC, Role.ADMIN)
def complete_jobcard(principal, jobcard_id):
    data = request.get_json(silent=True) or {}
    job_card, invoice = jobcards.complete(principal, jobcard_id, data.get('notes'))
    return jsonify({
        "message": "Job card completed",
        "jobcard": job_card.to_dict(),
        "invoice": invoice.to_dict()
    }), 200

@jobcards_bp.route('/<int:jobcard_id>/cancel', methods=['PUT'])
@require_principal(Role.MECHANIC, Role.ADMIN)
def cancel_jobcard(principal, jobcard_id):
    job_card = jobcards.cancel(principal, jobcard_id)
    return jsonify({"message": "Job card cancelled", "jobcard": job_card.to_dict()}), 200

@jobcards_bp.route('/<int:jobcard_id>', methods=['DELETE'])
@require_principal(Role.ADMIN)
def delete_jobcard(principal, jobcard_id):
    jobcards.delete_job_card(principal, jobcard_id)
    return jsonify({"message": "Job card deleted successfully"}), 200
