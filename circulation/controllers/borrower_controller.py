from flask import Blueprint, request, jsonify

from circulation.controllers import page_args, services

borrower_bp = Blueprint("borrowers", __name__)


@borrower_bp.get("/")
def list_borrowers():
    result = services().borrowers.list_borrowers(
        search=request.args.get("search"),
        sort_by=request.args.get("sortBy", "name"),
        sort_order=request.args.get("sortOrder", "ASC"),
        **page_args(),
    )
    return jsonify({"success": True, "data": result["borrowers"], "pagination": result["pagination"]})


@borrower_bp.post("/")
def create_borrower():
    data = request.get_json(silent=True) or {}
    b = services().borrowers.create_borrower(data)
    return jsonify({"success": True, "data": b.to_dict()}), 201


@borrower_bp.get("/overdue")
def borrowers_with_overdue():
    return jsonify({"success": True, "data": services().borrowers.get_borrowers_with_overdue()})


@borrower_bp.get("/<int:borrower_id>")
def get_borrower(borrower_id: int):
    return jsonify({"success": True, "data": services().borrowers.get_borrower(borrower_id).to_dict()})


@borrower_bp.put("/<int:borrower_id>")
def update_borrower(borrower_id: int):
    data = request.get_json(silent=True) or {}
    b = services().borrowers.update_borrower(borrower_id, data)
    return jsonify({"success": True, "data": b.to_dict()})


@borrower_bp.delete("/<int:borrower_id>")
def delete_borrower(borrower_id: int):
    services().borrowers.delete_borrower(borrower_id)
    return jsonify({"success": True})


@borrower_bp.get("/<int:borrower_id>/current")
def current_books(borrower_id: int):
    return jsonify({"success": True, "data": services().borrowers.get_current_books(borrower_id)})


@borrower_bp.get("/<int:borrower_id>/overdue")
def overdue_books(borrower_id: int):
    return jsonify({"success": True, "data": services().borrowers.get_overdue_books(borrower_id)})


@borrower_bp.get("/<int:borrower_id>/history")
def history(borrower_id: int):
    result = services().borrowers.get_borrowing_history(
        borrower_id,
        status=request.args.get("status", "all"),
        **page_args(),
    )
    return jsonify({"success": True, "data": result["borrowings"], "pagination": result["pagination"]})
